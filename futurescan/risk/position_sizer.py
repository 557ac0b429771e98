"""Position sizing and liquidation price — pure math, no I/O.

Calculates a leveraged position from account balance, risk percentage,
and stop-loss distance.
"""

import math

from futurescan.risk.models import PositionInfo

LIQUIDATION_HEADROOM = 0.9  # keep 10 % of margin for fees


def calculate_position_size(
    balance: float,
    risk_pct: float,
    entry_price: float,
    stop_loss: float,
    max_leverage: int = 10,
) -> PositionInfo:
    """Calculate position size, leverage and margin.

    Formula::

        risk_amount   = balance × (risk_pct / 100)
        price_risk    = |entry − stop| / entry
        leverage      = clamp(floor(1 / price_risk), 1, max_leverage)
        base_size     = risk_amount / |entry − stop|
        position_size = base_size × leverage
        margin        = position_size × entry / leverage

    Raises:
        ValueError: If any input is non-positive or the stop equals entry.
    """
    if balance <= 0:
        raise ValueError(f"balance must be positive, got {balance}")
    if risk_pct <= 0:
        raise ValueError(f"risk_pct must be positive, got {risk_pct}")
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if max_leverage < 1:
        raise ValueError(f"max_leverage must be >= 1, got {max_leverage}")

    price_risk = abs(entry_price - stop_loss)
    if price_risk == 0:
        raise ValueError("stop_loss must differ from entry_price")

    risk_amount = balance * (risk_pct / 100.0)
    price_risk_fraction = price_risk / entry_price
    leverage = min(max(1, math.floor(1 / price_risk_fraction)), max_leverage)
    base_size = risk_amount / price_risk
    position_size = base_size * leverage
    margin = position_size * entry_price / leverage

    return PositionInfo(
        position_size=position_size,
        base_size=base_size,
        margin=margin,
        leverage=leverage,
        risk_amount=risk_amount,
        risk_percentage=risk_pct,
        price_risk_percentage=price_risk_fraction * 100,
    )


def calculate_liquidation_price(entry_price: float, leverage: int, direction: str) -> float:
    """``entry × (1 ∓ 0.9 / leverage)`` — minus for LONG, plus for SHORT."""
    if leverage < 1:
        raise ValueError(f"leverage must be >= 1, got {leverage}")
    distance = LIQUIDATION_HEADROOM / leverage
    if direction == "LONG":
        return entry_price * (1 - distance)
    if direction == "SHORT":
        return entry_price * (1 + distance)
    raise ValueError(f"direction must be 'LONG' or 'SHORT', got '{direction}'")
