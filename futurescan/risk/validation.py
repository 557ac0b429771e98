"""Risk validation — advisory warnings, blocking checks, risk level.

Risk score is additive over three buckets, each scored 1–4:

    stop distance %   <1 → 1, <2 → 2, <3 → 3, else 4
    leverage          ≤3 → 1, ≤5 → 2, ≤10 → 3, else 4
    ratio[0]          ≥3 → 1, ≥2 → 2, ≥1.5 → 3, else 4

and mapped to LOW (≤4), MEDIUM (≤7), HIGH (≤10), EXTREME (>10).
"""

from futurescan.risk.models import PositionInfo, RiskValidation, TakeProfits
from futurescan.strategy.models import Direction, RiskLevel

MIN_STOP_PCT = 0.5
MAX_STOP_PCT = 5.0
WARN_RISK_REWARD = 1.5
WARN_LEVERAGE = 20
MIN_LIQUIDATION_DISTANCE_PCT = 10.0


def _stop_bucket(stop_pct: float) -> int:
    if stop_pct < 1:
        return 1
    if stop_pct < 2:
        return 2
    if stop_pct < 3:
        return 3
    return 4


def _leverage_bucket(leverage: int) -> int:
    if leverage <= 3:
        return 1
    if leverage <= 5:
        return 2
    if leverage <= 10:
        return 3
    return 4


def _ratio_bucket(ratio: float) -> int:
    if ratio >= 3:
        return 1
    if ratio >= 2:
        return 2
    if ratio >= 1.5:
        return 3
    return 4


def risk_score(stop_pct: float, leverage: int, first_ratio: float) -> int:
    return _stop_bucket(stop_pct) + _leverage_bucket(leverage) + _ratio_bucket(first_ratio)


def calculate_risk_level(stop_pct: float, leverage: int, first_ratio: float) -> RiskLevel:
    """Map the additive risk score onto LOW / MEDIUM / HIGH / EXTREME."""
    score = risk_score(stop_pct, leverage, first_ratio)
    if score <= 4:
        return "LOW"
    if score <= 7:
        return "MEDIUM"
    if score <= 10:
        return "HIGH"
    return "EXTREME"


def validate_risk_parameters(
    direction: Direction,
    entry_price: float,
    stop_loss: float,
    take_profits: TakeProfits,
    position: PositionInfo,
    liquidation_price: float,
) -> RiskValidation:
    """Check a parameter set and classify its risk.

    Warnings never reject on their own.  The set is invalid when the stop
    is on the wrong side of the entry, when the liquidation price would be
    reached before the stop, or when the risk level is EXTREME.
    """
    warnings: list[str] = []
    blocking: list[str] = []

    stop_pct = abs(entry_price - stop_loss) / entry_price * 100
    risk = abs(entry_price - stop_loss)
    first_ratio = abs(take_profits.tp1 - entry_price) / risk if risk else 0.0
    liq_pct = abs(entry_price - liquidation_price) / entry_price * 100

    if stop_pct < MIN_STOP_PCT:
        warnings.append(f"Stop loss very tight ({stop_pct:.2f}%)")
    elif stop_pct > MAX_STOP_PCT:
        warnings.append(f"Stop loss very wide ({stop_pct:.2f}%)")
    if first_ratio < WARN_RISK_REWARD:
        warnings.append(f"Low risk/reward on TP1 ({first_ratio:.2f})")
    if position.leverage > WARN_LEVERAGE:
        warnings.append(f"High leverage ({position.leverage}x)")
    if liq_pct < MIN_LIQUIDATION_DISTANCE_PCT:
        warnings.append(f"Liquidation close to entry ({liq_pct:.2f}%)")

    if direction == "LONG" and stop_loss >= entry_price:
        blocking.append("stop loss not below entry")
    elif direction == "SHORT" and stop_loss <= entry_price:
        blocking.append("stop loss not above entry")
    if liq_pct <= stop_pct:
        blocking.append("liquidation reached before stop loss")

    score = risk_score(stop_pct, position.leverage, first_ratio)
    level = calculate_risk_level(stop_pct, position.leverage, first_ratio)
    if level == "EXTREME":
        blocking.append("risk level EXTREME")

    return RiskValidation(
        is_valid=not blocking,
        warnings=tuple(warnings),
        blocking=tuple(blocking),
        risk_level=level,
        risk_score=score,
    )
