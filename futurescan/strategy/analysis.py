"""Indicator assembly — candle window + futures snapshot → IndicatorSet.

Each indicator is computed independently.  A ``CalculationError`` from one
indicator makes that reading ``None`` and leaves the rest untouched.
"""

import logging
from typing import Callable, Optional, Sequence, TypeVar

from futurescan.config import IndicatorSettings
from futurescan.errors import CalculationError
from futurescan.market.models import Candle, FuturesSnapshot
from futurescan.strategy import indicators as ind
from futurescan.strategy.models import (
    FuturesIndicators,
    IndicatorSet,
    MomentumIndicators,
    RiskIndicators,
    TrendIndicators,
    VolumeIndicators,
)

logger = logging.getLogger("futurescan.strategy")

T = TypeVar("T")


def _safe(name: str, fn: Callable[..., Optional[T]], *args) -> Optional[T]:
    try:
        return fn(*args)
    except (CalculationError, ZeroDivisionError) as exc:
        logger.debug("%s unavailable: %s", name, exc)
        return None


def build_indicator_set(
    candles: Sequence[Candle],
    settings: IndicatorSettings,
    futures: Optional[FuturesSnapshot] = None,
) -> IndicatorSet:
    """Compute every indicator the scorer and the risk stage consume."""
    closes = [c.close for c in candles]
    s = settings

    trend = TrendIndicators(
        ema_fast=_safe("EMA fast", ind.calculate_ema, closes, s.ema_fast),
        ema_medium=_safe("EMA medium", ind.calculate_ema, closes, s.ema_medium),
        ema_slow=_safe("EMA slow", ind.calculate_ema, closes, s.ema_slow),
        supertrend=_safe(
            "Supertrend", ind.calculate_supertrend,
            candles, s.supertrend_period, s.supertrend_multiplier,
        ),
        ichimoku=_safe("Ichimoku", ind.calculate_ichimoku, candles),
        market_structure=_safe(
            "Market structure", ind.calculate_market_structure,
            candles, s.market_structure_lookback,
        ),
    )

    momentum = MomentumIndicators(
        mfi=_safe("MFI", ind.calculate_mfi, candles, s.mfi_period),
        williams_r=_safe("Williams %R", ind.calculate_williams_r, candles, s.williams_r_period),
        cci=_safe("CCI", ind.calculate_cci, candles, s.cci_period),
    )

    volume = VolumeIndicators(
        vwap=_safe("VWAP", ind.calculate_vwap, candles[-s.vwap_period:], s.vwap_period),
        obv=_safe("OBV", ind.calculate_obv, candles),
    )

    if futures is not None:
        futures_ind = FuturesIndicators(
            funding_rate=futures.funding_rate,
            mark_price=futures.mark_price,
            open_interest=futures.open_interest,
            liquidation_ratio=futures.liquidation_ratio,
        )
    else:
        futures_ind = FuturesIndicators()

    risk = RiskIndicators(
        atr=_safe("ATR", ind.calculate_atr, candles, s.atr_period),
        volatility=_safe("Volatility", ind.calculate_volatility, closes, s.volatility_period),
        support_resistance=_safe(
            "Support/resistance", ind.calculate_support_resistance,
            candles, s.support_resistance_lookback,
        ),
    )

    return IndicatorSet(
        trend=trend,
        momentum=momentum,
        volume=volume,
        futures=futures_ind,
        risk=risk,
    )


def missing_required(indicators: IndicatorSet) -> list[str]:
    """Names of the readings a signal cannot be built without."""
    required = {
        "ema_fast": indicators.trend.ema_fast,
        "ema_medium": indicators.trend.ema_medium,
        "supertrend": indicators.trend.supertrend,
        "mfi": indicators.momentum.mfi,
        "vwap": indicators.volume.vwap,
        "atr": indicators.risk.atr,
    }
    return [name for name, value in required.items() if value is None]
