"""Signal scorer — fuses indicator readings into a directional signal.

Four weighted categories feed a long and a short accumulator:

    trend 40  = EMA stack 15 + Supertrend 15 + market structure 10
    momentum 25 = MFI 10 + Williams %R 8 + CCI 7
    volume 20 = VWAP deviation 20 (OBV is context only)
    futures 15 = funding rate 10 + liquidation ratio 5

A component adds its maximum points to the denominator only when its
input reading is present, so missing data never dilutes the score.

Decision rule: LONG is evaluated first and wins whenever it qualifies;
SHORT is considered only when LONG does not reach ``min_confidence``.
"""

import logging
from typing import Optional

from futurescan.config import Config, IndicatorSettings
from futurescan.strategy.models import (
    CategoryScore,
    FuturesIndicators,
    IndicatorSet,
    MomentumIndicators,
    ScoredSignal,
    TrendIndicators,
    VolumeIndicators,
)

logger = logging.getLogger("futurescan.strategy")

# Component maxima
EMA_POINTS = 15
SUPERTREND_POINTS = 15
STRUCTURE_POINTS = 10
MFI_POINTS = 10
WILLIAMS_R_POINTS = 8
CCI_POINTS = 7
VWAP_POINTS = 20
FUNDING_POINTS = 10
LIQUIDATION_POINTS = 5

SUPERTREND_BUFFER = 0.001  # price must clear the band by 0.1 %
EMA_STRONG_SPREAD = 0.005  # fast vs medium spread for a STRONG grade
STRUCTURE_MIN_STRENGTH = 0.6
MFI_SOFT_LOW = 40.0
MFI_SOFT_HIGH = 60.0
VWAP_STRONG_PCT = 0.3
VWAP_PCT = 0.1
LIQUIDATION_LONG_HEAVY = 0.75
LIQUIDATION_SHORT_HEAVY = 0.25


def ema_alignment(ema_fast: float, ema_medium: float, ema_slow: float) -> str:
    """Grade the EMA stack.

    Returns one of STRONG_BULL, BULL, WEAK_BULL, NEUTRAL, WEAK_BEAR, BEAR,
    STRONG_BEAR.  A full stack is STRONG when the fast EMA diverges from the
    medium EMA by more than 0.5 %.
    """
    if ema_fast > ema_medium > ema_slow:
        return "STRONG_BULL" if ema_fast > ema_medium * (1 + EMA_STRONG_SPREAD) else "BULL"
    if ema_fast < ema_medium < ema_slow:
        return "STRONG_BEAR" if ema_fast < ema_medium * (1 - EMA_STRONG_SPREAD) else "BEAR"
    if ema_fast > ema_medium:
        return "WEAK_BULL"
    if ema_fast < ema_medium:
        return "WEAK_BEAR"
    return "NEUTRAL"


_EMA_POINTS_BY_GRADE = {
    "STRONG_BULL": (EMA_POINTS, 0),
    "BULL": (10, 0),
    "STRONG_BEAR": (0, EMA_POINTS),
    "BEAR": (0, 10),
}


# ── Categories ───────────────────────────────────────────────────────────


def analyze_trend(price: float, trend: TrendIndicators) -> CategoryScore:
    long_score = 0.0
    short_score = 0.0
    weight = 0.0
    details: dict = {}

    if trend.ema_fast is not None and trend.ema_medium is not None and trend.ema_slow is not None:
        weight += EMA_POINTS
        grade = ema_alignment(trend.ema_fast, trend.ema_medium, trend.ema_slow)
        details["ema_alignment"] = grade
        pts_long, pts_short = _EMA_POINTS_BY_GRADE.get(grade, (0, 0))
        long_score += pts_long
        short_score += pts_short

    st = trend.supertrend
    if st is not None:
        weight += SUPERTREND_POINTS
        details["supertrend"] = {
            "direction": st.direction,
            "value": st.value,
            "distance_pct": round((price - st.value) / price * 100, 2),
        }
        if st.direction == 1 and price > st.value * (1 + SUPERTREND_BUFFER):
            long_score += SUPERTREND_POINTS
        elif st.direction == -1 and price < st.value * (1 - SUPERTREND_BUFFER):
            short_score += SUPERTREND_POINTS

    ms = trend.market_structure
    if ms is not None:
        weight += STRUCTURE_POINTS
        details["market_structure"] = {"trend": ms.trend, "strength": round(ms.strength, 3)}
        if ms.strength > STRUCTURE_MIN_STRENGTH:
            if ms.trend == "BULLISH":
                long_score += STRUCTURE_POINTS
            else:
                short_score += STRUCTURE_POINTS

    return CategoryScore(long_score, short_score, weight, details)


def analyze_momentum(momentum: MomentumIndicators, settings: IndicatorSettings) -> CategoryScore:
    long_score = 0.0
    short_score = 0.0
    weight = 0.0
    details: dict = {}

    if momentum.mfi is not None:
        mfi = momentum.mfi
        weight += MFI_POINTS
        if mfi < settings.mfi_oversold:
            long_score += MFI_POINTS
            status = "OVERSOLD"
        elif mfi > settings.mfi_overbought:
            short_score += MFI_POINTS
            status = "OVERBOUGHT"
        elif mfi < MFI_SOFT_LOW:
            long_score += MFI_POINTS / 2
            status = "BEARISH"
        elif mfi > MFI_SOFT_HIGH:
            short_score += MFI_POINTS / 2
            status = "BULLISH"
        else:
            status = "NEUTRAL"
        details["mfi"] = {"value": round(mfi, 2), "status": status}

    if momentum.williams_r is not None:
        wr = momentum.williams_r
        weight += WILLIAMS_R_POINTS
        if wr < settings.williams_r_oversold:
            long_score += WILLIAMS_R_POINTS
            status = "OVERSOLD"
        elif wr > settings.williams_r_overbought:
            short_score += WILLIAMS_R_POINTS
            status = "OVERBOUGHT"
        else:
            status = "NEUTRAL"
        details["williams_r"] = {"value": round(wr, 2), "status": status}

    if momentum.cci is not None:
        cci = momentum.cci
        weight += CCI_POINTS
        if cci < settings.cci_oversold:
            long_score += CCI_POINTS
            status = "OVERSOLD"
        elif cci > settings.cci_overbought:
            short_score += CCI_POINTS
            status = "OVERBOUGHT"
        else:
            status = "NEUTRAL"
        details["cci"] = {"value": round(cci, 2), "status": status}

    return CategoryScore(long_score, short_score, weight, details)


def vwap_band(deviation_pct: float) -> str:
    """Classify the price-vs-VWAP deviation (percent)."""
    if deviation_pct > VWAP_STRONG_PCT:
        return "STRONG_ABOVE"
    if deviation_pct > VWAP_PCT:
        return "ABOVE"
    if deviation_pct < -VWAP_STRONG_PCT:
        return "STRONG_BELOW"
    if deviation_pct < -VWAP_PCT:
        return "BELOW"
    return "NEAR"


_VWAP_POINTS_BY_BAND = {
    "STRONG_ABOVE": (VWAP_POINTS, 0),
    "ABOVE": (15, 0),
    "STRONG_BELOW": (0, VWAP_POINTS),
    "BELOW": (0, 15),
}


def analyze_volume(price: float, volume: VolumeIndicators) -> CategoryScore:
    long_score = 0.0
    short_score = 0.0
    weight = 0.0
    details: dict = {}

    if volume.vwap is not None and volume.vwap > 0:
        weight += VWAP_POINTS
        diff = (price - volume.vwap) / volume.vwap * 100
        band = vwap_band(diff)
        pts_long, pts_short = _VWAP_POINTS_BY_BAND.get(band, (0, 0))
        long_score += pts_long
        short_score += pts_short
        details["vwap"] = {"value": volume.vwap, "difference_pct": round(diff, 3), "status": band}

    if volume.obv is not None:
        details["obv"] = {
            "value": volume.obv,
            "trend": "BULLISH" if volume.obv > 0 else "BEARISH",
        }

    return CategoryScore(long_score, short_score, weight, details)


def analyze_futures(futures: FuturesIndicators, extreme_threshold: float) -> CategoryScore:
    """Contrarian read of funding and liquidations.

    High positive funding (crowded longs) is bearish; heavy long
    liquidations are bullish.  Funding beyond half the extreme threshold
    earns half credit.
    """
    long_score = 0.0
    short_score = 0.0
    weight = 0.0
    details: dict = {}
    soft_threshold = extreme_threshold / 2

    if futures.funding_rate is not None:
        fr = futures.funding_rate
        weight += FUNDING_POINTS
        if fr > extreme_threshold:
            short_score += FUNDING_POINTS
            bias = "BEARISH"
        elif fr < -extreme_threshold:
            long_score += FUNDING_POINTS
            bias = "BULLISH"
        elif fr > soft_threshold:
            short_score += FUNDING_POINTS / 2
            bias = "SLIGHTLY_BEARISH"
        elif fr < -soft_threshold:
            long_score += FUNDING_POINTS / 2
            bias = "SLIGHTLY_BULLISH"
        else:
            bias = "NEUTRAL"
        details["funding_rate"] = {
            "value_pct": round(fr * 100, 4),
            "annualized_pct": round(fr * 100 * 365, 2),
            "bias": bias,
        }

    if futures.liquidation_ratio is not None:
        ratio = futures.liquidation_ratio
        weight += LIQUIDATION_POINTS
        if ratio > LIQUIDATION_LONG_HEAVY:
            long_score += LIQUIDATION_POINTS
            bias = "BULLISH"
        elif ratio < LIQUIDATION_SHORT_HEAVY:
            short_score += LIQUIDATION_POINTS
            bias = "BEARISH"
        else:
            bias = "NEUTRAL"
        details["liquidations"] = {"ratio": round(ratio, 3), "bias": bias}

    return CategoryScore(long_score, short_score, weight, details)


# ── Decision ─────────────────────────────────────────────────────────────


def _confidence(strength: float, high_confidence: float) -> str:
    return "HIGH" if strength >= high_confidence else "MEDIUM"


def score_signal(price: float, indicators: IndicatorSet, config: Config) -> Optional[ScoredSignal]:
    """Score all categories and decide direction and confidence.

    Returns ``None`` if neither direction reaches ``config.min_confidence``
    or no component had data.
    """
    categories = {
        "trend": analyze_trend(price, indicators.trend),
        "momentum": analyze_momentum(indicators.momentum, config.indicators),
        "volume": analyze_volume(price, indicators.volume),
        "futures": analyze_futures(indicators.futures, config.funding_extreme_threshold),
    }

    long_score = sum(c.long_score for c in categories.values())
    short_score = sum(c.short_score for c in categories.values())
    total_weight = sum(c.weight for c in categories.values())
    if total_weight <= 0:
        return None

    long_strength = long_score / total_weight * 100
    short_strength = short_score / total_weight * 100

    analysis = {
        name: {
            "long_score": c.long_score,
            "short_score": c.short_score,
            "weight": c.weight,
            **c.details,
        }
        for name, c in categories.items()
    }
    analysis["summary"] = {
        "long_strength": round(long_strength, 2),
        "short_strength": round(short_strength, 2),
        "total_weight": total_weight,
    }

    if long_strength >= config.min_confidence:
        return ScoredSignal(
            direction="LONG",
            strength=long_strength,
            confidence=_confidence(long_strength, config.high_confidence),
            analysis=analysis,
        )
    if short_strength >= config.min_confidence:
        return ScoredSignal(
            direction="SHORT",
            strength=short_strength,
            confidence=_confidence(short_strength, config.high_confidence),
            analysis=analysis,
        )
    return None
