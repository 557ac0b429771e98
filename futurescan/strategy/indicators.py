"""Technical indicators — trend, momentum, volume, volatility. Pure functions, no I/O.

Every function returns ``None`` when the window is shorter than the
indicator's minimum requirement.  Numeric edge cases with no defined
fallback raise ``CalculationError``.
"""

import math
from typing import Optional, Sequence

from futurescan.errors import CalculationError
from futurescan.market.models import Candle
from futurescan.strategy.models import (
    Ichimoku,
    MarketStructure,
    SupportResistance,
    Supertrend,
)


def _typical_price(c: Candle) -> float:
    return (c.high + c.low + c.close) / 3.0


def _midpoint(candles: Sequence[Candle]) -> float:
    return (max(c.high for c in candles) + min(c.low for c in candles)) / 2.0


# ── EMA ──────────────────────────────────────────────────────────────────


def calculate_ema_series(values: Sequence[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The series is seeded with the first value in the window, so it has
    the same length as *values*.  Returns an empty list if fewer than
    *period* values are provided.
    """
    if period < 1 or len(values) < period:
        return []

    k = 2.0 / (period + 1)
    ema = [float(values[0])]
    for v in values[1:]:
        ema.append(v * k + ema[-1] * (1 - k))
    return ema


def calculate_ema(values: Sequence[float], period: int) -> Optional[float]:
    """Return the latest EMA value, or ``None`` if ``len(values) < period``."""
    series = calculate_ema_series(values, period)
    return series[-1] if series else None


# ── ATR ──────────────────────────────────────────────────────────────────


def true_ranges(candles: Sequence[Candle]) -> list[float]:
    """True range for every candle after the first.

        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    ``result[i]`` belongs to ``candles[i + 1]``.
    """
    trs: list[float] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        trs.append(max(high - low, abs(high - prev_close), abs(low - prev_close)))
    return trs


def calculate_atr(candles: Sequence[Candle], period: int = 14) -> Optional[float]:
    """Calculate the Average True Range over *period* candles.

    Requires at least ``period + 1`` candles (need a previous close for TR).
    Returns the simple average of the last *period* true ranges.
    """
    if period < 1 or len(candles) < period + 1:
        return None
    recent = true_ranges(candles)[-period:]
    return sum(recent) / period


def calculate_atr_series(candles: Sequence[Candle], period: int = 14) -> list[Optional[float]]:
    """Rolling ATR aligned with *candles*.

    ``result[i]`` is the mean of the *period* true ranges ending at candle
    *i*, or ``None`` for ``i < period``.
    """
    trs = true_ranges(candles)
    atr: list[Optional[float]] = [None] * len(candles)
    for i in range(period, len(candles)):
        window = trs[i - period : i]
        atr[i] = sum(window) / period
    return atr


# ── Supertrend ───────────────────────────────────────────────────────────


def calculate_supertrend(
    candles: Sequence[Candle],
    period: int = 10,
    multiplier: float = 3.0,
) -> Optional[Supertrend]:
    """Calculate the Supertrend on the latest candle.

    Algorithm:
        1. basic bands = (high + low) / 2 ± multiplier × ATR(period).
        2. The final upper band only moves down (and the lower band only
           moves up) unless the previous close broke through it, so bands
           never widen against the prevailing trend.
        3. Direction flips to bearish when the close falls below the lower
           band and to bullish when it rises above the upper band.  At most
           one flip happens per candle.
        4. The active value is the lower band in a bullish trend, the upper
           band in a bearish one.

    Requires at least ``period + 10`` candles.
    """
    if period < 1 or len(candles) < period + 10:
        return None

    atr = calculate_atr_series(candles, period)
    upper: Optional[float] = None
    lower: Optional[float] = None
    direction = 1

    for i in range(period, len(candles)):
        hl2 = (candles[i].high + candles[i].low) / 2.0
        band = multiplier * atr[i]
        basic_upper = hl2 + band
        basic_lower = hl2 - band

        if upper is None or lower is None:
            upper, lower = basic_upper, basic_lower
        else:
            prev_close = candles[i - 1].close
            upper = basic_upper if basic_upper < upper or prev_close > upper else upper
            lower = basic_lower if basic_lower > lower or prev_close < lower else lower

        close = candles[i].close
        if direction == 1 and close < lower:
            direction = -1
        elif direction == -1 and close > upper:
            direction = 1

    value = lower if direction == 1 else upper
    return Supertrend(value=value, direction=direction, upper_band=upper, lower_band=lower)


# ── Volume ───────────────────────────────────────────────────────────────


def calculate_vwap(candles: Sequence[Candle], min_period: int = 20) -> Optional[float]:
    """Volume-weighted mean of the typical price (H+L+C)/3 over *candles*.

    Callers pass the trailing window they want averaged.  Requires at
    least *min_period* candles; raises ``CalculationError`` on zero volume.
    """
    if len(candles) < min_period:
        return None
    total_volume = sum(c.volume for c in candles)
    if total_volume <= 0:
        raise CalculationError("VWAP undefined: window has zero volume")
    return sum(_typical_price(c) * c.volume for c in candles) / total_volume


def calculate_obv(candles: Sequence[Candle]) -> Optional[float]:
    """On-Balance Volume accumulated over the whole window.

    Requires at least 2 candles.
    """
    if len(candles) < 2:
        return None
    obv = 0.0
    for i in range(1, len(candles)):
        if candles[i].close > candles[i - 1].close:
            obv += candles[i].volume
        elif candles[i].close < candles[i - 1].close:
            obv -= candles[i].volume
    return obv


# ── Momentum ─────────────────────────────────────────────────────────────


def calculate_mfi(candles: Sequence[Candle], period: int = 14) -> Optional[float]:
    """Money Flow Index over the last *period* typical-price changes.

    Raw money flow = typical price × volume, counted as positive when the
    typical price rose versus the previous candle and negative when it fell.

        MFI = 100 − 100 / (1 + positive_flow / negative_flow)

    Returns 100 when no negative flow was observed.  Requires at least
    ``period + 1`` candles.
    """
    if period < 1 or len(candles) < period + 1:
        return None

    positive = 0.0
    negative = 0.0
    window = candles[-(period + 1):]
    for i in range(1, len(window)):
        tp = _typical_price(window[i])
        prev_tp = _typical_price(window[i - 1])
        flow = tp * window[i].volume
        if tp > prev_tp:
            positive += flow
        elif tp < prev_tp:
            negative += flow

    if negative == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + positive / negative)


def calculate_williams_r(candles: Sequence[Candle], period: int = 14) -> Optional[float]:
    """Williams %R: (highest_high − close) / (highest_high − lowest_low) × −100.

    Returns 0 if the window has no range.  Requires at least *period* candles.
    """
    if period < 1 or len(candles) < period:
        return None
    recent = candles[-period:]
    highest = max(c.high for c in recent)
    lowest = min(c.low for c in recent)
    if highest == lowest:
        return 0.0
    return (highest - candles[-1].close) / (highest - lowest) * -100.0


def calculate_cci(candles: Sequence[Candle], period: int = 20) -> Optional[float]:
    """Commodity Channel Index.

        CCI = (TP − SMA(TP)) / (0.015 × mean_absolute_deviation)

    Returns 0 if the deviation is zero.  Requires at least *period* candles.
    """
    if period < 1 or len(candles) < period:
        return None
    recent = [_typical_price(c) for c in candles[-period:]]
    sma = sum(recent) / period
    mean_dev = sum(abs(tp - sma) for tp in recent) / period
    if mean_dev == 0:
        return 0.0
    return (recent[-1] - sma) / (0.015 * mean_dev)


# ── Trend structure ──────────────────────────────────────────────────────


def calculate_ichimoku(candles: Sequence[Candle]) -> Optional[Ichimoku]:
    """Ichimoku lines on the latest candle.

    Conversion = 9-period midpoint, base = 26-period midpoint, leading
    span A = their average, leading span B = 52-period midpoint, lagging
    span = current close.  Requires at least 52 candles.
    """
    if len(candles) < 52:
        return None
    conversion = _midpoint(candles[-9:])
    base = _midpoint(candles[-26:])
    return Ichimoku(
        conversion_line=conversion,
        base_line=base,
        leading_span_a=(conversion + base) / 2.0,
        leading_span_b=_midpoint(candles[-52:]),
        lagging_span=candles[-1].close,
    )


def calculate_market_structure(
    candles: Sequence[Candle],
    lookback: int = 20,
) -> Optional[MarketStructure]:
    """Count swing progressions over the last *lookback* candles.

    Bullish count = higher highs + higher lows; bearish count = lower lows
    + lower highs.  Trend is BULLISH only if the bullish count is strictly
    greater.  ``strength = |bullish − bearish| / (lookback − 1)``.

    Requires at least *lookback* candles (and ``lookback >= 2``).
    """
    if lookback < 2 or len(candles) < lookback:
        return None

    recent = candles[-lookback:]
    hh = ll = hl = lh = 0
    for prev, cur in zip(recent, recent[1:]):
        if cur.high > prev.high:
            hh += 1
        if cur.low < prev.low:
            ll += 1
        if cur.low > prev.low:
            hl += 1
        if cur.high < prev.high:
            lh += 1

    bullish = hh + hl
    bearish = ll + lh
    return MarketStructure(
        trend="BULLISH" if bullish > bearish else "BEARISH",
        strength=abs(bullish - bearish) / (lookback - 1),
        higher_highs=hh,
        lower_lows=ll,
        higher_lows=hl,
        lower_highs=lh,
    )


# ── Risk context ─────────────────────────────────────────────────────────


def calculate_volatility(closes: Sequence[float], period: int = 20) -> Optional[float]:
    """Coefficient of variation (population σ / mean) of the last *period* closes."""
    if period < 1 or len(closes) < period:
        return None
    recent = closes[-period:]
    mean = sum(recent) / period
    if mean == 0:
        raise CalculationError("Volatility undefined: mean close is zero")
    variance = sum((x - mean) ** 2 for x in recent) / period
    return math.sqrt(variance) / mean


def calculate_support_resistance(
    candles: Sequence[Candle],
    lookback: int = 25,
) -> Optional[SupportResistance]:
    """Find 5-candle fractal pivots in the last *lookback* candles.

    A resistance pivot's high is strictly above the two highs on each side;
    a support pivot's low is strictly below the two lows on each side.
    Keeps at most five levels per side: support ascending, resistance
    descending.  Requires at least *lookback* candles (and ``lookback >= 5``).
    """
    if lookback < 5 or len(candles) < lookback:
        return None

    recent = candles[-lookback:]
    resistance: list[float] = []
    support: list[float] = []
    for i in range(2, len(recent) - 2):
        neighbours = recent[i - 2 : i] + recent[i + 1 : i + 3]
        if all(recent[i].high > n.high for n in neighbours):
            resistance.append(recent[i].high)
        if all(recent[i].low < n.low for n in neighbours):
            support.append(recent[i].low)

    return SupportResistance(
        support=sorted(support)[:5],
        resistance=sorted(resistance, reverse=True)[:5],
        highest_high=max(c.high for c in recent),
        lowest_low=min(c.low for c in recent),
    )
