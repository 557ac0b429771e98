"""Entry, take-profit and stop-loss derivation — pure math, no I/O.

All distances start from ATR multiples tiered by signal confidence and are
then clamped against structure: the Supertrend band, VWAP, the nearest
support/resistance pivot and the medium EMA.

For LONG the ordering ``stop < entry < tp1 < tp2 < tp3`` is expected;
SHORT mirrors it.  Callers reject a ladder that ends up out of order.
"""

from typing import Optional

from futurescan.strategy.models import Direction, IndicatorSet
from futurescan.risk.models import TakeProfits

_ENTRY_BAND_NUDGE = 0.001
_VWAP_TOLERANCE = 0.002
_VWAP_NUDGE = 0.001
_TP1_PIVOT_BUFFER = 0.005
_TP2_PIVOT_BUFFER = 0.01
_TP2_PIVOT_REACH = 0.1
_TP2_BAND_BUFFER = 0.01
_SL_BAND_BUFFER = 0.002
_SL_PIVOT_BUFFER = 0.005
_SL_EMA_BUFFER = 0.01


def _check_direction(direction: str) -> None:
    if direction not in ("LONG", "SHORT"):
        raise ValueError(f"direction must be 'LONG' or 'SHORT', got '{direction}'")


def nearest_resistance(indicators: IndicatorSet, price: float) -> Optional[float]:
    """Lowest resistance pivot strictly above *price*."""
    sr = indicators.risk.support_resistance
    if sr is None:
        return None
    above = [r for r in sr.resistance if r > price]
    return min(above) if above else None


def nearest_support(indicators: IndicatorSet, price: float) -> Optional[float]:
    """Highest support pivot strictly below *price*."""
    sr = indicators.risk.support_resistance
    if sr is None:
        return None
    below = [s for s in sr.support if s < price]
    return max(below) if below else None


# ── Entry ────────────────────────────────────────────────────────────────


def calculate_entry_price(
    current_price: float,
    direction: Direction,
    atr: float,
    atr_multiplier: float,
    indicators: IndicatorSet,
) -> float:
    """Place a limit entry on a pullback from *current_price*.

    - **LONG**: ``current − atr × multiplier``, raised to just above the
      active (bullish) Supertrend band and to just below VWAP if it would
      sit more than 0.2 % under either.
    - **SHORT**: mirrored above the price.
    """
    _check_direction(direction)
    adjustment = atr * atr_multiplier
    st = indicators.trend.supertrend
    vwap = indicators.volume.vwap

    if direction == "LONG":
        entry = current_price - adjustment
        if st is not None and st.direction == 1 and entry < st.value:
            entry = st.value * (1 + _ENTRY_BAND_NUDGE)
        if vwap is not None and entry < vwap * (1 - _VWAP_TOLERANCE):
            entry = vwap * (1 - _VWAP_NUDGE)
    else:
        entry = current_price + adjustment
        if st is not None and st.direction == -1 and entry > st.value:
            entry = st.value * (1 - _ENTRY_BAND_NUDGE)
        if vwap is not None and entry > vwap * (1 + _VWAP_TOLERANCE):
            entry = vwap * (1 + _VWAP_NUDGE)
    return entry


# ── Take profits ─────────────────────────────────────────────────────────


def calculate_take_profits(
    entry_price: float,
    direction: Direction,
    atr: float,
    multipliers: tuple[float, float, float],
    indicators: IndicatorSet,
) -> TakeProfits:
    """Three ATR-distance targets clamped in front of structure.

    TP1 is pulled in to 0.5 % before the nearest pivot beyond entry.  TP2
    is pulled in to 1 % before that pivot when it overshoots it by less
    than 10 %, and in front of the opposite Supertrend band.  TP3 keeps its
    ATR distance.
    """
    _check_direction(direction)
    st = indicators.trend.supertrend

    if direction == "LONG":
        tp1, tp2, tp3 = (entry_price + atr * m for m in multipliers)
        pivot = nearest_resistance(indicators, entry_price)
        if pivot is not None:
            tp1 = min(tp1, pivot * (1 - _TP1_PIVOT_BUFFER))
            if pivot * (1 - _TP2_PIVOT_BUFFER) < tp2 < pivot * (1 + _TP2_PIVOT_REACH):
                tp2 = pivot * (1 - _TP2_PIVOT_BUFFER)
        if st is not None and tp2 > st.upper_band:
            tp2 = st.upper_band * (1 - _TP2_BAND_BUFFER)
    else:
        tp1, tp2, tp3 = (entry_price - atr * m for m in multipliers)
        pivot = nearest_support(indicators, entry_price)
        if pivot is not None:
            tp1 = max(tp1, pivot * (1 + _TP1_PIVOT_BUFFER))
            if pivot * (1 - _TP2_PIVOT_REACH) < tp2 < pivot * (1 + _TP2_PIVOT_BUFFER):
                tp2 = pivot * (1 + _TP2_PIVOT_BUFFER)
        if st is not None and tp2 < st.lower_band:
            tp2 = st.lower_band * (1 + _TP2_BAND_BUFFER)

    return TakeProfits(tp1=tp1, tp2=tp2, tp3=tp3)


def is_ladder_ordered(
    direction: Direction,
    entry_price: float,
    stop_loss: float,
    take_profits: TakeProfits,
) -> bool:
    """``stop < entry < tp1 < tp2 < tp3`` for LONG, reversed for SHORT."""
    levels = [stop_loss, entry_price, *take_profits.as_list()]
    if direction == "SHORT":
        levels = [-x for x in levels]
    return all(a < b for a, b in zip(levels, levels[1:]))


# ── Stop loss ────────────────────────────────────────────────────────────


def calculate_stop_loss(
    entry_price: float,
    direction: Direction,
    atr: float,
    atr_multiplier: float,
    indicators: IndicatorSet,
) -> float:
    """ATR stop, tightened behind structure.

    Candidate levels on the stop side are the active Supertrend band, the
    nearest support (LONG) / resistance (SHORT) pivot and the medium EMA,
    each with a small buffer.  A candidate only counts if it lies between
    the ATR stop and the entry; the one closest to the entry wins.  The
    stop is therefore never looser than its ATR distance.
    """
    _check_direction(direction)
    st = indicators.trend.supertrend
    ema_medium = indicators.trend.ema_medium
    candidates: list[float] = []

    if direction == "LONG":
        base = entry_price - atr * atr_multiplier
        if st is not None and st.direction == 1:
            candidates.append(st.value * (1 - _SL_BAND_BUFFER))
        support = nearest_support(indicators, entry_price)
        if support is not None:
            candidates.append(support * (1 - _SL_PIVOT_BUFFER))
        if ema_medium is not None:
            candidates.append(ema_medium * (1 - _SL_EMA_BUFFER))
        eligible = [c for c in candidates if base < c < entry_price]
        return max(eligible) if eligible else base

    base = entry_price + atr * atr_multiplier
    if st is not None and st.direction == -1:
        candidates.append(st.value * (1 + _SL_BAND_BUFFER))
    resistance = nearest_resistance(indicators, entry_price)
    if resistance is not None:
        candidates.append(resistance * (1 + _SL_PIVOT_BUFFER))
    if ema_medium is not None:
        candidates.append(ema_medium * (1 + _SL_EMA_BUFFER))
    eligible = [c for c in candidates if entry_price < c < base]
    return min(eligible) if eligible else base


# ── Risk / reward ────────────────────────────────────────────────────────


def calculate_risk_reward(
    entry_price: float,
    stop_loss: float,
    take_profits: list[float],
) -> list[float]:
    """``|tp − entry| / |entry − stop|`` for each target.

    Raises ``ValueError`` if the stop sits on the entry.
    """
    risk = abs(entry_price - stop_loss)
    if risk == 0:
        raise ValueError("stop_loss must differ from entry_price")
    return [abs(tp - entry_price) / risk for tp in take_profits]
