"""Strategy data models — indicator readings and scored signals.

Every optional reading is ``None`` when the window was too short or the
collaborator was unavailable.  Scoring checks for ``None`` explicitly and
never treats absence as zero.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

Direction = Literal["LONG", "SHORT"]
Confidence = Literal["MEDIUM", "HIGH"]
RiskLevel = Literal["LOW", "MEDIUM", "HIGH", "EXTREME"]


# ── Indicator readings ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Supertrend:
    """Supertrend reading.  ``direction`` is 1 (bullish) or -1 (bearish)."""

    value: float
    direction: int
    upper_band: float
    lower_band: float


@dataclass(frozen=True)
class Ichimoku:
    conversion_line: float  # tenkan-sen
    base_line: float  # kijun-sen
    leading_span_a: float
    leading_span_b: float
    lagging_span: float


@dataclass(frozen=True)
class MarketStructure:
    trend: Literal["BULLISH", "BEARISH"]
    strength: float
    higher_highs: int
    lower_lows: int
    higher_lows: int
    lower_highs: int


@dataclass(frozen=True)
class SupportResistance:
    """Pivot levels.  ``support`` ascending, ``resistance`` descending."""

    support: list[float]
    resistance: list[float]
    highest_high: float
    lowest_low: float

    @property
    def range(self) -> float:
        return self.highest_high - self.lowest_low


@dataclass(frozen=True)
class TrendIndicators:
    ema_fast: Optional[float] = None
    ema_medium: Optional[float] = None
    ema_slow: Optional[float] = None
    supertrend: Optional[Supertrend] = None
    ichimoku: Optional[Ichimoku] = None
    market_structure: Optional[MarketStructure] = None


@dataclass(frozen=True)
class MomentumIndicators:
    mfi: Optional[float] = None
    williams_r: Optional[float] = None
    cci: Optional[float] = None


@dataclass(frozen=True)
class VolumeIndicators:
    vwap: Optional[float] = None
    obv: Optional[float] = None


@dataclass(frozen=True)
class FuturesIndicators:
    funding_rate: Optional[float] = None
    mark_price: Optional[float] = None
    open_interest: Optional[float] = None
    liquidation_ratio: Optional[float] = None


@dataclass(frozen=True)
class RiskIndicators:
    atr: Optional[float] = None
    volatility: Optional[float] = None
    support_resistance: Optional[SupportResistance] = None


@dataclass(frozen=True)
class IndicatorSet:
    """All indicator readings for one symbol at one point in time."""

    trend: TrendIndicators = field(default_factory=TrendIndicators)
    momentum: MomentumIndicators = field(default_factory=MomentumIndicators)
    volume: VolumeIndicators = field(default_factory=VolumeIndicators)
    futures: FuturesIndicators = field(default_factory=FuturesIndicators)
    risk: RiskIndicators = field(default_factory=RiskIndicators)


# ── Scoring output ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class CategoryScore:
    """Contribution of one scoring category.

    ``weight`` is the maximum points of the components whose inputs were
    present; ``details`` is a JSON-friendly breakdown.
    """

    long_score: float
    short_score: float
    weight: float
    details: dict


@dataclass(frozen=True)
class ScoredSignal:
    """Direction and confidence decided by the scorer, before risk checks."""

    direction: Direction
    strength: float
    confidence: Confidence
    analysis: dict[str, dict]


@dataclass(frozen=True)
class Signal:
    """A fully validated trading signal."""

    direction: Direction
    strength: float
    confidence: Confidence
    risk_level: RiskLevel
    warnings: tuple[str, ...]
    analysis: dict[str, dict]
