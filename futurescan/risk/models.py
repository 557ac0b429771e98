"""Risk data models — price levels, position sizing, validation result."""

from dataclasses import dataclass
from typing import Optional

from futurescan.strategy.models import RiskLevel


@dataclass(frozen=True)
class TakeProfits:
    """Three-step take-profit ladder."""

    tp1: float
    tp2: float
    tp3: float

    def as_list(self) -> list[float]:
        return [self.tp1, self.tp2, self.tp3]


@dataclass(frozen=True)
class PositionInfo:
    """Position sizing derived from account risk and stop distance."""

    position_size: float
    base_size: float
    margin: float
    leverage: int
    risk_amount: float
    risk_percentage: float
    price_risk_percentage: float
    liquidation_price: Optional[float] = None


@dataclass(frozen=True)
class RiskParameters:
    """Entry, exits and sizing for one accepted signal."""

    entry_price: float
    take_profits: TakeProfits
    stop_loss: float
    risk_reward_ratios: tuple[float, float, float]
    position_info: PositionInfo


@dataclass(frozen=True)
class RiskValidation:
    """Outcome of the risk checks.

    ``warnings`` are advisory; ``blocking`` lists the failures that make
    the parameters unusable.
    """

    is_valid: bool
    warnings: tuple[str, ...]
    blocking: tuple[str, ...]
    risk_level: RiskLevel
    risk_score: int
