"""Trade monitor data models."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Literal, Optional

from futurescan.events import TradeEventType
from futurescan.risk.models import PositionInfo, TakeProfits
from futurescan.strategy.models import Direction

TradeStatus = Literal["ACTIVE", "COMPLETED", "STOPPED_OUT", "EXPIRED", "MANUAL_REMOVAL"]
CloseReason = Literal["TP3_HIT", "STOP_LOSS", "EXPIRED", "MANUAL_REMOVAL"]

TERMINAL_STATUSES: frozenset[str] = frozenset(
    {"COMPLETED", "STOPPED_OUT", "EXPIRED", "MANUAL_REMOVAL"}
)


@dataclass(frozen=True)
class TradeNotification:
    type: TradeEventType
    price: float
    message: str
    timestamp: datetime


@dataclass
class TpHits:
    tp1: bool = False
    tp2: bool = False
    tp3: bool = False


@dataclass
class Trade:
    """A monitored position.

    Mutated only by the monitor's polling cycle for its own id.  Once
    ``status`` leaves ACTIVE it never changes again.
    """

    id: str
    symbol: str
    direction: Direction
    entry_price: float
    current_price: float
    take_profits: TakeProfits
    stop_loss: float
    position_info: PositionInfo
    created_at: datetime
    signal: dict = field(default_factory=dict)
    status: TradeStatus = "ACTIVE"
    tp_hit: TpHits = field(default_factory=TpHits)
    sl_hit: bool = False
    entry_filled: bool = False
    pnl: float = 0.0
    pnl_percentage: float = 0.0
    max_pnl: float = 0.0
    min_pnl: float = 0.0
    notifications: list[TradeNotification] = field(default_factory=list)
    last_checked_at: Optional[datetime] = None

    # Set on archival
    close_reason: Optional[CloseReason] = None
    closed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("created_at", "last_checked_at", "closed_at"):
            value = data[key]
            data[key] = value.isoformat() if value is not None else None
        data["notifications"] = [
            {**n, "timestamp": n["timestamp"].isoformat()} for n in data["notifications"]
        ]
        return data
