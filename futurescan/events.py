"""Notification payloads emitted by the scanner and the trade monitor.

Formatting is the notifier's job; these carry structured data only.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional

TradeEventType = Literal["ENTRY_FILLED", "TP_HIT", "SL_HIT", "EXPIRED"]
StatusKind = Literal["STARTUP", "SCAN_SUMMARY"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SignalEvent:
    """An accepted signal together with its risk parameters."""

    symbol: str
    current_price: float
    entry_price: float
    take_profits: dict[str, float]
    stop_loss: float
    risk_reward_ratios: list[float]
    position_info: dict
    indicators: dict
    signal: dict
    timestamp: str = field(default_factory=_now_iso)

    @property
    def direction(self) -> str:
        return self.signal["direction"]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TradeEvent:
    """A lifecycle transition on a monitored trade."""

    symbol: str
    type: TradeEventType
    price: float
    message: str
    trade_id: Optional[str] = None
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AlertEvent:
    """Escalation after repeated scan failures."""

    context: str
    error_description: str
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StatusEvent:
    """Operational status: the startup notice and the periodic scan summary."""

    kind: StatusKind
    message: str
    details: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)
