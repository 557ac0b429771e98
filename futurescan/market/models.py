"""Market data models — typed representations of exchange REST objects."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar.  ``timestamp`` is the open time in epoch ms."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Ticker:
    """24h ticker snapshot for one symbol."""

    symbol: str
    last: float
    quote_volume: float
    percentage: float


@dataclass(frozen=True)
class FuturesSnapshot:
    """Perpetual-futures context for one symbol.

    Each field is ``None`` when the corresponding endpoint was unavailable.
    ``liquidation_ratio`` is the long share of liquidated quantity over the
    last hour.
    """

    symbol: str
    funding_rate: Optional[float] = None
    mark_price: Optional[float] = None
    open_interest: Optional[float] = None
    liquidation_ratio: Optional[float] = None
    liquidation_value: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.funding_rate is None
            and self.mark_price is None
            and self.open_interest is None
            and self.liquidation_ratio is None
        )
