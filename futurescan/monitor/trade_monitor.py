"""Trade lifecycle monitor — registers accepted signals and polls them.

State machine per trade::

    ACTIVE ──► COMPLETED       (tp3 hit, after tp1 and tp2)
           ──► STOPPED_OUT     (stop hit, once filled)
           ──► EXPIRED         (older than the expiry window)
           ──► MANUAL_REMOVAL  (remove_trade)

Every non-ACTIVE status is terminal.  Per poll a trade is processed as:
price fetch → fill gate → PnL → TP cascade → stop → expiry.  A failed price
fetch leaves the trade untouched until the next poll.

Only one poll cycle runs at a time (the scheduler skips overlapping ticks)
and each trade is handled by exactly one task per cycle, so the active
registry needs no locking.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from futurescan.errors import ExternalFetchError, NotificationError
from futurescan.events import SignalEvent, TradeEvent, TradeEventType
from futurescan.monitor.models import CloseReason, Trade, TradeNotification, TradeStatus
from futurescan.risk.models import PositionInfo, TakeProfits

logger = logging.getLogger("futurescan.monitor")

RECENT_TRADES_FOR_STATS = 10


class PriceSource(Protocol):
    async def fetch_price(self, symbol: str) -> Optional[float]: ...


def make_trade_id(symbol: str, direction: str, created_at: datetime) -> str:
    """``SYMBOL_DIRECTION_<minute bucket>`` — stable within one minute."""
    minute_bucket = int(created_at.timestamp() // 60)
    return f"{symbol.replace('/', '')}_{direction}_{minute_bucket}"


def format_price(price: float) -> str:
    if price >= 1:
        return f"{price:.4f}"
    if price >= 0.01:
        return f"{price:.6f}"
    return f"{price:.8f}"


def _reached(direction: str, price: float, level: float) -> bool:
    """True when *price* is at or beyond *level* in the profit direction."""
    return price >= level if direction == "LONG" else price <= level


class TradeMonitor:
    """Tracks accepted signals as trades until they reach a terminal state.

    Args:
        prices: Anything with ``async fetch_price(symbol) -> float | None``.
        notifier: Receives a ``TradeEvent`` for every lifecycle transition.
        expiry_hours: Age after which an ACTIVE trade is expired.
        archive_size: Capacity of the newest-first archive.
        batch_size: Trades polled concurrently per batch.
        batch_delay_seconds: Pause between batches.
    """

    def __init__(
        self,
        prices: PriceSource,
        notifier,
        expiry_hours: float = 24.0,
        archive_size: int = 50,
        batch_size: int = 5,
        batch_delay_seconds: float = 1.0,
    ) -> None:
        self._prices = prices
        self._notifier = notifier
        self._expiry = timedelta(hours=expiry_hours)
        self._batch_size = batch_size
        self._batch_delay = batch_delay_seconds
        self._active: dict[str, Trade] = {}
        self._archive: deque[Trade] = deque(maxlen=archive_size)
        self._last_poll_at: Optional[datetime] = None

    # ── Registration ─────────────────────────────────────────────────────

    def add_trade(self, event: SignalEvent) -> str:
        """Register an accepted signal and return its trade id.

        Registering the same symbol and direction again within the same
        minute returns the existing id without creating a second trade.
        """
        created_at = datetime.fromisoformat(event.timestamp)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        trade_id = make_trade_id(event.symbol, event.direction, created_at)
        if trade_id in self._active:
            return trade_id

        self._active[trade_id] = Trade(
            id=trade_id,
            symbol=event.symbol,
            direction=event.direction,
            entry_price=event.entry_price,
            current_price=event.current_price,
            take_profits=TakeProfits(**event.take_profits),
            stop_loss=event.stop_loss,
            position_info=PositionInfo(**event.position_info),
            created_at=created_at,
            signal=event.signal,
        )
        logger.info("Trade %s added (%s %s)", trade_id, event.symbol, event.direction)
        return trade_id

    def remove_trade(self, trade_id: str, utc_now: Optional[datetime] = None) -> bool:
        """Close an ACTIVE trade as MANUAL_REMOVAL.  No event is emitted."""
        trade = self._active.get(trade_id)
        if trade is None:
            return False
        now = utc_now or datetime.now(timezone.utc)
        self._close(trade, "MANUAL_REMOVAL", "MANUAL_REMOVAL", now)
        return True

    # ── Polling ──────────────────────────────────────────────────────────

    async def poll(self, utc_now: Optional[datetime] = None) -> int:
        """Check every active trade once, in sequential concurrent batches.

        Returns the number of trades checked.
        """
        trades = list(self._active.values())
        if not trades:
            return 0

        now = utc_now or datetime.now(timezone.utc)
        logger.debug("Checking %d active trades", len(trades))

        for start in range(0, len(trades), self._batch_size):
            batch = trades[start:start + self._batch_size]
            results = await asyncio.gather(
                *(self._check_trade(t, now) for t in batch),
                return_exceptions=True,
            )
            for trade, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.error("Error checking trade %s: %s", trade.id, result)
            if start + self._batch_size < len(trades):
                await asyncio.sleep(self._batch_delay)

        self._last_poll_at = now
        return len(trades)

    async def force_check(
        self, trade_id: str, utc_now: Optional[datetime] = None
    ) -> Optional[Trade]:
        """Re-check one trade immediately.  Returns it, or None if unknown."""
        trade = self._active.get(trade_id)
        if trade is None:
            return None
        await self._check_trade(trade, utc_now or datetime.now(timezone.utc))
        return trade

    async def _check_trade(self, trade: Trade, now: datetime) -> None:
        try:
            price = await self._prices.fetch_price(trade.symbol)
        except ExternalFetchError as exc:
            logger.warning("Price fetch failed for %s (%s): %s", trade.symbol, trade.id, exc)
            return
        if price is None:
            logger.debug("No price for %s, retrying next poll", trade.symbol)
            return

        for event in self.apply_price(trade, price, now):
            await self._send(event)

    def apply_price(self, trade: Trade, price: float, now: datetime) -> list[TradeEvent]:
        """Advance *trade* with one observed price.  Returns emitted events."""
        if not trade.is_active:
            return []

        events: list[TradeEvent] = []
        trade.current_price = price
        trade.last_checked_at = now

        if not trade.entry_filled and self._entry_filled(trade, price):
            trade.entry_filled = True
            events.append(self._record(
                trade, "ENTRY_FILLED", price, now,
                "Entry order filled. Position is now active.",
            ))

        if trade.entry_filled:
            self._update_pnl(trade, price)
            events.extend(self._check_take_profits(trade, price, now))
            if trade.is_active and _reached_stop(trade, price):
                trade.sl_hit = True
                events.append(self._record(
                    trade, "SL_HIT", price, now,
                    f"Stop loss hit. Position closed at ${format_price(price)}. "
                    f"Final PnL: ${trade.pnl:.2f} ({trade.pnl_percentage:.2f}%)",
                ))
                self._close(trade, "STOPPED_OUT", "STOP_LOSS", now)

        if trade.is_active and now - trade.created_at > self._expiry:
            events.append(self._record(
                trade, "EXPIRED", trade.current_price, now,
                f"Trade expired after {self._expiry.total_seconds() / 3600:g} hours. "
                f"Current PnL: ${trade.pnl:.2f} ({trade.pnl_percentage:.2f}%)",
            ))
            self._close(trade, "EXPIRED", "EXPIRED", now)

        return events

    @staticmethod
    def _entry_filled(trade: Trade, price: float) -> bool:
        if trade.direction == "LONG":
            return price <= trade.entry_price
        return price >= trade.entry_price

    @staticmethod
    def _update_pnl(trade: Trade, price: float) -> None:
        if trade.direction == "LONG":
            move_pct = (price - trade.entry_price) / trade.entry_price * 100
        else:
            move_pct = (trade.entry_price - price) / trade.entry_price * 100
        leveraged = move_pct * trade.position_info.leverage
        trade.pnl_percentage = leveraged
        trade.pnl = trade.position_info.margin * leveraged / 100
        trade.max_pnl = max(trade.max_pnl, trade.pnl)
        trade.min_pnl = min(trade.min_pnl, trade.pnl)

    def _check_take_profits(self, trade: Trade, price: float, now: datetime) -> list[TradeEvent]:
        """TP1 → TP2 → TP3 strictly in order; several may fire on one price."""
        events: list[TradeEvent] = []
        tps = trade.take_profits
        hits = trade.tp_hit

        if not hits.tp1 and _reached(trade.direction, price, tps.tp1):
            hits.tp1 = True
            events.append(self._record(
                trade, "TP_HIT", price, now,
                f"TP1 hit at ${format_price(price)}. Take 40% profit and move "
                "the stop to breakeven.",
            ))
        if hits.tp1 and not hits.tp2 and _reached(trade.direction, price, tps.tp2):
            hits.tp2 = True
            events.append(self._record(
                trade, "TP_HIT", price, now,
                f"TP2 hit at ${format_price(price)}. Take 35% more profit and "
                "trail the stop with Supertrend.",
            ))
        if hits.tp2 and not hits.tp3 and _reached(trade.direction, price, tps.tp3):
            hits.tp3 = True
            events.append(self._record(
                trade, "TP_HIT", price, now,
                f"TP3 hit at ${format_price(price)}. Final 25% taken, all targets "
                f"reached. Final PnL: ${trade.pnl:.2f} ({trade.pnl_percentage:.2f}%)",
            ))
            self._close(trade, "COMPLETED", "TP3_HIT", now)
        return events

    # ── Transitions ──────────────────────────────────────────────────────

    def _record(
        self,
        trade: Trade,
        event_type: TradeEventType,
        price: float,
        now: datetime,
        message: str,
    ) -> TradeEvent:
        trade.notifications.append(TradeNotification(event_type, price, message, now))
        return TradeEvent(
            symbol=trade.symbol,
            type=event_type,
            price=price,
            message=message,
            trade_id=trade.id,
            timestamp=now.isoformat(),
        )

    def _close(
        self,
        trade: Trade,
        status: TradeStatus,
        reason: CloseReason,
        now: datetime,
    ) -> None:
        trade.status = status
        trade.close_reason = reason
        trade.closed_at = now
        trade.duration_seconds = (now - trade.created_at).total_seconds()
        self._active.pop(trade.id, None)
        self._archive.appendleft(trade)
        logger.info("Trade %s closed: %s (PnL %.2f)", trade.id, reason, trade.pnl)

    async def _send(self, event: TradeEvent) -> None:
        try:
            await self._notifier.send_trade_update(event)
        except NotificationError as exc:
            logger.error("Failed to send %s update for %s: %s", event.type, event.symbol, exc)
        else:
            logger.info("Trade notification sent for %s: %s", event.trade_id, event.type)

    # ── Queries ──────────────────────────────────────────────────────────

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        return self._active.get(trade_id)

    def get_active_trades(self) -> list[Trade]:
        return list(self._active.values())

    def get_archived_trades(self, limit: Optional[int] = None) -> list[Trade]:
        """Archived trades, newest first."""
        trades = list(self._archive)
        return trades if limit is None else trades[:limit]

    def get_statistics(self) -> dict:
        active = list(self._active.values())
        recent = list(self._archive)[:RECENT_TRADES_FOR_STATS]
        if recent:
            win_rate = sum(1 for t in recent if t.pnl > 0) / len(recent) * 100
            avg_pnl = sum(t.pnl for t in recent) / len(recent)
        else:
            win_rate = 0.0
            avg_pnl = 0.0
        return {
            "active_trades": len(active),
            "archived_trades": len(self._archive),
            "total_unrealized_pnl": round(sum(t.pnl for t in active), 2),
            "recent_win_rate": round(win_rate, 1),
            "recent_avg_pnl": round(avg_pnl, 2),
            "last_check": self._last_poll_at.isoformat() if self._last_poll_at else None,
        }


def _reached_stop(trade: Trade, price: float) -> bool:
    if trade.direction == "LONG":
        return price <= trade.stop_loss
    return price >= trade.stop_loss
