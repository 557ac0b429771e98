"""Market scanner — one scan cycle over the top-volume symbols.

Symbols are analysed in sequential batches; symbols within a batch run
concurrently.  A failing symbol is counted and skipped.  A cycle fails
when the symbol list cannot be fetched or every analysed symbol failed;
after ``max_consecutive_errors`` failed cycles an alert is sent, the
counter resets and ``RepeatedFailure`` is raised for the supervisor.

Every tenth scan that completes also sends a ``SCAN_SUMMARY`` status event.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Optional

from futurescan.cache import ExpiringCache
from futurescan.config import Config
from futurescan.errors import ExternalFetchError, NotificationError, RepeatedFailure
from futurescan.events import AlertEvent, SignalEvent, StatusEvent
from futurescan.pipeline import evaluate_symbol

logger = logging.getLogger("futurescan.scanner")

HISTORY_SIZE = 100
RECENT_SCANS_FOR_STATS = 10
SUMMARY_EVERY_SCANS = 10


@dataclass(frozen=True)
class ScanRecord:
    scan_number: int
    timestamp: datetime
    symbols_analyzed: int
    signals_found: int
    errors: int
    duration_seconds: float

    @property
    def success_rate(self) -> float:
        if self.symbols_analyzed == 0:
            return 0.0
        return self.signals_found / self.symbols_analyzed * 100

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["success_rate"] = round(self.success_rate, 1)
        return data


class MarketScanner:
    """Runs scan cycles and hands accepted signals to the notifier and monitor.

    Args:
        exchange: ``ExchangeClient`` or compatible (symbols and candles).
        futures: ``FuturesDataClient`` or compatible (``get_snapshot``).
        notifier: Receives signal and alert events.
        monitor: ``TradeMonitor`` to register trades with, or ``None``.
        config: Application configuration.
        clock: Monotonic clock for the duplicate-signal cache.
    """

    def __init__(
        self,
        exchange,
        futures,
        notifier,
        monitor,
        config: Config,
        clock=time.monotonic,
    ) -> None:
        self._exchange = exchange
        self._futures = futures
        self._notifier = notifier
        self._monitor = monitor
        self._config = config
        self._recent_signals = ExpiringCache(
            ttl_seconds=config.signal_cooldown_minutes * 60,
            clock=clock,
        )
        self._history: deque[ScanRecord] = deque(maxlen=HISTORY_SIZE)
        self.scan_count = 0
        self.total_signals = 0
        self.daily_signals = 0
        self.consecutive_errors = 0
        self._counter_day: Optional[date] = None

    # ── Cycle ────────────────────────────────────────────────────────────

    async def scan(self, utc_now: Optional[datetime] = None) -> Optional[ScanRecord]:
        """Run one scan cycle.

        Returns the cycle's record, or ``None`` if the cycle failed.

        Raises:
            RepeatedFailure: The consecutive failure threshold was reached.
        """
        now = utc_now or datetime.now(timezone.utc)
        self.scan_count += 1
        self._reset_daily_counter(now)
        logger.info("Starting market scan #%d", self.scan_count)

        try:
            record = await self._run_cycle(now)
        except ExternalFetchError as exc:
            await self._on_cycle_failure(exc)
            return None

        self.consecutive_errors = 0
        self._history.appendleft(record)
        logger.info(
            "Scan #%d done in %.2fs: %d signals from %d symbols (%d errors)",
            record.scan_number, record.duration_seconds, record.signals_found,
            record.symbols_analyzed, record.errors,
        )
        if self.scan_count % SUMMARY_EVERY_SCANS == 0:
            await self._send_summary(record)
        return record

    async def _run_cycle(self, now: datetime) -> ScanRecord:
        started = time.monotonic()
        cfg = self._config
        symbols = await self._exchange.fetch_top_volume_symbols(
            limit=cfg.max_tokens_per_scan,
            min_quote_volume=cfg.min_volume_usdt,
        )
        if not symbols:
            logger.warning("No symbols passed the volume filter")

        analyzed = 0
        signals = 0
        errors = 0
        batch_size = cfg.scan_batch_size

        for start in range(0, len(symbols), batch_size):
            batch = symbols[start:start + batch_size]
            results = await asyncio.gather(
                *(self._analyze(symbol, now) for symbol in batch),
                return_exceptions=True,
            )
            for symbol, result in zip(batch, results):
                analyzed += 1
                if isinstance(result, Exception):
                    errors += 1
                    logger.warning("Analysis failed for %s: %s", symbol, result)
                elif result is not None and await self._dispatch(result):
                    signals += 1
            if start + batch_size < len(symbols):
                await asyncio.sleep(cfg.batch_delay_seconds)

        if analyzed and errors == analyzed:
            raise ExternalFetchError(f"all {analyzed} symbols failed")

        return ScanRecord(
            scan_number=self.scan_count,
            timestamp=now,
            symbols_analyzed=analyzed,
            signals_found=signals,
            errors=errors,
            duration_seconds=time.monotonic() - started,
        )

    async def _analyze(self, symbol: str, now: datetime) -> Optional[SignalEvent]:
        cfg = self._config
        candles = await self._exchange.fetch_candles(
            symbol, timeframe=cfg.scan_timeframe, limit=cfg.candle_limit
        )
        if candles is None:
            raise ExternalFetchError(f"no candles for {symbol}")
        snapshot = await self._futures.get_snapshot(symbol)
        return evaluate_symbol(symbol, candles, snapshot, cfg, now)

    async def _dispatch(self, event: SignalEvent) -> bool:
        """Send a signal and register its trade.  Returns ``True`` if sent."""
        key = (event.symbol, event.direction)
        if key in self._recent_signals:
            logger.info("Duplicate %s %s signal suppressed", event.symbol, event.direction)
            return False

        try:
            await self._notifier.send_signal(event)
        except NotificationError as exc:
            logger.error("Failed to send signal for %s: %s", event.symbol, exc)
            return False
        # Only delivered signals start the cooldown
        self._recent_signals.set(key, True)

        if self._monitor is not None:
            self._monitor.add_trade(event)
        self.total_signals += 1
        self.daily_signals += 1
        await asyncio.sleep(self._config.signal_delay_seconds)
        return True

    async def _on_cycle_failure(self, exc: Exception) -> None:
        self.consecutive_errors += 1
        logger.error(
            "Market scan #%d failed (%d/%d): %s",
            self.scan_count, self.consecutive_errors,
            self._config.max_consecutive_errors, exc,
        )
        if self.consecutive_errors < self._config.max_consecutive_errors:
            return

        count = self.consecutive_errors
        self.consecutive_errors = 0
        try:
            await self._notifier.send_alert(AlertEvent(
                context=f"Market scan #{self.scan_count}",
                error_description=f"{count} consecutive scan failures, last: {exc}",
            ))
        except NotificationError as notify_exc:
            logger.error("Could not send scan failure alert: %s", notify_exc)
        raise RepeatedFailure(f"{count} consecutive scan failures") from exc

    async def _send_summary(self, record: ScanRecord) -> None:
        stats = self.get_statistics()
        message = (
            f"Scan #{record.scan_number}: {record.signals_found} signals from "
            f"{record.symbols_analyzed} symbols; {stats['daily_signals']} signals today, "
            f"avg success {stats['avg_success_rate']:.1f}% over the last "
            f"{stats['recent_scans']} scans"
        )
        details = {
            **stats,
            "last_scan_record": record.to_dict(),
            "min_confidence": self._config.min_confidence,
            "max_consecutive_errors": self._config.max_consecutive_errors,
        }
        try:
            await self._notifier.send_status(StatusEvent("SCAN_SUMMARY", message, details))
        except NotificationError as exc:
            logger.error("Failed to send scan summary: %s", exc)

    def _reset_daily_counter(self, now: datetime) -> None:
        today = now.astimezone(timezone.utc).date()
        if self._counter_day is not None and today != self._counter_day:
            self.daily_signals = 0
            logger.info("Daily signal counter reset")
        self._counter_day = today

    # ── Queries ──────────────────────────────────────────────────────────

    def get_history(self, limit: Optional[int] = None) -> list[ScanRecord]:
        records = list(self._history)
        return records if limit is None else records[:limit]

    def get_statistics(self) -> dict:
        recent = list(self._history)[:RECENT_SCANS_FOR_STATS]
        avg_success = (
            sum(r.success_rate for r in recent) / len(recent) if recent else 0.0
        )
        avg_duration = (
            sum(r.duration_seconds for r in recent) / len(recent) if recent else 0.0
        )
        return {
            "total_scans": self.scan_count,
            "total_signals": self.total_signals,
            "daily_signals": self.daily_signals,
            "consecutive_errors": self.consecutive_errors,
            "avg_success_rate": round(avg_success, 1),
            "avg_duration_seconds": round(avg_duration, 2),
            "last_scan": recent[0].timestamp.isoformat() if recent else None,
            "recent_scans": len(recent),
        }
