"""Periodic scheduling and supervision of the scan and poll loops.

``PeriodicTask`` fires its callback every ``interval_seconds``.  A tick that
arrives while the previous one is still running is skipped, not queued.
Tests drive ``tick()`` directly instead of waiting on the clock.

``Supervisor`` restarts a task's loop after an unexpected failure, alerting
the notifier first.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from futurescan.errors import NotificationError, RepeatedFailure
from futurescan.events import AlertEvent

logger = logging.getLogger("futurescan.scheduler")


class PeriodicTask:
    """A named, non-overlapping periodic job.

    Args:
        name: Used in logs and alerts.
        interval_seconds: Time between tick starts.
        callback: Coroutine function run on each tick.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[object]],
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._busy = False
        self._stopping = False
        self._wake = asyncio.Event()
        self._inflight: set[asyncio.Task] = set()
        self._failure: Optional[BaseException] = None
        self.tick_count = 0
        self.skipped_count = 0
        self.last_started_at: Optional[datetime] = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def stopping(self) -> bool:
        return self._stopping

    async def tick(self) -> bool:
        """Run the callback once.  Returns ``False`` if skipped as busy."""
        if self._busy:
            self.skipped_count += 1
            logger.warning("%s still running, skipping tick", self.name)
            return False

        self._busy = True
        self.tick_count += 1
        self.last_started_at = datetime.now(timezone.utc)
        try:
            await self._callback()
        finally:
            self._busy = False
        return True

    def _on_tick_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and self._failure is None:
            self._failure = exc
            self._wake.set()

    async def run(self) -> None:
        """Fire ticks until :meth:`stop` is called.

        The first tick fires immediately.  An exception escaping a tick
        ends the loop and is re-raised once in-flight ticks have finished.
        A task that has been stopped stays stopped: calling run() again
        returns without firing.
        """
        self._failure = None
        self._wake.clear()
        logger.info("%s scheduled every %.0fs", self.name, self.interval_seconds)

        while not self._stopping:
            task = asyncio.create_task(self.tick())
            self._inflight.add(task)
            task.add_done_callback(self._on_tick_done)

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            if self._failure is not None:
                break

        # No cancellation: in-flight work is allowed to finish.
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

        if self._failure is not None:
            exc, self._failure = self._failure, None
            raise exc
        logger.info("%s stopped", self.name)

    def stop(self) -> None:
        """Stop scheduling new ticks.  In-flight ticks run to completion."""
        self._stopping = True
        self._wake.set()


class Supervisor:
    """Keeps periodic loops alive.

    Args:
        notifier: Receives an ``AlertEvent`` for every unexpected crash.
        restart_delay_seconds: Pause before restarting a crashed loop.
    """

    def __init__(self, notifier, restart_delay_seconds: float = 5.0) -> None:
        self._notifier = notifier
        self._restart_delay = restart_delay_seconds
        self.restarts: dict[str, int] = {}

    async def supervise(self, task: PeriodicTask) -> None:
        """Run ``task.run()`` and restart it after failures until stopped."""
        while True:
            try:
                await task.run()
                return
            except RepeatedFailure:
                # The alert for this was already sent by the scanner.
                logger.exception("%s hit repeated failures, restarting", task.name)
            except Exception as exc:
                logger.exception("%s crashed, restarting", task.name)
                await self._alert(task.name, exc)

            if task.stopping:
                return
            self.restarts[task.name] = self.restarts.get(task.name, 0) + 1
            await asyncio.sleep(self._restart_delay)
            if task.stopping:
                logger.info("%s stopped during restart delay", task.name)
                return

    async def _alert(self, context: str, exc: Exception) -> None:
        try:
            await self._notifier.send_alert(
                AlertEvent(context=context, error_description=f"{type(exc).__name__}: {exc}")
            )
        except NotificationError as notify_exc:
            logger.error("Could not send alert for %s: %s", context, notify_exc)
