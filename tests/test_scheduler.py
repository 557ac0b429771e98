"""Tests for PeriodicTask and Supervisor."""

import asyncio

import pytest

from futurescan.errors import NotificationError, RepeatedFailure
from futurescan.scheduler import PeriodicTask, Supervisor


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.alerts = []
        self._fail = fail

    async def send_alert(self, event) -> None:
        if self._fail:
            raise NotificationError("channel down")
        self.alerts.append(event)


async def _noop() -> None:
    return None


# ── PeriodicTask ─────────────────────────────────────────────────────────


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError, match="interval_seconds"):
            PeriodicTask("scan", 0, _noop)

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self):
        release = asyncio.Event()
        calls = []

        async def slow():
            calls.append(1)
            await release.wait()

        task = PeriodicTask("scan", 60, slow)
        first = asyncio.create_task(task.tick())
        await asyncio.sleep(0)
        assert task.busy

        assert await task.tick() is False
        assert task.skipped_count == 1

        release.set()
        assert await first is True
        assert not task.busy
        assert calls == [1]
        assert task.tick_count == 1

    @pytest.mark.asyncio
    async def test_busy_flag_cleared_after_error(self):
        async def boom():
            raise RuntimeError("boom")

        task = PeriodicTask("scan", 60, boom)
        with pytest.raises(RuntimeError):
            await task.tick()
        assert not task.busy

    @pytest.mark.asyncio
    async def test_run_fires_immediately_until_stopped(self):
        task = None
        calls = []

        async def callback():
            calls.append(1)
            if len(calls) == 2:
                task.stop()

        task = PeriodicTask("poll", 0.01, callback)
        await asyncio.wait_for(task.run(), timeout=2)

        assert len(calls) == 2
        assert task.stopping

    @pytest.mark.asyncio
    async def test_stop_lets_inflight_tick_finish(self):
        finished = []

        async def slow():
            await asyncio.sleep(0.05)
            finished.append(1)

        task = PeriodicTask("poll", 60, slow)
        runner = asyncio.create_task(task.run())
        await asyncio.sleep(0.01)
        task.stop()
        await asyncio.wait_for(runner, timeout=2)

        assert finished == [1]

    @pytest.mark.asyncio
    async def test_run_after_stop_fires_nothing(self):
        calls = []

        async def callback():
            calls.append(1)

        task = PeriodicTask("poll", 0.01, callback)
        task.stop()
        await asyncio.wait_for(task.run(), timeout=2)

        assert calls == []
        assert task.tick_count == 0

    @pytest.mark.asyncio
    async def test_tick_failure_ends_run(self):
        async def boom():
            raise RuntimeError("boom")

        task = PeriodicTask("scan", 60, boom)
        with pytest.raises(RuntimeError, match="boom"):
            await asyncio.wait_for(task.run(), timeout=2)


# ── Supervisor ───────────────────────────────────────────────────────────


class TestSupervisor:
    @pytest.mark.asyncio
    async def test_restarts_after_crash_and_alerts(self):
        notifier = RecordingNotifier()
        calls = []
        task = None

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("exchange exploded")
            task.stop()

        task = PeriodicTask("market-scan", 60, flaky)
        supervisor = Supervisor(notifier, restart_delay_seconds=0)
        await asyncio.wait_for(supervisor.supervise(task), timeout=2)

        assert supervisor.restarts == {"market-scan": 1}
        assert len(notifier.alerts) == 1
        assert notifier.alerts[0].context == "market-scan"
        assert notifier.alerts[0].error_description == "RuntimeError: exchange exploded"

    @pytest.mark.asyncio
    async def test_repeated_failure_restarts_without_second_alert(self):
        notifier = RecordingNotifier()
        calls = []
        task = None

        async def failing():
            calls.append(1)
            if len(calls) == 1:
                raise RepeatedFailure("10 consecutive scan failures")
            task.stop()

        task = PeriodicTask("market-scan", 60, failing)
        supervisor = Supervisor(notifier, restart_delay_seconds=0)
        await asyncio.wait_for(supervisor.supervise(task), timeout=2)

        assert supervisor.restarts == {"market-scan": 1}
        assert notifier.alerts == []

    @pytest.mark.asyncio
    async def test_no_restart_once_stopping(self):
        task = None

        async def crash_during_shutdown():
            task.stop()
            raise RuntimeError("late failure")

        task = PeriodicTask("trade-poll", 60, crash_during_shutdown)
        supervisor = Supervisor(RecordingNotifier(), restart_delay_seconds=0)
        await asyncio.wait_for(supervisor.supervise(task), timeout=2)

        assert supervisor.restarts == {}

    @pytest.mark.asyncio
    async def test_stop_during_restart_delay_is_honoured(self):
        calls = []

        async def crash():
            calls.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("market-scan", 0.01, crash)
        supervisor = Supervisor(RecordingNotifier(), restart_delay_seconds=0.2)
        supervising = asyncio.create_task(supervisor.supervise(task))
        await asyncio.sleep(0.05)
        task.stop()

        await asyncio.wait_for(supervising, timeout=2)
        assert calls == [1]
        assert supervisor.restarts == {"market-scan": 1}

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_stop_supervision(self):
        calls = []
        task = None

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            task.stop()

        task = PeriodicTask("market-scan", 60, flaky)
        supervisor = Supervisor(RecordingNotifier(fail=True), restart_delay_seconds=0)
        await asyncio.wait_for(supervisor.supervise(task), timeout=2)

        assert len(calls) == 2
