"""Tests for the internal API — status, trades and manual scan endpoints."""

from dataclasses import asdict
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from futurescan.events import SignalEvent
from futurescan.main import create_app
from futurescan.monitor.trade_monitor import TradeMonitor
from futurescan.risk.models import PositionInfo


# ── Helpers ──────────────────────────────────────────────────────────────


def _signal_event(symbol: str = "BTCUSDT") -> SignalEvent:
    position = PositionInfo(
        position_size=100.0, base_size=10.0, margin=1000.0, leverage=10,
        risk_amount=20.0, risk_percentage=2.0, price_risk_percentage=2.4,
    )
    return SignalEvent(
        symbol=symbol,
        current_price=101.0,
        entry_price=100.0,
        take_profits={"tp1": 104.0, "tp2": 107.0, "tp3": 111.0},
        stop_loss=97.6,
        risk_reward_ratios=[1.67, 2.92, 4.58],
        position_info=asdict(position),
        indicators={},
        signal={"direction": "LONG", "strength": 80.0, "confidence": "HIGH",
                "risk_level": "MEDIUM", "warnings": []},
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def _make_scanner():
    scanner = MagicMock()
    scanner.get_statistics.return_value = {"total_scans": 3, "total_signals": 1}
    return scanner


def _make_monitor(price: float = 99.0) -> TradeMonitor:
    prices = AsyncMock()
    prices.fetch_price.return_value = price
    return TradeMonitor(prices, AsyncMock(), batch_delay_seconds=0)


def _make_scan_task(busy: bool = False):
    task = MagicMock()
    task.busy = busy
    task.tick = AsyncMock(return_value=True)
    return task


# ── Tests ────────────────────────────────────────────────────────────────


class TestStatusEndpoints:
    def test_health(self):
        client = TestClient(create_app(_make_scanner()))
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_status_includes_scanner_and_monitor(self):
        monitor = _make_monitor()
        monitor.add_trade(_signal_event())
        client = TestClient(create_app(_make_scanner(), monitor, _make_scan_task()))

        data = client.get("/status").json()
        assert data["scanner"]["total_scans"] == 3
        assert data["monitor"]["active_trades"] == 1
        assert data["scanning"] is False
        assert data["uptime_seconds"] >= 0

    def test_status_without_monitor(self):
        client = TestClient(create_app(_make_scanner()))
        assert client.get("/status").json()["monitor"] is None


class TestTradesEndpoints:
    def test_active_trades(self):
        monitor = _make_monitor()
        trade_id = monitor.add_trade(_signal_event())
        client = TestClient(create_app(_make_scanner(), monitor))

        data = client.get("/trades").json()
        assert data["total"] == 1
        assert data["trades"][0]["id"] == trade_id
        assert data["trades"][0]["status"] == "ACTIVE"

    def test_monitor_disabled_is_503(self):
        client = TestClient(create_app(_make_scanner()))
        assert client.get("/trades").status_code == 503

    def test_history_limit_validated(self):
        client = TestClient(create_app(_make_scanner(), _make_monitor()))
        assert client.get("/trades/history?limit=51").status_code == 422
        assert client.get("/trades/history?limit=0").status_code == 422

    def test_remove_then_history(self):
        monitor = _make_monitor()
        trade_id = monitor.add_trade(_signal_event())
        client = TestClient(create_app(_make_scanner(), monitor))

        resp = client.delete(f"/trades/{trade_id}")
        assert resp.status_code == 200
        assert resp.json() == {"status": "removed", "trade_id": trade_id}

        history = client.get("/trades/history?limit=5").json()
        assert history["trades"][0]["status"] == "MANUAL_REMOVAL"
        assert client.get("/trades").json()["total"] == 0

    def test_remove_unknown_is_404(self):
        client = TestClient(create_app(_make_scanner(), _make_monitor()))
        assert client.delete("/trades/NOPE").status_code == 404

    def test_force_check(self):
        monitor = _make_monitor(price=99.0)
        trade_id = monitor.add_trade(_signal_event())
        client = TestClient(create_app(_make_scanner(), monitor))

        resp = client.post(f"/trades/{trade_id}/check")
        assert resp.status_code == 200
        assert resp.json()["entry_filled"] is True
        assert resp.json()["current_price"] == 99.0

    def test_force_check_unknown_is_404(self):
        client = TestClient(create_app(_make_scanner(), _make_monitor()))
        assert client.post("/trades/NOPE/check").status_code == 404


class TestScanEndpoint:
    def test_manual_scan_runs_tick(self):
        scan_task = _make_scan_task()
        client = TestClient(create_app(_make_scanner(), scan_task=scan_task))

        resp = client.post("/scan")
        assert resp.json() == {"status": "started"}
        scan_task.tick.assert_awaited_once()

    def test_manual_scan_skipped_when_busy(self):
        scan_task = _make_scan_task(busy=True)
        client = TestClient(create_app(_make_scanner(), scan_task=scan_task))

        resp = client.post("/scan")
        assert resp.json()["status"] == "skipped"
        scan_task.tick.assert_not_awaited()

    def test_manual_scan_unscheduled_is_503(self):
        client = TestClient(create_app(_make_scanner()))
        assert client.post("/scan").status_code == 503


class TestBuildComponents:
    def test_monitor_enabled(self):
        from futurescan.config import Config
        from futurescan.main import build_components

        components = build_components(Config(monitor_enabled=True))
        assert isinstance(components.monitor, TradeMonitor)

    def test_monitor_disabled(self):
        from futurescan.config import Config
        from futurescan.main import build_components

        components = build_components(Config(monitor_enabled=False))
        assert components.monitor is None
        assert components.scanner is not None
