"""Tests for futurescan.config — environment variable loading and validation."""

import pytest

from futurescan.config import Config, RiskSettings, load_config, validate_config

_VARS = [
    "EXCHANGE_BASE_URL", "HTTP_TIMEOUT_SECONDS", "SCAN_INTERVAL_MINUTES",
    "MIN_VOLUME_USDT", "MAX_TOKENS_PER_SCAN", "SCAN_TIMEFRAME", "CANDLE_LIMIT",
    "MIN_CANDLES", "SCAN_BATCH_SIZE", "BATCH_DELAY_SECONDS", "SIGNAL_DELAY_SECONDS",
    "SIGNAL_COOLDOWN_MINUTES", "MONITOR_ENABLED", "MONITOR_INTERVAL_SECONDS",
    "MONITOR_BATCH_SIZE", "TRADE_EXPIRY_HOURS", "ARCHIVE_SIZE", "MIN_CONFIDENCE",
    "HIGH_CONFIDENCE", "FUNDING_EXTREME_THRESHOLD", "FUTURES_CACHE_SECONDS",
    "MAX_CONSECUTIVE_ERRORS", "NOTIFY_WEBHOOK_URL", "LOG_LEVEL", "API_PORT",
    "ACCOUNT_BALANCE", "RISK_PERCENTAGE", "MAX_LEVERAGE", "MIN_RISK_REWARD",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure FuturesScan env vars are cleared between tests."""
    for var in _VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def env_path(tmp_path):
    # Non-existent file so load_dotenv doesn't re-populate from a real .env
    return str(tmp_path / "nonexistent.env")


class TestLoadConfig:
    def test_defaults(self, env_path):
        cfg = load_config(env_path=env_path)
        assert cfg.exchange_base_url == "https://fapi.binance.com"
        assert cfg.scan_interval_minutes == 15
        assert cfg.scan_interval_seconds == 900
        assert cfg.min_volume_usdt == 100_000.0
        assert cfg.max_tokens_per_scan == 50
        assert cfg.scan_batch_size == 3
        assert cfg.monitor_enabled is True
        assert cfg.monitor_interval_seconds == 120
        assert cfg.trade_expiry_hours == 24.0
        assert cfg.archive_size == 50
        assert cfg.min_confidence == 60.0
        assert cfg.high_confidence == 75.0
        assert cfg.max_consecutive_errors == 10
        assert cfg.notify_webhook_url is None
        assert cfg.risk.account_balance == 1000.0
        assert cfg.risk.max_leverage == 10
        assert cfg.indicators.ema_slow == 50

    def test_overrides(self, monkeypatch, env_path):
        monkeypatch.setenv("EXCHANGE_BASE_URL", "https://example.test/")
        monkeypatch.setenv("MIN_CONFIDENCE", "65")
        monkeypatch.setenv("MONITOR_ENABLED", "false")
        monkeypatch.setenv("ACCOUNT_BALANCE", "2500")
        monkeypatch.setenv("NOTIFY_WEBHOOK_URL", "https://hooks.test/abc")
        cfg = load_config(env_path=env_path)
        assert cfg.exchange_base_url == "https://example.test"
        assert cfg.min_confidence == 65.0
        assert cfg.monitor_enabled is False
        assert cfg.risk.account_balance == 2500.0
        assert cfg.notify_webhook_url == "https://hooks.test/abc"

    def test_non_numeric_names_variable(self, monkeypatch, env_path):
        monkeypatch.setenv("SCAN_BATCH_SIZE", "three")
        with pytest.raises(ValueError, match="SCAN_BATCH_SIZE"):
            load_config(env_path=env_path)

    def test_out_of_range_batch_size(self, monkeypatch, env_path):
        monkeypatch.setenv("MONITOR_BATCH_SIZE", "11")
        with pytest.raises(ValueError, match="MONITOR_BATCH_SIZE"):
            load_config(env_path=env_path)

    def test_confidence_order_enforced(self, monkeypatch, env_path):
        monkeypatch.setenv("MIN_CONFIDENCE", "80")
        with pytest.raises(ValueError, match="MIN_CONFIDENCE"):
            load_config(env_path=env_path)

    def test_dotenv_file_loaded(self, monkeypatch, tmp_path):
        # Register both vars with monkeypatch so teardown removes what load_dotenv sets
        for var in ("MAX_TOKENS_PER_SCAN", "SCAN_TIMEFRAME"):
            monkeypatch.setenv(var, "")
            monkeypatch.delenv(var)
        env_file = tmp_path / ".env"
        env_file.write_text("MAX_TOKENS_PER_SCAN=20\nSCAN_TIMEFRAME=4h\n")
        cfg = load_config(env_path=str(env_file))
        assert cfg.max_tokens_per_scan == 20
        assert cfg.scan_timeframe == "4h"


class TestValidateConfig:
    def test_default_config_valid(self):
        validate_config(Config())

    def test_leverage_below_one(self):
        with pytest.raises(ValueError, match="MAX_LEVERAGE"):
            validate_config(Config(risk=RiskSettings(max_leverage=0)))

    def test_risk_percentage_range(self):
        with pytest.raises(ValueError, match="RISK_PERCENTAGE"):
            validate_config(Config(risk=RiskSettings(risk_percentage=0)))

    def test_archive_size(self):
        with pytest.raises(ValueError, match="ARCHIVE_SIZE"):
            validate_config(Config(archive_size=0))
