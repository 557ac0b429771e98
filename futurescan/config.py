"""FuturesScan — application configuration.

Loads .env variables into a typed config object.
Validates numeric ranges on startup.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


@dataclass(frozen=True)
class IndicatorSettings:
    """Periods and thresholds for the indicator library."""

    ema_fast: int = 8
    ema_medium: int = 21
    ema_slow: int = 50
    supertrend_period: int = 10
    supertrend_multiplier: float = 3.0
    mfi_period: int = 14
    mfi_oversold: float = 20.0
    mfi_overbought: float = 80.0
    williams_r_period: int = 14
    williams_r_oversold: float = -80.0
    williams_r_overbought: float = -20.0
    cci_period: int = 20
    cci_oversold: float = -100.0
    cci_overbought: float = 100.0
    vwap_period: int = 20
    market_structure_lookback: int = 20
    atr_period: int = 14
    volatility_period: int = 20
    support_resistance_lookback: int = 25


@dataclass(frozen=True)
class RiskSettings:
    """ATR multipliers and account parameters for risk derivation."""

    account_balance: float = 1000.0
    risk_percentage: float = 2.0
    max_leverage: int = 10
    min_risk_reward: float = 2.0
    entry_atr_multipliers: dict[str, float] = field(
        default_factory=lambda: {"HIGH": 0.15, "MEDIUM": 0.3}
    )
    take_profit_multipliers: dict[str, tuple[float, float, float]] = field(
        default_factory=lambda: {
            "HIGH": (2.0, 3.5, 5.5),
            "MEDIUM": (3.0, 4.5, 6.5),
        }
    )
    stop_loss_multipliers: dict[str, float] = field(
        default_factory=lambda: {"HIGH": 1.2, "MEDIUM": 1.5}
    )


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    exchange_base_url: str = "https://fapi.binance.com"
    http_timeout_seconds: float = 10.0

    scan_interval_minutes: int = 15
    min_volume_usdt: float = 100_000.0
    max_tokens_per_scan: int = 50
    scan_timeframe: str = "1h"
    candle_limit: int = 100
    min_candles: int = 60
    scan_batch_size: int = 3
    batch_delay_seconds: float = 1.0
    signal_delay_seconds: float = 2.0
    signal_cooldown_minutes: int = 60

    monitor_enabled: bool = True
    monitor_interval_seconds: int = 120
    monitor_batch_size: int = 5
    trade_expiry_hours: float = 24.0
    archive_size: int = 50

    min_confidence: float = 60.0
    high_confidence: float = 75.0

    funding_extreme_threshold: float = 0.01
    futures_cache_seconds: int = 300
    max_consecutive_errors: int = 10

    notify_webhook_url: str | None = None
    log_level: str = "INFO"
    api_port: int = 8080

    indicators: IndicatorSettings = field(default_factory=IndicatorSettings)
    risk: RiskSettings = field(default_factory=RiskSettings)

    @property
    def scan_interval_seconds(self) -> int:
        return self.scan_interval_minutes * 60


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default: str, cast=float):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be numeric, got '{raw}'")


def validate_config(cfg: Config) -> None:
    """Raise ``ValueError`` naming the first setting that is out of range."""
    if not 0 < cfg.min_confidence < cfg.high_confidence <= 100:
        raise ValueError(
            "MIN_CONFIDENCE and HIGH_CONFIDENCE must satisfy "
            f"0 < MIN_CONFIDENCE < HIGH_CONFIDENCE <= 100, got "
            f"{cfg.min_confidence} / {cfg.high_confidence}"
        )
    for name, value in (
        ("SCAN_BATCH_SIZE", cfg.scan_batch_size),
        ("MONITOR_BATCH_SIZE", cfg.monitor_batch_size),
    ):
        if not 1 <= value <= 10:
            raise ValueError(f"{name} must be between 1 and 10, got {value}")
    if cfg.risk.max_leverage < 1:
        raise ValueError(f"MAX_LEVERAGE must be >= 1, got {cfg.risk.max_leverage}")
    if not 0 < cfg.risk.risk_percentage <= 100:
        raise ValueError(
            f"RISK_PERCENTAGE must be in (0, 100], got {cfg.risk.risk_percentage}"
        )
    if cfg.risk.min_risk_reward <= 0:
        raise ValueError(
            f"MIN_RISK_REWARD must be positive, got {cfg.risk.min_risk_reward}"
        )
    if cfg.archive_size < 1:
        raise ValueError(f"ARCHIVE_SIZE must be >= 1, got {cfg.archive_size}")


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Every variable is optional.  Raises ``ValueError`` with a message naming
    the offending variable when a value cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    risk = RiskSettings(
        account_balance=_env_number("ACCOUNT_BALANCE", "1000"),
        risk_percentage=_env_number("RISK_PERCENTAGE", "2"),
        max_leverage=_env_number("MAX_LEVERAGE", "10", int),
        min_risk_reward=_env_number("MIN_RISK_REWARD", "2.0"),
    )

    cfg = Config(
        exchange_base_url=os.environ.get(
            "EXCHANGE_BASE_URL", "https://fapi.binance.com"
        ).rstrip("/"),
        http_timeout_seconds=_env_number("HTTP_TIMEOUT_SECONDS", "10"),
        scan_interval_minutes=_env_number("SCAN_INTERVAL_MINUTES", "15", int),
        min_volume_usdt=_env_number("MIN_VOLUME_USDT", "100000"),
        max_tokens_per_scan=_env_number("MAX_TOKENS_PER_SCAN", "50", int),
        scan_timeframe=os.environ.get("SCAN_TIMEFRAME", "1h"),
        candle_limit=_env_number("CANDLE_LIMIT", "100", int),
        min_candles=_env_number("MIN_CANDLES", "60", int),
        scan_batch_size=_env_number("SCAN_BATCH_SIZE", "3", int),
        batch_delay_seconds=_env_number("BATCH_DELAY_SECONDS", "1.0"),
        signal_delay_seconds=_env_number("SIGNAL_DELAY_SECONDS", "2.0"),
        signal_cooldown_minutes=_env_number("SIGNAL_COOLDOWN_MINUTES", "60", int),
        monitor_enabled=_env_bool("MONITOR_ENABLED", True),
        monitor_interval_seconds=_env_number("MONITOR_INTERVAL_SECONDS", "120", int),
        monitor_batch_size=_env_number("MONITOR_BATCH_SIZE", "5", int),
        trade_expiry_hours=_env_number("TRADE_EXPIRY_HOURS", "24"),
        archive_size=_env_number("ARCHIVE_SIZE", "50", int),
        min_confidence=_env_number("MIN_CONFIDENCE", "60"),
        high_confidence=_env_number("HIGH_CONFIDENCE", "75"),
        funding_extreme_threshold=_env_number("FUNDING_EXTREME_THRESHOLD", "0.01"),
        futures_cache_seconds=_env_number("FUTURES_CACHE_SECONDS", "300", int),
        max_consecutive_errors=_env_number("MAX_CONSECUTIVE_ERRORS", "10", int),
        notify_webhook_url=os.environ.get("NOTIFY_WEBHOOK_URL") or None,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_number("API_PORT", "8080", int),
        risk=risk,
    )
    validate_config(cfg)
    return cfg
