"""
DCA - Configuration.

============================================================
RESPONSIBILITY
============================================================
Agent configuration read from the environment (.env files are
loaded by the CLI with python-dotenv before this runs).

Required:
    API_KEY, API_SECRET     Binance credentials
    SYMBOLS                 Comma separated, e.g. BTCUSDT,ETHUSDT
    BASE_USDT               Total budget per cycle

Optional:
    BINANCE_API_URL         default https://api.binance.com/api/v3
    RSI_PERIOD              default 14
    KLINE_INTERVAL          default 1d
    MIN_ORDER_VALUE         default 5.1
    DCA_CRON                default "30 21 * * 5" (Friday 21:30)
    DCA_TIMEZONE            default Asia/Shanghai
    MAX_CONCURRENCY         default 4
    DRY_RUN                 default false
    LOG_LEVEL, LOG_FORMAT, LOG_FILE

============================================================
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from core.exceptions import ConfigurationError
from exchange.config import ExchangeConfig

from .indicators import DEFAULT_RSI_PERIOD
from .planner import DEFAULT_MIN_ORDER_VALUE


DEFAULT_CRON = "30 21 * * 5"
DEFAULT_TIMEZONE = "Asia/Shanghai"
DEFAULT_LOG_FILE = "logs/dca.log"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


def parse_symbols(raw: Optional[str]) -> List[str]:
    """Split a comma separated list, trimming blanks and upper-casing."""
    if not raw:
        return []
    return [s.strip().upper() for s in raw.split(",") if s.strip()]


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DCAConfig:
    """Configuration for the DCA agent."""

    # Exchange
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    """Gateway connection settings and credentials."""

    # Basket
    symbols: List[str] = field(default_factory=list)
    """Trading pairs bought each cycle, in order."""

    base_usdt: Decimal = Decimal("0")
    """Total USDT budget per cycle."""

    min_order_value: Decimal = DEFAULT_MIN_ORDER_VALUE
    """Smallest target spend; lower targets are raised to this."""

    # Momentum
    rsi_period: int = DEFAULT_RSI_PERIOD
    """RSI lookback. period + 1 candles are fetched."""

    kline_interval: str = "1d"
    """Candle interval for RSI."""

    # Schedule
    cron: str = DEFAULT_CRON
    """Cycle schedule as a five-field cron expression."""

    timezone: str = DEFAULT_TIMEZONE
    """IANA timezone the cron expression is evaluated in."""

    # Runtime
    max_concurrency: int = 4
    """Maximum concurrent gateway calls during a cycle."""

    dry_run: bool = False
    """Plan and size orders without submitting them."""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"
    log_file: Optional[str] = DEFAULT_LOG_FILE
    """Log file path, None to log to stdout only."""

    @property
    def candle_limit(self) -> int:
        return self.rsi_period + 1

    @classmethod
    def from_env(cls) -> "DCAConfig":
        """
        Load configuration from environment variables.

        Raises:
            ConfigurationError: A value could not be parsed
        """
        errors: List[str] = []

        def number(name: str, default: str, kind):
            raw = (os.getenv(name) or default).strip()
            try:
                value = kind(raw)
            except (ValueError, InvalidOperation):
                errors.append(f"{name} is not a valid {kind.__name__}: {raw!r}")
                return kind(default)
            if isinstance(value, Decimal) and not value.is_finite():
                errors.append(f"{name} must be a finite number: {raw!r}")
                return kind(default)
            return value

        try:
            exchange = ExchangeConfig.from_env()
        except ValueError as e:
            errors.append(f"Invalid exchange setting: {e}")
            exchange = ExchangeConfig()

        config = cls(
            exchange=exchange,
            symbols=parse_symbols(os.getenv("SYMBOLS")),
            base_usdt=number("BASE_USDT", "0", Decimal),
            min_order_value=number("MIN_ORDER_VALUE", str(DEFAULT_MIN_ORDER_VALUE), Decimal),
            rsi_period=number("RSI_PERIOD", str(DEFAULT_RSI_PERIOD), int),
            kline_interval=os.getenv("KLINE_INTERVAL", "1d").strip(),
            cron=os.getenv("DCA_CRON", DEFAULT_CRON).strip(),
            timezone=os.getenv("DCA_TIMEZONE", DEFAULT_TIMEZONE).strip(),
            max_concurrency=number("MAX_CONCURRENCY", "4", int),
            dry_run=_parse_bool(os.getenv("DRY_RUN", "false")),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
            log_format=os.getenv("LOG_FORMAT", "text").strip().lower(),
            log_file=os.getenv("LOG_FILE", DEFAULT_LOG_FILE).strip() or None,
        )

        if errors:
            raise ConfigurationError("Invalid configuration", errors=errors)

        return config

    def validate(self, require_credentials: Optional[bool] = None) -> List[str]:
        """
        Validate configuration, return list of errors.

        Credentials are required unless this is a dry run.
        """
        if require_credentials is None:
            require_credentials = not self.dry_run
        errors = self.exchange.validate(require_credentials=require_credentials)

        if not self.symbols:
            errors.append("SYMBOLS must list at least one trading pair")
        if len(set(self.symbols)) != len(self.symbols):
            errors.append("SYMBOLS contains duplicates")

        if not self.base_usdt.is_finite() or self.base_usdt <= 0:
            errors.append("BASE_USDT must be positive")
        if not self.min_order_value.is_finite() or self.min_order_value < 0:
            errors.append("MIN_ORDER_VALUE must not be negative")

        if self.rsi_period < 1:
            errors.append("RSI_PERIOD must be at least 1")
        if not self.kline_interval:
            errors.append("KLINE_INTERVAL must not be empty")

        if len(self.cron.split()) != 5:
            errors.append(f"DCA_CRON must have five fields, got {self.cron!r}")
        if not self.timezone:
            errors.append("DCA_TIMEZONE must not be empty")

        if self.max_concurrency < 1:
            errors.append("MAX_CONCURRENCY must be at least 1")

        if self.log_level not in LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        if self.log_format not in LOG_FORMATS:
            errors.append(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}")

        return errors

    def ensure_valid(self, require_credentials: Optional[bool] = None) -> "DCAConfig":
        """
        Raise ConfigurationError listing every problem, else return self.
        """
        errors = self.validate(require_credentials)
        if errors:
            raise ConfigurationError(
                f"Invalid configuration: {len(errors)} error(s)",
                errors=errors,
            )
        return self
