"""
DCA Configuration Tests.
"""

from decimal import Decimal

import pytest

from core.exceptions import ConfigurationError
from dca.config import DCAConfig, parse_symbols
from exchange.config import DEFAULT_REST_URL, ExchangeConfig


ENV_KEYS = [
    "API_KEY", "API_SECRET", "BINANCE_API_URL", "SYMBOLS", "BASE_USDT",
    "RSI_PERIOD", "KLINE_INTERVAL", "MIN_ORDER_VALUE", "DCA_CRON",
    "DCA_TIMEZONE", "MAX_CONCURRENCY", "DRY_RUN", "LOG_LEVEL",
    "LOG_FORMAT", "LOG_FILE", "CONNECT_TIMEOUT_SECONDS",
    "REQUEST_TIMEOUT_SECONDS", "WEIGHT_PER_MINUTE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def valid_env(clean_env):
    clean_env.setenv("API_KEY", "key")
    clean_env.setenv("API_SECRET", "secret")
    clean_env.setenv("SYMBOLS", "BTCUSDT, ethusdt ,,BNBUSDT")
    clean_env.setenv("BASE_USDT", "100")
    return clean_env


class TestParseSymbols:
    """Tests for parse_symbols."""

    def test_trims_and_drops_empties(self):
        assert parse_symbols(" btcusdt, ETHUSDT ,, ") == ["BTCUSDT", "ETHUSDT"]

    def test_empty(self):
        assert parse_symbols("") == []
        assert parse_symbols(None) == []


class TestFromEnv:
    """Tests for DCAConfig.from_env."""

    def test_defaults(self, valid_env):
        config = DCAConfig.from_env()

        assert config.symbols == ["BTCUSDT", "ETHUSDT", "BNBUSDT"]
        assert config.base_usdt == Decimal("100")
        assert config.rsi_period == 14
        assert config.candle_limit == 15
        assert config.kline_interval == "1d"
        assert config.min_order_value == Decimal("5.1")
        assert config.cron == "30 21 * * 5"
        assert config.timezone == "Asia/Shanghai"
        assert config.max_concurrency == 4
        assert config.dry_run is False
        assert config.log_file == "logs/dca.log"
        assert config.exchange.rest_url == DEFAULT_REST_URL
        assert config.validate() == []

    def test_overrides(self, valid_env):
        valid_env.setenv("RSI_PERIOD", "7")
        valid_env.setenv("MIN_ORDER_VALUE", "10")
        valid_env.setenv("DRY_RUN", "true")
        valid_env.setenv("LOG_FILE", "")
        valid_env.setenv("BINANCE_API_URL", "https://testnet.binance.vision/api/v3/")

        config = DCAConfig.from_env()

        assert config.rsi_period == 7
        assert config.min_order_value == Decimal("10")
        assert config.dry_run is True
        assert config.log_file is None
        assert config.exchange.rest_url == "https://testnet.binance.vision/api/v3"

    def test_unparseable_numbers_raise(self, valid_env):
        valid_env.setenv("BASE_USDT", "lots")
        valid_env.setenv("RSI_PERIOD", "fourteen")

        with pytest.raises(ConfigurationError) as exc_info:
            DCAConfig.from_env()

        assert len(exc_info.value.errors) == 2
        assert any("BASE_USDT" in e for e in exc_info.value.errors)

    @pytest.mark.parametrize("name", ["BASE_USDT", "MIN_ORDER_VALUE"])
    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf", "sNaN"])
    def test_non_finite_numbers_raise(self, valid_env, name, raw):
        valid_env.setenv(name, raw)

        with pytest.raises(ConfigurationError) as exc_info:
            DCAConfig.from_env()

        assert exc_info.value.errors == [f"{name} must be a finite number: {raw!r}"]


class TestValidate:
    """Tests for DCAConfig.validate."""

    def test_missing_required(self, clean_env):
        errors = DCAConfig.from_env().validate()

        assert "API_KEY is required" in errors
        assert "API_SECRET is required" in errors
        assert any("SYMBOLS" in e for e in errors)
        assert any("BASE_USDT" in e for e in errors)

    def test_dry_run_does_not_need_credentials(self):
        config = DCAConfig(symbols=["BTCUSDT"], base_usdt=Decimal("10"), dry_run=True)

        assert config.validate() == []

    def test_explicit_credential_requirement(self):
        config = DCAConfig(symbols=["BTCUSDT"], base_usdt=Decimal("10"), dry_run=True)

        assert "API_KEY is required" in config.validate(require_credentials=True)

    def test_invalid_values(self):
        config = DCAConfig(
            exchange=ExchangeConfig(api_key="k", api_secret="s"),
            symbols=["BTCUSDT", "BTCUSDT"],
            base_usdt=Decimal("-1"),
            rsi_period=0,
            cron="30 21 * *",
            max_concurrency=0,
            log_level="LOUD",
            log_format="xml",
        )

        errors = config.validate()

        assert len(errors) == 7

    def test_non_finite_values_are_errors(self):
        config = DCAConfig(
            symbols=["BTCUSDT"],
            base_usdt=Decimal("NaN"),
            min_order_value=Decimal("Infinity"),
            dry_run=True,
        )

        errors = config.validate()

        assert "BASE_USDT must be positive" in errors
        assert "MIN_ORDER_VALUE must not be negative" in errors

    def test_ensure_valid_raises_with_all_errors(self):
        config = DCAConfig(symbols=[], base_usdt=Decimal("0"), dry_run=True)

        with pytest.raises(ConfigurationError) as exc_info:
            config.ensure_valid()

        assert len(exc_info.value.errors) == 2
        assert exc_info.value.recoverable is False

    def test_ensure_valid_returns_config(self):
        config = DCAConfig(symbols=["BTCUSDT"], base_usdt=Decimal("10"), dry_run=True)

        assert config.ensure_valid() is config
