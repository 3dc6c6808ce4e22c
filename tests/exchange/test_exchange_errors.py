"""
Exchange Error Mapping and Masking Tests.
"""

import pytest

from exchange.base import GatewayResult
from exchange.errors import (
    ErrorCategory,
    ExchangeException,
    create_network_error,
    create_timeout_error,
    map_binance_error,
)
from exchange.logging_utils import mask_headers, mask_url, mask_value


class TestBinanceErrorMapping:
    """Tests for map_binance_error."""

    @pytest.mark.parametrize("code, category", [
        (-1003, ErrorCategory.RATE_LIMIT),
        (-1022, ErrorCategory.AUTHENTICATION),
        (-2015, ErrorCategory.AUTHENTICATION),
        (-1013, ErrorCategory.INVALID_QUANTITY),
        (-1111, ErrorCategory.INVALID_QUANTITY),
        (-1121, ErrorCategory.SYMBOL_NOT_FOUND),
        (-2010, ErrorCategory.INSUFFICIENT_FUNDS),
        (-1000, ErrorCategory.EXCHANGE_ERROR),
    ])
    def test_known_codes(self, code, category):
        error = map_binance_error(code, "msg", http_status=400)

        assert error.category == category
        assert error.code == f"BINANCE_{code}"
        assert error.exchange_code == str(code)

    def test_rate_limit_by_status(self):
        error = map_binance_error(-9999, "slow down", http_status=429)

        assert error.category == ErrorCategory.RATE_LIMIT
        assert error.http_status == 429

    def test_server_error_by_status(self):
        error = map_binance_error(-9999, "oops", http_status=503)

        assert error.category == ErrorCategory.EXCHANGE_ERROR
        assert error.code == "BINANCE_-9999"

    def test_unknown(self):
        error = map_binance_error(-9999, "???", http_status=400)

        assert error.category == ErrorCategory.UNKNOWN

    def test_known_code_wins_over_status(self):
        error = map_binance_error(-2010, "insufficient", http_status=503)

        assert error.category == ErrorCategory.INSUFFICIENT_FUNDS

    def test_no_retry_fields(self):
        data = map_binance_error(-1003, "slow down", http_status=429).to_dict()

        assert data["category"] == "RATE_LIMIT"
        assert not any("retry" in key for key in data)

    def test_str_and_dict(self):
        error = map_binance_error(-2010, "insufficient", operation="submit_market_buy")

        assert str(error) == "[INSUFFICIENT_FUNDS] BINANCE_-2010: insufficient"
        assert error.to_dict()["operation"] == "submit_market_buy"


class TestErrorFactories:
    """Tests for error factory functions."""

    def test_network_error(self):
        error = create_network_error("down", "fetch_candles")

        assert error.category == ErrorCategory.NETWORK
        assert error.operation == "fetch_candles"

    def test_timeout_error(self):
        error = create_timeout_error(5000)

        assert error.category == ErrorCategory.TIMEOUT
        assert "5000ms" in error.message


class TestGatewayResult:
    """Tests for GatewayResult."""

    def test_success(self):
        result = GatewayResult.success(42)

        assert result.ok
        assert result.unwrap() == 42
        assert result.error_message == ""

    def test_failure(self):
        error = create_network_error("down")
        result = GatewayResult.failure(error)

        assert not result.ok
        assert result.value is None
        assert "down" in result.error_message
        with pytest.raises(ExchangeException) as exc_info:
            result.unwrap()
        assert exc_info.value.error is error


class TestMasking:
    """Tests for credential masking helpers."""

    def test_mask_value(self):
        assert mask_value("abcdefgh") == "abcd...***"
        assert mask_value("abc") == "***"
        assert mask_value("") == "***"

    def test_mask_headers(self):
        masked = mask_headers({"X-MBX-APIKEY": "supersecretkey", "Accept": "json"})

        assert masked["X-MBX-APIKEY"] == "supe...***"
        assert masked["Accept"] == "json"

    def test_mask_url(self):
        url = "https://api.test/api/v3/order?symbol=BTCUSDT&timestamp=1&signature=abcdef"

        assert mask_url(url) == "https://api.test/api/v3/order?symbol=BTCUSDT&timestamp=1&signature=***"
