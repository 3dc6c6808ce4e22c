"""
Binance Spot Adapter Tests.

============================================================
PURPOSE
============================================================
Wire-level tests for BinanceSpotAdapter against a fake
aiohttp session.

TEST CATEGORIES:
- Signing: exact query strings and HMAC signatures
- Market data: klines, price, LOT_SIZE rule
- Errors: Binance error codes, network, timeout
- Rate limiting: weight header accounting
- Logging: credential masking

============================================================
"""

import asyncio
import hashlib
import hmac
import logging
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from exchange.binance import BinanceSpotAdapter
from exchange.config import ExchangeConfig, RateLimitConfig
from exchange.errors import ErrorCategory


BASE = "https://api.test/api/v3"


def expected_signature(query: str, secret: str = "test-api-secret") -> str:
    return hmac.new(secret.encode(), query.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def adapter(exchange_config, mock_clock, fake_session) -> BinanceSpotAdapter:
    return BinanceSpotAdapter(exchange_config, clock=mock_clock, session=fake_session)


# ============================================================
# CONNECTION
# ============================================================

class TestConnection:
    """Tests for session handling and the connectivity check."""

    def test_exchange_id(self, adapter):
        assert adapter.exchange_id == "binance_spot"

    @pytest.mark.asyncio
    async def test_connectivity_ok(self, adapter, fake_session, response_factory):
        fake_session.add("/time", response_factory({"serverTime": 1}))

        assert await adapter.probe_connectivity() is True
        assert fake_session.last["url"] == f"{BASE}/time"
        assert fake_session.last["headers"] == {}

    @pytest.mark.asyncio
    async def test_connectivity_network_failure(self, adapter, fake_session, response_factory):
        fake_session.add("/time", response_factory(error=aiohttp.ClientConnectionError("refused")))

        assert await adapter.probe_connectivity() is False

    @pytest.mark.asyncio
    async def test_html_error_page_is_unreachable(self, adapter, fake_session, response_factory):
        fake_session.add("/time", response_factory(status=502, body="<html>502 Bad Gateway</html>"))

        assert await adapter.probe_connectivity() is False

    @pytest.mark.asyncio
    async def test_not_connected(self, exchange_config, mock_clock):
        adapter = BinanceSpotAdapter(exchange_config, clock=mock_clock)

        result = await adapter.fetch_current_price("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.NETWORK
        assert await adapter.probe_connectivity() is False

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self, adapter, fake_session):
        await adapter.disconnect()

        assert fake_session.closed is False
        assert adapter.is_connected is False

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self, exchange_config):
        adapter = BinanceSpotAdapter(exchange_config)

        async with adapter:
            assert adapter.is_connected

        assert not adapter.is_connected


# ============================================================
# SIGNING
# ============================================================

class TestSigning:
    """Tests for signed query strings."""

    @pytest.mark.asyncio
    async def test_account_query_is_timestamp_only(self, adapter, fake_session, response_factory, mock_clock):
        fake_session.add("/account", response_factory({"balances": []}))

        await adapter.fetch_account_balances()

        query = f"timestamp={mock_clock.timestamp_ms()}"
        request = fake_session.last
        assert request["method"] == "GET"
        assert request["url"] == f"{BASE}/account?{query}&signature={expected_signature(query)}"
        assert request["headers"] == {"X-MBX-APIKEY": "test-api-key"}

    @pytest.mark.asyncio
    async def test_order_query_exact(self, adapter, fake_session, response_factory, mock_clock):
        fake_session.add("/order", response_factory({
            "symbol": "BTCUSDT",
            "orderId": 28,
            "status": "FILLED",
            "executedQty": "0.00200000",
            "cummulativeQuoteQty": "100.00000000",
            "transactTime": 1715952600123,
        }))

        result = await adapter.submit_market_buy("BTCUSDT", Decimal("0.0020"))

        query = (
            "symbol=BTCUSDT&side=BUY&type=MARKET&quantity=0.002"
            f"&timestamp={mock_clock.timestamp_ms()}"
        )
        request = fake_session.last
        assert request["method"] == "POST"
        assert request["url"] == f"{BASE}/order?{query}&signature={expected_signature(query)}"
        assert request["headers"]["X-MBX-APIKEY"] == "test-api-key"

        assert result.ok
        assert result.value.order_id == "28"
        assert result.value.executed_quantity == Decimal("0.002")
        assert result.value.quote_quantity == Decimal("100")

    def test_sign_matches_hmac_sha256(self, adapter):
        assert adapter.sign("timestamp=1") == expected_signature("timestamp=1")

    def test_unsigned_query(self, adapter):
        assert adapter.build_query({"symbol": "ETHUSDT", "limit": 15}) == "symbol=ETHUSDT&limit=15"

    @pytest.mark.parametrize("symbol, quantity", [
        ("BTCUSDT", "0.002"),
        ("1000SATSUSDT", "12345"),
        ("ETHBTC", "0.00001"),
    ])
    def test_order_query_is_plain_join(self, adapter, mock_clock, symbol, quantity):
        params = {"symbol": symbol, "side": "BUY", "type": "MARKET", "quantity": quantity}
        plain = "&".join(f"{k}={v}" for k, v in params.items()) + f"&timestamp={mock_clock.timestamp_ms()}"

        assert adapter.build_query(params, signed=True) == f"{plain}&signature={expected_signature(plain)}"

    def test_reserved_characters_are_encoded_and_signed_as_sent(self, adapter, mock_clock):
        query = adapter.build_query({"symbol": "BTC/USDT"}, signed=True)

        signed_part, signature = query.rsplit("&signature=", 1)
        assert signed_part == f"symbol=BTC%2FUSDT&timestamp={mock_clock.timestamp_ms()}"
        assert signature == expected_signature(signed_part)


# ============================================================
# MARKET DATA
# ============================================================

class TestMarketData:
    """Tests for klines, price and trading rule."""

    @pytest.mark.asyncio
    async def test_fetch_candles(self, adapter, fake_session, response_factory):
        fake_session.add("/klines", response_factory([
            [1715817600000, "100.0", "110.0", "95.0", "105.5", "12.3", 1715903999999, "1290", 10, "6", "630", "0"],
            [1715904000000, "105.5", "108.0", "101.0", "102.25", "8.1", 1715990399999, "830", 7, "4", "410", "0"],
        ]))

        result = await adapter.fetch_candles("BTCUSDT", interval="1d", limit=15)

        assert fake_session.last["url"] == f"{BASE}/klines?symbol=BTCUSDT&interval=1d&limit=15"
        assert result.ok
        assert [c.close for c in result.value] == [Decimal("105.5"), Decimal("102.25")]
        assert result.value[0].open_time.year == 2024

    @pytest.mark.asyncio
    async def test_fetch_current_price(self, adapter, fake_session, response_factory):
        fake_session.add("/ticker/price", response_factory({"symbol": "BTCUSDT", "price": "67012.34000000"}))

        result = await adapter.fetch_current_price("BTCUSDT")

        assert fake_session.last["url"] == f"{BASE}/ticker/price?symbol=BTCUSDT"
        assert result.ok
        assert result.value == Decimal("67012.34")

    @pytest.mark.asyncio
    async def test_fetch_trading_rule(self, adapter, fake_session, response_factory):
        fake_session.add("/exchangeInfo", response_factory({"symbols": [{
            "symbol": "BTCUSDT",
            "filters": [
                {"filterType": "PRICE_FILTER", "minPrice": "0.01000000"},
                {"filterType": "LOT_SIZE", "minQty": "0.00100000", "maxQty": "9000.00000000", "stepSize": "0.00100000"},
            ],
        }]}))

        result = await adapter.fetch_trading_rule("BTCUSDT")

        assert fake_session.last["url"] == f"{BASE}/exchangeInfo?symbol=BTCUSDT"
        assert result.ok
        assert result.value.min_quantity == Decimal("0.001")
        assert result.value.step_size == Decimal("0.001")
        assert result.value.quantity_precision == 3

    @pytest.mark.asyncio
    async def test_trading_rule_symbol_missing(self, adapter, fake_session, response_factory):
        fake_session.add("/exchangeInfo", response_factory({"symbols": []}))

        result = await adapter.fetch_trading_rule("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.SYMBOL_NOT_FOUND
        assert result.error.symbol == "BTCUSDT"

    @pytest.mark.asyncio
    async def test_trading_rule_lot_size_missing(self, adapter, fake_session, response_factory):
        fake_session.add("/exchangeInfo", response_factory({"symbols": [{"symbol": "BTCUSDT", "filters": []}]}))

        result = await adapter.fetch_trading_rule("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.RULE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_account_balances_drop_zero(self, adapter, fake_session, response_factory):
        fake_session.add("/account", response_factory({"balances": [
            {"asset": "USDT", "free": "250.50000000", "locked": "0.00000000"},
            {"asset": "BTC", "free": "0.00000000", "locked": "0.00000000"},
            {"asset": "ETH", "free": "0.00000000", "locked": "0.10000000"},
        ]}))

        result = await adapter.fetch_account_balances()

        assert result.ok
        assert [b.asset for b in result.value] == ["USDT", "ETH"]
        assert result.value[0].free == Decimal("250.5")

    @pytest.mark.asyncio
    async def test_malformed_payload(self, adapter, fake_session, response_factory):
        fake_session.add("/ticker/price", response_factory({"symbol": "BTCUSDT"}))

        result = await adapter.fetch_current_price("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.INVALID_RESPONSE
        assert result.error.operation == "fetch_current_price"


# ============================================================
# ERRORS
# ============================================================

class TestErrors:
    """Tests for error results."""

    @pytest.mark.asyncio
    async def test_binance_error_code(self, adapter, fake_session, response_factory):
        fake_session.add("/order", response_factory(
            {"code": -2010, "msg": "Account has insufficient balance for requested action."},
            status=400,
        ))

        result = await adapter.submit_market_buy("BTCUSDT", Decimal("0.002"))

        assert not result.ok
        assert result.error.category == ErrorCategory.INSUFFICIENT_FUNDS
        assert result.error.code == "BINANCE_-2010"
        assert result.error.http_status == 400
        assert result.error.symbol == "BTCUSDT"

    @pytest.mark.asyncio
    async def test_non_json_server_error_keeps_status(self, adapter, fake_session, response_factory):
        fake_session.add("/ticker/price", response_factory(status=503, body="<html>Service Unavailable</html>"))

        result = await adapter.fetch_current_price("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.EXCHANGE_ERROR
        assert result.error.http_status == 503
        assert "Service Unavailable" in result.error.message
        assert result.error.symbol == "BTCUSDT"

    @pytest.mark.asyncio
    async def test_non_json_success_body(self, adapter, fake_session, response_factory):
        fake_session.add("/ticker/price", response_factory(body="not json"))

        result = await adapter.fetch_current_price("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.INVALID_RESPONSE
        assert "not json" in result.error.message

    @pytest.mark.asyncio
    async def test_unknown_symbol(self, adapter, fake_session):
        result = await adapter.fetch_current_price("NOPEUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.SYMBOL_NOT_FOUND

    @pytest.mark.asyncio
    async def test_network_error(self, adapter, fake_session, response_factory):
        fake_session.add("/ticker/price", response_factory(error=aiohttp.ClientConnectionError("reset")))

        result = await adapter.fetch_current_price("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_timeout(self, adapter, fake_session, response_factory):
        fake_session.add("/klines", response_factory(error=asyncio.TimeoutError()))

        result = await adapter.fetch_candles("BTCUSDT")

        assert not result.ok
        assert result.error.category == ErrorCategory.TIMEOUT
        assert "15000ms" in result.error.message

    @pytest.mark.asyncio
    async def test_unwrap_failure_raises(self, adapter, fake_session, response_factory):
        from exchange.errors import ExchangeException

        fake_session.add("/klines", response_factory(error=asyncio.TimeoutError()))
        result = await adapter.fetch_candles("BTCUSDT")

        with pytest.raises(ExchangeException):
            result.unwrap()


# ============================================================
# RATE LIMITING
# ============================================================

class TestRateLimiting:
    """Tests for weight header accounting."""

    @pytest.mark.asyncio
    async def test_weight_header_tracked(self, adapter, fake_session, response_factory):
        fake_session.add("/time", response_factory({}, headers={"X-MBX-USED-WEIGHT-1M": "37"}))

        await adapter.probe_connectivity()

        assert adapter._weight_used == 37

    @pytest.mark.asyncio
    async def test_waits_when_budget_spent(self, mock_clock, fake_session, response_factory):
        config = ExchangeConfig(
            rest_url=BASE,
            api_key="k",
            api_secret="s",
            rate_limit=RateLimitConfig(weight_per_minute=10),
        )
        adapter = BinanceSpotAdapter(config, clock=mock_clock, session=fake_session)
        fake_session.add("/time", response_factory({}, headers={"X-MBX-USED-WEIGHT-1M": "10"}))

        await adapter.probe_connectivity()
        mock_clock.advance(seconds=20)

        with patch("exchange.binance.asyncio.sleep", new=AsyncMock()) as sleep:
            await adapter.probe_connectivity()

        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(40.0)

    @pytest.mark.asyncio
    async def test_window_reset_clears_weight(self, mock_clock, fake_session, response_factory):
        config = ExchangeConfig(rest_url=BASE, rate_limit=RateLimitConfig(weight_per_minute=10))
        adapter = BinanceSpotAdapter(config, clock=mock_clock, session=fake_session)
        adapter._weight_used = 10
        mock_clock.advance(seconds=61)
        fake_session.add("/time", response_factory({}))

        with patch("exchange.binance.asyncio.sleep", new=AsyncMock()) as sleep:
            await adapter.probe_connectivity()

        sleep.assert_not_awaited()


# ============================================================
# LOGGING
# ============================================================

class TestCredentialMasking:
    """Tests that credentials never reach the logs."""

    @pytest.mark.asyncio
    async def test_debug_log_masks_signature_and_key(self, adapter, fake_session, response_factory, caplog):
        fake_session.add("/account", response_factory({"balances": []}))

        with caplog.at_level(logging.DEBUG, logger="exchange.binance"):
            await adapter.fetch_account_balances()

        assert "signature=***" in caplog.text
        assert "test-api-key" not in caplog.text
        assert "test-api-secret" not in caplog.text
