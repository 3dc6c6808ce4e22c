"""
Exchange Gateway - Binance Spot Adapter.

============================================================
PURPOSE
============================================================
Production adapter for the Binance Spot REST API (v3).

SAFETY FEATURES:
- Request signing (HMAC-SHA256 over the exact query string)
- Explicit timeout on every request
- Rate limit tracking from response headers
- Error mapping to tagged results, never None

WIRE FORMAT:
    GET  /time                        connectivity check
    GET  /klines?symbol=&interval=&limit=
    GET  /ticker/price?symbol=
    GET  /exchangeInfo?symbol=        LOT_SIZE filter
    GET  /account?timestamp=&signature=
    POST /order?symbol=&side=BUY&type=MARKET&quantity=&timestamp=&signature=

============================================================
"""

import asyncio
import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Awaitable, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from core.clock import ClockProtocol, SystemClock

from .base import GatewayResult, MarketDataGateway
from .config import ExchangeConfig
from .errors import (
    ErrorCategory,
    ExchangeException,
    create_invalid_response_error,
    create_network_error,
    create_not_found_error,
    create_timeout_error,
    map_binance_error,
)
from .logging_utils import mask_headers, mask_url
from .types import (
    AccountBalance,
    Candle,
    OrderAck,
    OrderSide,
    OrderType,
    TradingRule,
    format_quantity,
)


logger = logging.getLogger(__name__)


# ============================================================
# BINANCE SPOT ADAPTER
# ============================================================

class BinanceSpotAdapter(MarketDataGateway):
    """
    Binance Spot exchange adapter.

    Implements the MarketDataGateway interface for the Binance
    Spot REST API.
    """

    def __init__(
        self,
        config: ExchangeConfig,
        clock: Optional[ClockProtocol] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize Binance adapter.

        Args:
            config: Exchange configuration
            clock: Clock used for request timestamps
            session: Pre-built HTTP session (tests); owned by caller
        """
        self._config = config
        self._clock = clock or SystemClock()
        self._rest_url = config.rest_url.rstrip("/")

        # Session
        self._session = session
        self._owns_session = session is None

        # Rate limiting
        self._weight_used = 0
        self._rate_limit_reset = self._clock.timestamp() + config.rate_limit.window_seconds

    @property
    def exchange_id(self) -> str:
        return "binance_spot"

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self.is_connected:
            return

        timeout = aiohttp.ClientTimeout(
            connect=self._config.timeout.connection_timeout_seconds,
            total=self._config.timeout.read_timeout_seconds,
        )
        self._session = aiohttp.ClientSession(timeout=timeout)
        self._owns_session = True
        logger.info(f"Binance session opened | url={self._rest_url}")

    async def disconnect(self) -> None:
        """Close the HTTP session if this adapter opened it."""
        if self._session and self._owns_session:
            await self._session.close()
            logger.info("Binance session closed")
        self._session = None

    async def probe_connectivity(self) -> bool:
        """Test connectivity with GET /time."""
        try:
            await self._request("GET", "/time", operation="probe_connectivity")
            return True
        except ExchangeException as e:
            logger.error(f"Connectivity test failed: {e}")
            return False

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def fetch_candles(
        self,
        symbol: str,
        interval: str = "1d",
        limit: int = 15,
    ) -> GatewayResult[List[Candle]]:
        """Get recent klines, oldest to newest."""
        return await self._guarded(
            "fetch_candles",
            symbol,
            self._fetch_candles(symbol, interval, limit),
        )

    async def _fetch_candles(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        data = await self._request(
            "GET",
            "/klines",
            params={"symbol": symbol, "interval": interval, "limit": limit},
            operation="fetch_candles",
        )
        return [Candle.from_kline(row) for row in data]

    async def fetch_current_price(self, symbol: str) -> GatewayResult[Decimal]:
        """Get current price for symbol."""
        return await self._guarded(
            "fetch_current_price",
            symbol,
            self._fetch_current_price(symbol),
        )

    async def _fetch_current_price(self, symbol: str) -> Decimal:
        data = await self._request(
            "GET",
            "/ticker/price",
            params={"symbol": symbol},
            operation="fetch_current_price",
        )
        return Decimal(data["price"])

    async def fetch_trading_rule(self, symbol: str) -> GatewayResult[TradingRule]:
        """Get LOT_SIZE rule for symbol from exchangeInfo."""
        return await self._guarded(
            "fetch_trading_rule",
            symbol,
            self._fetch_trading_rule(symbol),
        )

    async def _fetch_trading_rule(self, symbol: str) -> TradingRule:
        data = await self._request(
            "GET",
            "/exchangeInfo",
            params={"symbol": symbol},
            operation="fetch_trading_rule",
        )

        symbol_info = next(
            (s for s in data.get("symbols", []) if s.get("symbol") == symbol),
            None,
        )
        if symbol_info is None:
            raise ExchangeException(create_not_found_error(
                ErrorCategory.SYMBOL_NOT_FOUND,
                f"Symbol not found in exchangeInfo: {symbol}",
                symbol=symbol,
                operation="fetch_trading_rule",
            ))

        lot_size = next(
            (f for f in symbol_info.get("filters", []) if f.get("filterType") == "LOT_SIZE"),
            None,
        )
        if lot_size is None:
            raise ExchangeException(create_not_found_error(
                ErrorCategory.RULE_NOT_FOUND,
                f"LOT_SIZE filter not found for {symbol}",
                symbol=symbol,
                operation="fetch_trading_rule",
            ))

        return TradingRule(
            symbol=symbol,
            min_quantity=Decimal(lot_size["minQty"]),
            step_size=Decimal(lot_size.get("stepSize", "0")),
            max_quantity=Decimal(lot_size.get("maxQty", "0")),
        )

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def fetch_account_balances(self) -> GatewayResult[List[AccountBalance]]:
        """Get non-zero account balances."""
        return await self._guarded(
            "fetch_account_balances",
            None,
            self._fetch_account_balances(),
        )

    async def _fetch_account_balances(self) -> List[AccountBalance]:
        data = await self._request(
            "GET",
            "/account",
            signed=True,
            operation="fetch_account_balances",
        )
        balances = [
            AccountBalance(
                asset=item["asset"],
                free=Decimal(item["free"]),
                locked=Decimal(item["locked"]),
            )
            for item in data.get("balances", [])
        ]
        return [b for b in balances if not b.is_zero]

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def submit_market_buy(
        self,
        symbol: str,
        quantity: Decimal,
    ) -> GatewayResult[OrderAck]:
        """Submit a market buy order."""
        return await self._guarded(
            "submit_market_buy",
            symbol,
            self._submit_market_buy(symbol, quantity),
        )

    async def _submit_market_buy(self, symbol: str, quantity: Decimal) -> OrderAck:
        params = {
            "symbol": symbol,
            "side": OrderSide.BUY.value,
            "type": OrderType.MARKET.value,
            "quantity": format_quantity(quantity),
        }
        data = await self._request(
            "POST",
            "/order",
            params=params,
            signed=True,
            operation="submit_market_buy",
        )
        ack = OrderAck.from_response(data)
        logger.info(
            f"Order accepted | symbol={symbol} order_id={ack.order_id} "
            f"status={ack.status} quantity={params['quantity']}"
        )
        return ack

    # --------------------------------------------------------
    # SIGNING
    # --------------------------------------------------------

    def sign(self, query_string: str) -> str:
        """HMAC-SHA256 hex digest of query_string keyed by the API secret."""
        return hmac.new(
            self._config.api_secret.encode(),
            query_string.encode(),
            hashlib.sha256,
        ).hexdigest()

    def build_query(
        self,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False,
    ) -> str:
        """
        Build the exact query string sent on the wire.

        Signed queries get timestamp appended last, then the
        signature over everything before it.

        Parameters keep insertion order. Binance symbols, enum values
        and plain-notation quantities contain no reserved characters,
        so the result is the plain `k=v&k=v` join; anything else is
        percent-encoded and the signature covers the encoded form.
        """
        query = urlencode(params or {})
        if signed:
            timestamp = f"timestamp={self._clock.timestamp_ms()}"
            query = f"{query}&{timestamp}" if query else timestamp
            query = f"{query}&signature={self.sign(query)}"
        return query

    # --------------------------------------------------------
    # RATE LIMITING
    # --------------------------------------------------------

    async def wait_for_rate_limit(self) -> None:
        """Wait if the weight budget for the current window is spent."""
        now = self._clock.timestamp()
        window = self._config.rate_limit.window_seconds

        if now >= self._rate_limit_reset:
            self._weight_used = 0
            self._rate_limit_reset = now + window

        if self._weight_used >= self._config.rate_limit.weight_per_minute:
            wait_time = self._rate_limit_reset - now
            if wait_time > 0:
                logger.warning(f"Weight limit reached, waiting {wait_time:.1f}s")
                await asyncio.sleep(wait_time)
            self._weight_used = 0
            self._rate_limit_reset = self._clock.timestamp() + window

    def _update_rate_limits(self, headers: Any) -> None:
        """Update rate limit counters from response headers."""
        used = headers.get("X-MBX-USED-WEIGHT-1M") if headers else None
        if used is not None:
            self._weight_used = int(used)

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    async def _guarded(
        self,
        operation: str,
        symbol: Optional[str],
        call: Awaitable[Any],
    ) -> GatewayResult:
        """Run one gateway call and convert any failure to a tagged result."""
        try:
            return GatewayResult.success(await call)
        except ExchangeException as e:
            error = e.error
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            error = create_invalid_response_error(
                f"Unexpected response: {e!r}",
                operation=operation,
            )

        error.operation = error.operation or operation
        error.symbol = error.symbol or symbol
        logger.error(
            f"{operation} failed"
            f"{f' for {symbol}' if symbol else ''}: {error}"
        )
        return GatewayResult.failure(error)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False,
        operation: Optional[str] = None,
    ) -> Any:
        """Make API request."""
        if not self.is_connected:
            raise ExchangeException(create_network_error("Not connected", operation))

        await self.wait_for_rate_limit()

        query = self.build_query(params, signed=signed)
        url = f"{self._rest_url}{path}"
        if query:
            url = f"{url}?{query}"

        headers = {"X-MBX-APIKEY": self._config.api_key} if signed else {}

        logger.debug(f"{method} {mask_url(url)} headers={mask_headers(headers)}")

        try:
            async with self._session.request(method, url, headers=headers) as response:
                self._update_rate_limits(response.headers)

                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    body = (await response.text())[:200]
                    if response.status != 200:
                        raise ExchangeException(map_binance_error(
                            -1,
                            body or f"HTTP {response.status}",
                            http_status=response.status,
                            operation=operation,
                        ))
                    raise ExchangeException(create_invalid_response_error(
                        f"Response is not JSON: {body!r}",
                        operation=operation,
                    ))

                if response.status != 200:
                    code = data.get("code", -1) if isinstance(data, dict) else -1
                    msg = data.get("msg", "Unknown error") if isinstance(data, dict) else str(data)
                    raise ExchangeException(map_binance_error(
                        code,
                        msg,
                        http_status=response.status,
                        operation=operation,
                    ))

                return data

        except aiohttp.ClientError as e:
            raise ExchangeException(create_network_error(f"Network error: {e}", operation))
        except asyncio.TimeoutError:
            timeout_ms = int(self._config.timeout.read_timeout_seconds * 1000)
            raise ExchangeException(create_timeout_error(timeout_ms, operation))
