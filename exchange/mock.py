"""
Exchange Gateway - Mock Exchange Adapter.

============================================================
PURPOSE
============================================================
In-memory adapter for tests and for dry runs without network.

FEATURES:
- Configurable prices, trading rules, candles and balances
- Per-operation, per-symbol failure injection
- Connectivity switch
- Full call log and recorded orders

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .base import GatewayResult, MarketDataGateway
from .errors import ErrorCategory, ExchangeError
from .types import AccountBalance, Candle, OrderAck, TradingRule


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockConfig:
    """Configuration for mock adapter."""

    latency_ms: float = 0.0
    """Simulated latency per call."""

    initial_usdt: Decimal = Decimal("1000")
    """Initial free USDT balance."""

    default_min_quantity: Decimal = Decimal("0.001")
    """LOT_SIZE minQty used by seeded symbols."""

    demo_price: Decimal = Decimal("100")
    """Base price for the demo market."""


# ============================================================
# MOCK EXCHANGE ADAPTER
# ============================================================

class MockExchangeAdapter(MarketDataGateway):
    """
    Mock exchange adapter for testing.

    Nothing is returned for a symbol until it has been seeded:
    an unknown price or rule is a SYMBOL_NOT_FOUND failure and
    unknown candles are an empty list.
    """

    def __init__(self, config: Optional[MockConfig] = None):
        self._config = config or MockConfig()
        self._connected = False

        # State
        self._prices: Dict[str, Decimal] = {}
        self._rules: Dict[str, TradingRule] = {}
        self._candles: Dict[str, List[Candle]] = {}
        self._balances: Dict[str, AccountBalance] = {}
        self._order_seq = 0

        if self._config.initial_usdt > 0:
            self.set_balance("USDT", self._config.initial_usdt)

        # Error injection
        self._failures: Dict[Tuple[str, Optional[str]], ExchangeError] = {}
        self.reachable = True
        """Result of probe_connectivity."""

        # Recording
        self.calls: List[Tuple[str, Optional[str]]] = []
        """(operation, symbol) for every gateway call, in order."""

        self.orders: List[OrderAck] = []
        """Orders accepted by submit_market_buy."""

    @classmethod
    def with_demo_market(
        cls,
        symbols: Iterable[str],
        config: Optional[MockConfig] = None,
    ) -> "MockExchangeAdapter":
        """
        Build an adapter with deterministic prices and candles.

        Every symbol gets 30 daily closes oscillating around a base
        price so RSI differs per symbol.
        """
        adapter = cls(config)
        base = adapter._config.demo_price
        for index, symbol in enumerate(symbols):
            price = base * (index + 1)
            swing = index % 4 + 1
            closes = [
                price * (Decimal(100) + Decimal((i * swing) % 7 - 3)) / Decimal(100)
                for i in range(30)
            ]
            adapter.seed_symbol(symbol, price=closes[-1], closes=closes)
        return adapter

    @property
    def exchange_id(self) -> str:
        return "mock"

    @property
    def is_connected(self) -> bool:
        return self._connected

    # --------------------------------------------------------
    # SETUP
    # --------------------------------------------------------

    def seed_symbol(
        self,
        symbol: str,
        price: Optional[Decimal] = None,
        closes: Optional[Sequence[Decimal]] = None,
        min_quantity: Optional[Decimal] = None,
    ) -> None:
        """Seed price, candles and LOT_SIZE rule for one symbol."""
        if price is not None:
            self.set_price(symbol, price)
        if closes is not None:
            self.set_closes(symbol, closes)
        self.set_rule(symbol, min_quantity or self._config.default_min_quantity)

    def set_price(self, symbol: str, price: Decimal) -> None:
        self._prices[symbol] = Decimal(price)

    def set_rule(self, symbol: str, min_quantity: Decimal) -> None:
        min_quantity = Decimal(min_quantity)
        self._rules[symbol] = TradingRule(
            symbol=symbol,
            min_quantity=min_quantity,
            step_size=min_quantity,
        )

    def set_closes(self, symbol: str, closes: Sequence[Decimal]) -> None:
        """Store daily candles whose closes are the given values."""
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        candles = []
        for i, close in enumerate(closes):
            close = Decimal(close)
            open_time = start + timedelta(days=i)
            candles.append(Candle(
                open_time=open_time,
                open=close,
                high=close,
                low=close,
                close=close,
                volume=Decimal("0"),
                close_time=open_time + timedelta(days=1, milliseconds=-1),
            ))
        self._candles[symbol] = candles

    def set_balance(
        self,
        asset: str,
        free: Decimal,
        locked: Decimal = Decimal("0"),
    ) -> None:
        self._balances[asset] = AccountBalance(
            asset=asset,
            free=Decimal(free),
            locked=Decimal(locked),
        )

    def fail(
        self,
        operation: str,
        symbol: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.NETWORK,
        message: Optional[str] = None,
    ) -> None:
        """
        Make an operation fail.

        Args:
            operation: Gateway method name, e.g. "fetch_current_price"
            symbol: Only fail for this symbol (None: every symbol)
            category: Error category of the injected failure
            message: Error message
        """
        self._failures[(operation, symbol)] = ExchangeError(
            category=category,
            code=f"MOCK_{category.value}",
            message=message or f"Injected {category.value} failure",
            exchange_id=self.exchange_id,
            operation=operation,
            symbol=symbol,
        )

    def clear_failures(self) -> None:
        self._failures.clear()

    def calls_for(self, operation: str) -> List[Optional[str]]:
        """Symbols passed to one operation, in call order."""
        return [symbol for op, symbol in self.calls if op == operation]

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        self._connected = True
        logger.info("MockExchangeAdapter connected")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("MockExchangeAdapter disconnected")

    async def probe_connectivity(self) -> bool:
        await self._record("probe_connectivity", None)
        return self.reachable

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def fetch_candles(
        self,
        symbol: str,
        interval: str = "1d",
        limit: int = 15,
    ) -> GatewayResult[List[Candle]]:
        error = await self._record("fetch_candles", symbol)
        if error:
            return GatewayResult.failure(error)
        candles = self._candles.get(symbol, [])
        return GatewayResult.success(list(candles[-limit:]) if limit > 0 else [])

    async def fetch_current_price(self, symbol: str) -> GatewayResult[Decimal]:
        error = await self._record("fetch_current_price", symbol)
        if error:
            return GatewayResult.failure(error)
        if symbol not in self._prices:
            return GatewayResult.failure(
                self._not_found(ErrorCategory.SYMBOL_NOT_FOUND, "fetch_current_price", symbol)
            )
        return GatewayResult.success(self._prices[symbol])

    async def fetch_trading_rule(self, symbol: str) -> GatewayResult[TradingRule]:
        error = await self._record("fetch_trading_rule", symbol)
        if error:
            return GatewayResult.failure(error)
        if symbol not in self._rules:
            return GatewayResult.failure(
                self._not_found(ErrorCategory.RULE_NOT_FOUND, "fetch_trading_rule", symbol)
            )
        return GatewayResult.success(self._rules[symbol])

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def fetch_account_balances(self) -> GatewayResult[List[AccountBalance]]:
        error = await self._record("fetch_account_balances", None)
        if error:
            return GatewayResult.failure(error)
        return GatewayResult.success(
            [b for b in self._balances.values() if not b.is_zero]
        )

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def submit_market_buy(
        self,
        symbol: str,
        quantity: Decimal,
    ) -> GatewayResult[OrderAck]:
        error = await self._record("submit_market_buy", symbol)
        if error:
            return GatewayResult.failure(error)

        self._order_seq += 1
        price = self._prices.get(symbol, Decimal("0"))
        ack = OrderAck(
            order_id=str(self._order_seq),
            symbol=symbol,
            status="FILLED",
            executed_quantity=quantity,
            quote_quantity=quantity * price,
            transact_time=datetime.now(timezone.utc),
        )
        self.orders.append(ack)
        logger.info(f"Mock order filled | symbol={symbol} quantity={quantity} id={ack.order_id}")
        return GatewayResult.success(ack)

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    async def _record(self, operation: str, symbol: Optional[str]) -> Optional[ExchangeError]:
        """Log the call, simulate latency and return any injected failure."""
        self.calls.append((operation, symbol))
        if self._config.latency_ms > 0:
            await asyncio.sleep(self._config.latency_ms / 1000)
        return self._failures.get((operation, symbol)) or self._failures.get((operation, None))

    def _not_found(self, category: ErrorCategory, operation: str, symbol: str) -> ExchangeError:
        return ExchangeError(
            category=category,
            code=f"MOCK_{category.value}",
            message=f"{symbol} is not seeded",
            exchange_id=self.exchange_id,
            operation=operation,
            symbol=symbol,
        )
