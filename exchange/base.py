"""
Exchange Gateway - Abstract Interface.

============================================================
PURPOSE
============================================================
Abstract interface the DCA cycle consumes from the exchange.

DESIGN PRINCIPLES:
- Every fallible call returns a tagged GatewayResult; callers
  branch on ok/error instead of on None sentinels
- Connectivity check returns a plain bool
- Fully testable with the mock adapter

============================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from .errors import ExchangeError, ExchangeException
from .types import AccountBalance, Candle, OrderAck, TradingRule


T = TypeVar("T")


# ============================================================
# GATEWAY RESULT
# ============================================================

@dataclass
class GatewayResult(Generic[T]):
    """Outcome of one gateway call."""

    ok: bool
    """Whether the call succeeded."""

    value: Optional[T] = None
    """Payload when ok."""

    error: Optional[ExchangeError] = None
    """Error when not ok."""

    @classmethod
    def success(cls, value: T) -> "GatewayResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ExchangeError) -> "GatewayResult[T]":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        """Return the value or raise ExchangeException."""
        if not self.ok:
            raise ExchangeException(self.error)
        return self.value

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else ""


# ============================================================
# ABSTRACT GATEWAY
# ============================================================

class MarketDataGateway(ABC):
    """
    Abstract interface for the exchange.

    Implementations:
    - BinanceSpotAdapter: Real Binance Spot REST API
    - MockExchangeAdapter: For testing and dry runs
    """

    @property
    @abstractmethod
    def exchange_id(self) -> str:
        """Get exchange identifier."""
        pass

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying HTTP session."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the underlying HTTP session."""
        pass

    async def __aenter__(self) -> "MarketDataGateway":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    @abstractmethod
    async def probe_connectivity(self) -> bool:
        """
        Test connectivity to the exchange.

        Returns:
            True if the exchange answered, False otherwise
        """
        pass

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    @abstractmethod
    async def fetch_candles(
        self,
        symbol: str,
        interval: str = "1d",
        limit: int = 15,
    ) -> GatewayResult[List[Candle]]:
        """
        Get recent candles, oldest to newest.

        Args:
            symbol: Trading symbol, e.g. BTCUSDT
            interval: Kline interval
            limit: Number of candles
        """
        pass

    @abstractmethod
    async def fetch_current_price(self, symbol: str) -> GatewayResult[Decimal]:
        """Get latest traded price for symbol."""
        pass

    @abstractmethod
    async def fetch_trading_rule(self, symbol: str) -> GatewayResult[TradingRule]:
        """Get LOT_SIZE rule for symbol."""
        pass

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    @abstractmethod
    async def fetch_account_balances(self) -> GatewayResult[List[AccountBalance]]:
        """Get non-zero account balances."""
        pass

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    @abstractmethod
    async def submit_market_buy(
        self,
        symbol: str,
        quantity: Decimal,
    ) -> GatewayResult[OrderAck]:
        """
        Submit a signed market buy order.

        Args:
            symbol: Trading symbol
            quantity: Exchange-compliant base quantity
        """
        pass
