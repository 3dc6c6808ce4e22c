"""
Exchange Gateway.

Market data, account and order access for Binance Spot behind
one async interface, plus an in-memory mock for tests and dry runs.
"""

from .base import GatewayResult, MarketDataGateway
from .binance import BinanceSpotAdapter
from .config import DEFAULT_REST_URL, ExchangeConfig, RateLimitConfig, TimeoutConfig
from .errors import (
    ErrorCategory,
    ExchangeError,
    ExchangeException,
    map_binance_error,
)
from .mock import MockConfig, MockExchangeAdapter
from .types import (
    AccountBalance,
    Candle,
    OrderAck,
    OrderSide,
    OrderType,
    TradingRule,
    closing_prices,
    derive_quantity_precision,
    find_balance,
    format_quantity,
)


__all__ = [
    "GatewayResult",
    "MarketDataGateway",
    "BinanceSpotAdapter",
    "MockConfig",
    "MockExchangeAdapter",
    "DEFAULT_REST_URL",
    "ExchangeConfig",
    "RateLimitConfig",
    "TimeoutConfig",
    "ErrorCategory",
    "ExchangeError",
    "ExchangeException",
    "map_binance_error",
    "AccountBalance",
    "Candle",
    "OrderAck",
    "OrderSide",
    "OrderType",
    "TradingRule",
    "closing_prices",
    "derive_quantity_precision",
    "find_balance",
    "format_quantity",
]
