"""
Exchange Gateway - Error Taxonomy.

============================================================
PURPOSE
============================================================
One error shape for every gateway failure, so the cycle can
branch on what went wrong instead of parsing messages.

A failed call is never retried inside a cycle; the category
only decides which outcome reason a symbol gets.

============================================================
ERROR CATEGORIES
============================================================
Transport:  NETWORK, TIMEOUT, RATE_LIMIT
Account:    AUTHENTICATION, INSUFFICIENT_FUNDS
Order:      INVALID_ORDER, INVALID_QUANTITY, MIN_NOTIONAL
Metadata:   SYMBOL_NOT_FOUND, RULE_NOT_FOUND
Payload:    INVALID_RESPONSE
Exchange:   EXCHANGE_ERROR, UNKNOWN

============================================================
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


GATEWAY_PREFIX = "BINANCE"


class ErrorCategory(Enum):
    """What kind of failure a gateway call hit."""

    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    AUTHENTICATION = "AUTHENTICATION"
    INVALID_ORDER = "INVALID_ORDER"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    MIN_NOTIONAL = "MIN_NOTIONAL"
    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    RULE_NOT_FOUND = "RULE_NOT_FOUND"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"
    UNKNOWN = "UNKNOWN"


@dataclass
class ExchangeError:
    """
    A failed gateway call.

    Carried inside failed GatewayResult values and raised inside
    adapters wrapped in ExchangeException.
    """

    category: ErrorCategory
    code: str
    """Gateway-prefixed code, e.g. BINANCE_-2010."""

    message: str

    exchange_code: Optional[str] = None
    """Raw code from the exchange payload, if it sent one."""

    http_status: Optional[int] = None
    exchange_id: Optional[str] = "binance"
    operation: Optional[str] = None
    symbol: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.value
        return data

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.code}: {self.message}"


class ExchangeException(Exception):
    """Raised inside adapters; converted to a failed result at the boundary."""

    def __init__(self, error: ExchangeError):
        self.error = error
        super().__init__(str(error))


# ============================================================
# BINANCE CODES
# ============================================================

BINANCE_ERROR_MAP: Dict[int, ErrorCategory] = {
    -1000: ErrorCategory.EXCHANGE_ERROR,
    -1001: ErrorCategory.EXCHANGE_ERROR,
    -1002: ErrorCategory.AUTHENTICATION,
    -1003: ErrorCategory.RATE_LIMIT,
    -1006: ErrorCategory.EXCHANGE_ERROR,
    -1007: ErrorCategory.TIMEOUT,
    -1013: ErrorCategory.INVALID_QUANTITY,
    -1015: ErrorCategory.RATE_LIMIT,
    -1021: ErrorCategory.TIMEOUT,
    -1022: ErrorCategory.AUTHENTICATION,
    -1100: ErrorCategory.INVALID_ORDER,
    -1101: ErrorCategory.INVALID_ORDER,
    -1102: ErrorCategory.INVALID_ORDER,
    -1111: ErrorCategory.INVALID_QUANTITY,
    -1121: ErrorCategory.SYMBOL_NOT_FOUND,
    -2010: ErrorCategory.INSUFFICIENT_FUNDS,
    -2014: ErrorCategory.AUTHENTICATION,
    -2015: ErrorCategory.AUTHENTICATION,
}


def _category_for_status(http_status: Optional[int]) -> ErrorCategory:
    if http_status in (418, 429):
        return ErrorCategory.RATE_LIMIT
    if http_status in (401, 403):
        return ErrorCategory.AUTHENTICATION
    if http_status is not None and http_status >= 500:
        return ErrorCategory.EXCHANGE_ERROR
    return ErrorCategory.UNKNOWN


def map_binance_error(
    code: int,
    message: str,
    http_status: Optional[int] = None,
    operation: Optional[str] = None,
) -> ExchangeError:
    """
    Classify a Binance `{code, msg}` reply.

    Unknown codes fall back to the HTTP status.
    """
    category = BINANCE_ERROR_MAP.get(code) or _category_for_status(http_status)
    return ExchangeError(
        category=category,
        code=f"{GATEWAY_PREFIX}_{code}",
        message=message,
        exchange_code=str(code),
        http_status=http_status,
        operation=operation,
    )


# ============================================================
# LOCAL FAILURES
# ============================================================

def _local_error(
    category: ErrorCategory,
    suffix: str,
    message: str,
    operation: Optional[str] = None,
    symbol: Optional[str] = None,
) -> ExchangeError:
    return ExchangeError(
        category=category,
        code=f"{GATEWAY_PREFIX}_{suffix}",
        message=message,
        operation=operation,
        symbol=symbol,
    )


def create_network_error(message: str, operation: Optional[str] = None) -> ExchangeError:
    return _local_error(ErrorCategory.NETWORK, "NETWORK_ERROR", message, operation)


def create_timeout_error(timeout_ms: int, operation: Optional[str] = None) -> ExchangeError:
    return _local_error(
        ErrorCategory.TIMEOUT,
        "TIMEOUT",
        f"Request timed out after {timeout_ms}ms",
        operation,
    )


def create_not_found_error(
    category: ErrorCategory,
    message: str,
    symbol: Optional[str] = None,
    operation: Optional[str] = None,
) -> ExchangeError:
    """Symbol or LOT_SIZE filter missing from exchangeInfo."""
    return _local_error(category, category.value, message, operation, symbol)


def create_invalid_response_error(
    message: str,
    operation: Optional[str] = None,
    symbol: Optional[str] = None,
) -> ExchangeError:
    """Payload that could not be decoded or lacked expected fields."""
    return _local_error(ErrorCategory.INVALID_RESPONSE, "INVALID_RESPONSE", message, operation, symbol)
