"""
Exchange Gateway - Types.

============================================================
PURPOSE
============================================================
Value types returned by the exchange gateway.

All prices and quantities are Decimal. Values are fetched
fresh every cycle and never cached across cycles.

============================================================
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


# ============================================================
# ORDER TYPES
# ============================================================

class OrderSide(Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"


class OrderType(Enum):
    """Order type."""

    MARKET = "MARKET"
    LIMIT = "LIMIT"


# ============================================================
# MARKET DATA
# ============================================================

@dataclass(frozen=True)
class Candle:
    """One kline as returned by GET /klines."""

    open_time: datetime
    """Candle open time (UTC)."""

    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    close_time: Optional[datetime] = None
    """Candle close time (UTC)."""

    @classmethod
    def from_kline(cls, row: Sequence[Any]) -> "Candle":
        """
        Build from a raw kline row.

        Row layout: [openTime, open, high, low, close, volume,
        closeTime, quoteVolume, trades, ...].
        """
        return cls(
            open_time=_from_millis(row[0]),
            open=Decimal(str(row[1])),
            high=Decimal(str(row[2])),
            low=Decimal(str(row[3])),
            close=Decimal(str(row[4])),
            volume=Decimal(str(row[5])),
            close_time=_from_millis(row[6]) if len(row) > 6 else None,
        )


def closing_prices(candles: Sequence[Candle]) -> List[Decimal]:
    """Closes in candle order (oldest to newest)."""
    return [candle.close for candle in candles]


# ============================================================
# EXCHANGE RULES
# ============================================================

@dataclass(frozen=True)
class TradingRule:
    """LOT_SIZE constraint for a trading symbol."""

    symbol: str
    """Trading symbol."""

    min_quantity: Decimal
    """Minimum order quantity (LOT_SIZE minQty)."""

    step_size: Decimal = Decimal("0")
    """Quantity step size (LOT_SIZE stepSize)."""

    max_quantity: Decimal = Decimal("0")
    """Maximum order quantity, 0 if unknown."""

    @property
    def quantity_precision(self) -> int:
        """Decimal places honored for quantity, derived from min_quantity."""
        return derive_quantity_precision(self.min_quantity)


def derive_quantity_precision(min_quantity: Decimal) -> int:
    """
    Position of the first non-zero fractional digit of min_quantity.

    Binance reports minQty padded to 8 places ("0.00100000"), so
    the trailing zeros are ignored: 0.0010 -> 3, 0.00001 -> 5.
    A whole-number minimum rounds to whole units (precision 0).
    """
    text = format(Decimal(min_quantity), "f")
    if "." not in text:
        return 0
    fraction = text.split(".", 1)[1]
    for index, digit in enumerate(fraction):
        if digit != "0":
            return index + 1
    return 0


# ============================================================
# ACCOUNT STATE
# ============================================================

@dataclass(frozen=True)
class AccountBalance:
    """Account balance for an asset."""

    asset: str = ""
    """Asset symbol (e.g., USDT)."""

    free: Decimal = Decimal("0")
    """Free (available) balance."""

    locked: Decimal = Decimal("0")
    """Locked (in orders) balance."""

    @property
    def total(self) -> Decimal:
        """Get total balance."""
        return self.free + self.locked

    @property
    def is_zero(self) -> bool:
        return self.free <= 0 and self.locked <= 0


def find_balance(balances: Sequence[AccountBalance], asset: str) -> Optional[AccountBalance]:
    """Balance for asset, or None if the account holds none."""
    for balance in balances:
        if balance.asset == asset:
            return balance
    return None


# ============================================================
# ORDERS
# ============================================================

@dataclass
class OrderAck:
    """Exchange acknowledgement of a submitted order."""

    order_id: str
    """Exchange-assigned order ID."""

    symbol: str
    """Trading symbol."""

    status: str = "NEW"
    """Order status from exchange."""

    executed_quantity: Decimal = Decimal("0")
    """Filled base quantity."""

    quote_quantity: Decimal = Decimal("0")
    """Quote currency spent (cummulativeQuoteQty)."""

    transact_time: Optional[datetime] = None
    """Exchange transaction time."""

    raw_response: Dict[str, Any] = field(default_factory=dict)
    """Raw exchange response."""

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "OrderAck":
        return cls(
            order_id=str(data["orderId"]),
            symbol=data.get("symbol", ""),
            status=data.get("status", "NEW"),
            executed_quantity=Decimal(data.get("executedQty", "0")),
            quote_quantity=Decimal(data.get("cummulativeQuoteQty", "0")),
            transact_time=_from_millis(data["transactTime"]) if data.get("transactTime") else None,
            raw_response=data,
        )


def _from_millis(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def format_quantity(quantity: Decimal) -> str:
    """
    Render a quantity for the wire in plain notation.

    Trailing zeros are dropped: 0.0100 -> "0.01", 5.000 -> "5".
    """
    text = format(Decimal(quantity), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
