"""
DCA - Order Sizer.

Converts a USDT target spend into a base-asset quantity the
exchange will accept.

    raw     = target_spend / price
    rounded = raw rounded half-up to the rule's quantity precision
    rounded <= min_quantity  ->  Unfillable(below_minimum)
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from exchange.types import TradingRule, derive_quantity_precision, format_quantity

from .models import OrderRequest, OutcomeReason, Unfillable


SizingResult = Union[OrderRequest, Unfillable]


def round_quantity(quantity: Decimal, precision: int) -> Decimal:
    """Round half away from zero to `precision` decimal places."""
    return quantity.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)


class OrderSizer:
    """Stateless; the same inputs always give the same result."""

    def size(
        self,
        symbol: str,
        target_spend: Decimal,
        current_price: Decimal,
        rule: TradingRule,
    ) -> SizingResult:
        if current_price is None or current_price <= 0:
            raise ValueError(f"current_price must be positive for {symbol}, got {current_price}")

        target_spend = Decimal(target_spend)
        current_price = Decimal(current_price)

        raw_quantity = target_spend / current_price
        rounded = round_quantity(raw_quantity, derive_quantity_precision(rule.min_quantity))

        if rounded <= rule.min_quantity:
            return Unfillable(
                symbol=symbol,
                reason=OutcomeReason.BELOW_MINIMUM.value,
                raw_quantity=raw_quantity,
                rounded_quantity=rounded,
            )

        return OrderRequest(
            symbol=symbol,
            quantity=rounded,
            implied_price=current_price,
            target_spend=target_spend,
        )


__all__ = [
    "OrderSizer",
    "SizingResult",
    "round_quantity",
    "derive_quantity_precision",
    "format_quantity",
]
