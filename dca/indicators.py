"""
DCA - Momentum Indicator.

RSI with Wilder smoothing over daily closes. The value is
rounded to two decimals, the same precision exchanges and
charting tools display.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence


DEFAULT_RSI_PERIOD = 14

_HUNDRED = Decimal("100")
_TWO_PLACES = Decimal("0.01")


def compute_rsi(closes: Sequence[Decimal], period: int = DEFAULT_RSI_PERIOD) -> Optional[Decimal]:
    """
    RSI of the last close.

    Args:
        closes: Closing prices, oldest first
        period: Lookback period

    Returns:
        RSI in [0, 100], or None when fewer than period + 1 closes
    """
    if period < 1 or len(closes) <= period:
        return None

    values = [Decimal(str(c)) for c in closes]

    gains = Decimal("0")
    losses = Decimal("0")
    for i in range(1, period + 1):
        d = values[i] - values[i - 1]
        if d >= 0:
            gains += d
        else:
            losses -= d

    avg_gain = gains / period
    avg_loss = losses / period

    for i in range(period + 1, len(values)):
        d = values[i] - values[i - 1]
        gain = d if d > 0 else Decimal("0")
        loss = -d if d < 0 else Decimal("0")
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return _HUNDRED.quantize(_TWO_PLACES)
    if avg_gain == 0:
        return Decimal("0").quantize(_TWO_PLACES)

    rs = avg_gain / avg_loss
    rsi = _HUNDRED - (_HUNDRED / (1 + rs))
    return rsi.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
