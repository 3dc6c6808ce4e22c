"""
DCA - Momentum-weighted dollar-cost averaging.

Allocation planning, order sizing and RSI scoring for one cycle.
"""

from .config import DCAConfig, parse_symbols
from .indicators import DEFAULT_RSI_PERIOD, compute_rsi
from .models import (
    AllocationEntry,
    AllocationPlan,
    CycleOutcome,
    OrderRequest,
    OutcomeReason,
    OutcomeStatus,
    SymbolMomentum,
    SymbolOutcome,
    Unfillable,
)
from .planner import DEFAULT_MIN_ORDER_VALUE, REFERENCE_SCORE, AllocationPlanner
from .sizing import OrderSizer, SizingResult, round_quantity


__all__ = [
    "DCAConfig",
    "parse_symbols",
    "DEFAULT_RSI_PERIOD",
    "compute_rsi",
    "AllocationEntry",
    "AllocationPlan",
    "CycleOutcome",
    "OrderRequest",
    "OutcomeReason",
    "OutcomeStatus",
    "SymbolMomentum",
    "SymbolOutcome",
    "Unfillable",
    "DEFAULT_MIN_ORDER_VALUE",
    "REFERENCE_SCORE",
    "AllocationPlanner",
    "OrderSizer",
    "SizingResult",
    "round_quantity",
]
