"""
DCA - Allocation Planner.

============================================================
PURPOSE
============================================================
Distribute a fixed USDT budget across scored symbols,
weighting each inversely by its RSI.

    base_share   = total_budget / N
    target_spend = base_share * (REFERENCE_SCORE / score)

A symbol at RSI 25 gets twice its equal share, one at RSI 100
gets half. There is no upper clamp. A target below the minimum
order value is raised to exactly that value, so the plan may
spend more than the budget.

============================================================
"""

import logging
from decimal import Decimal
from typing import List, Sequence

from .models import AllocationEntry, AllocationPlan, SymbolMomentum


logger = logging.getLogger(__name__)


REFERENCE_SCORE = Decimal("50")
"""RSI at which a symbol receives exactly its equal share."""

DEFAULT_MIN_ORDER_VALUE = Decimal("5.1")
"""Smallest USDT spend worth submitting."""


class AllocationPlanner:
    """Momentum-weighted budget distribution."""

    def __init__(self, reference_score: Decimal = REFERENCE_SCORE):
        if reference_score <= 0:
            raise ValueError("reference_score must be positive")
        self._reference_score = Decimal(reference_score)

    def plan(
        self,
        symbols: Sequence[SymbolMomentum],
        total_budget: Decimal,
        min_order_value: Decimal = DEFAULT_MIN_ORDER_VALUE,
    ) -> AllocationPlan:
        """
        Build the allocation plan.

        Symbols without a positive score are left out and do not
        count toward N. Entries keep the input order. With no
        eligible symbol the plan is empty.
        """
        total_budget = Decimal(total_budget)
        min_order_value = Decimal(min_order_value)

        eligible = [m for m in symbols if m.score is not None and m.score > 0]
        plan = AllocationPlan(total_budget=total_budget, min_order_value=min_order_value)

        if not eligible:
            logger.info("No scored symbols, allocation plan is empty")
            return plan

        base_share = total_budget / len(eligible)
        entries: List[AllocationEntry] = []

        for momentum in eligible:
            target = base_share * (self._reference_score / momentum.score)
            floor_applied = target < min_order_value
            if floor_applied:
                target = min_order_value

            entries.append(AllocationEntry(
                symbol=momentum.symbol,
                score=momentum.score,
                base_share=base_share,
                target_spend=target,
                floor_applied=floor_applied,
            ))

        plan.entries = entries

        if plan.overspend > 0:
            logger.info(
                f"Plan exceeds budget by {plan.overspend:.2f} USDT "
                f"(target {plan.total_target_spend:.2f} of {total_budget})"
            )

        return plan
