"""
DCA - Models.

============================================================
RESPONSIBILITY
============================================================
Cycle-scoped data models for one DCA cycle.

- Momentum scores per symbol
- Allocation plan and entries
- Order requests and unfillable results from sizing
- Per-symbol outcomes and the cycle outcome

Nothing here outlives a cycle.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from exchange.types import AccountBalance


# ============================================================
# MOMENTUM
# ============================================================

@dataclass(frozen=True)
class SymbolMomentum:
    """RSI momentum score for one symbol."""

    symbol: str

    score: Optional[Decimal] = None
    """RSI in [0, 100], None when it could not be computed."""

    @property
    def is_scored(self) -> bool:
        return self.score is not None


# ============================================================
# ALLOCATION
# ============================================================

@dataclass(frozen=True)
class AllocationEntry:
    """Target USDT spend for one symbol."""

    symbol: str
    score: Decimal

    base_share: Decimal
    """Equal share of the total budget."""

    target_spend: Decimal
    """Momentum-weighted spend, never below the minimum order value."""

    floor_applied: bool = False
    """Whether target_spend was raised to the minimum order value."""


@dataclass
class AllocationPlan:
    """
    Ordered allocation for one cycle.

    The sum of target spends may exceed the total budget. The
    excess is reported, never corrected.
    """

    entries: List[AllocationEntry] = field(default_factory=list)
    total_budget: Decimal = Decimal("0")
    min_order_value: Decimal = Decimal("0")

    def __iter__(self) -> Iterator[AllocationEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def symbols(self) -> List[str]:
        return [entry.symbol for entry in self.entries]

    @property
    def total_target_spend(self) -> Decimal:
        return sum((entry.target_spend for entry in self.entries), Decimal("0"))

    @property
    def overspend(self) -> Decimal:
        """Amount by which target spends exceed the budget (0 if none)."""
        return max(self.total_target_spend - self.total_budget, Decimal("0"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_budget": str(self.total_budget),
            "min_order_value": str(self.min_order_value),
            "total_target_spend": str(self.total_target_spend),
            "entries": [
                {
                    "symbol": e.symbol,
                    "score": str(e.score),
                    "base_share": str(e.base_share),
                    "target_spend": str(e.target_spend),
                    "floor_applied": e.floor_applied,
                }
                for e in self.entries
            ],
        }


# ============================================================
# SIZING
# ============================================================

@dataclass(frozen=True)
class OrderRequest:
    """Exchange-compliant market buy for one symbol."""

    symbol: str

    quantity: Decimal
    """Base-asset quantity, rounded to the symbol's precision."""

    implied_price: Decimal
    """Price the quantity was derived from."""

    target_spend: Decimal


@dataclass(frozen=True)
class Unfillable:
    """Sizing result when the rounded quantity is not above the minimum."""

    symbol: str
    reason: str
    raw_quantity: Decimal
    rounded_quantity: Decimal


# ============================================================
# OUTCOMES
# ============================================================

class OutcomeStatus(Enum):
    """Terminal status of a symbol in a cycle."""

    PLANNED = "PLANNED"
    """Sized but not submitted (dry run)."""

    SKIPPED = "SKIPPED"
    """Excluded before planning."""

    SUBMITTED = "SUBMITTED"
    """Order accepted by the exchange."""

    FAILED = "FAILED"
    """Planned but no order could be placed."""


class OutcomeReason(Enum):
    """Why a symbol ended where it did."""

    INSUFFICIENT_DATA = "insufficient_data"
    ZERO_MOMENTUM = "zero_momentum"
    NO_PRICE = "no_price"
    NO_RULE = "no_rule"
    BELOW_MINIMUM = "below_minimum"
    SUBMISSION_ERROR = "submission_error"
    DRY_RUN = "dry_run"
    INTERNAL_ERROR = "internal_error"


@dataclass
class SymbolOutcome:
    """Outcome for one configured symbol."""

    symbol: str
    status: OutcomeStatus
    reason: Optional[OutcomeReason] = None
    score: Optional[Decimal] = None
    target_spend: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    price: Optional[Decimal] = None
    order_id: Optional[str] = None
    detail: Optional[str] = None
    """Error message or other free-form context."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
            "score": _str_or_none(self.score),
            "target_spend": _str_or_none(self.target_spend),
            "quantity": _str_or_none(self.quantity),
            "price": _str_or_none(self.price),
            "order_id": self.order_id,
            "detail": self.detail,
        }

    def to_log_line(self) -> str:
        parts = [f"{self.symbol}: {self.status.value}"]
        if self.reason:
            parts.append(f"reason={self.reason.value}")
        if self.score is not None:
            parts.append(f"rsi={self.score}")
        if self.target_spend is not None:
            parts.append(f"spend={self.target_spend:.2f}")
        if self.quantity is not None:
            parts.append(f"qty={self.quantity}")
        if self.price is not None:
            parts.append(f"price={self.price}")
        if self.order_id:
            parts.append(f"order_id={self.order_id}")
        if self.detail:
            parts.append(f"detail={self.detail}")
        return " ".join(parts)


@dataclass
class CycleOutcome:
    """Result of a complete DCA cycle."""

    cycle_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcomes: List[SymbolOutcome] = field(default_factory=list)
    plan: Optional[AllocationPlan] = None
    balances: List[AccountBalance] = field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def add(self, outcome: SymbolOutcome) -> None:
        self.outcomes.append(outcome)

    def outcome_for(self, symbol: str) -> Optional[SymbolOutcome]:
        for outcome in self.outcomes:
            if outcome.symbol == symbol:
                return outcome
        return None

    def with_status(self, status: OutcomeStatus) -> List[SymbolOutcome]:
        return [o for o in self.outcomes if o.status == status]

    def counts(self) -> Dict[str, int]:
        """Number of outcomes per status."""
        return {
            status.value: len(self.with_status(status))
            for status in OutcomeStatus
        }

    @property
    def submitted_spend(self) -> Decimal:
        """Target spend of submitted orders."""
        return sum(
            (o.target_spend for o in self.with_status(OutcomeStatus.SUBMITTED) if o.target_spend),
            Decimal("0"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
            "counts": self.counts(),
            "plan": self.plan.to_dict() if self.plan else None,
            "balances": [
                {"asset": b.asset, "free": str(b.free), "locked": str(b.locked)}
                for b in self.balances
            ],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def _str_or_none(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None
