"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the DCA agent.

- Provides clear exception hierarchy
- Separates cycle-fatal errors from per-symbol errors
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
DCAException (base)
├── ConfigurationError
├── ConnectivityError          (cycle-fatal)
├── DataInsufficientError      (per-symbol, skipped from planning)
├── MarketDataError            (per-symbol, no price or no rule)
├── SizingUnfillableError      (per-symbol, below minimum quantity)
└── SubmissionError            (per-symbol, order rejected/failed)

Only ConnectivityError ever propagates out of a cycle.
Per-symbol errors are converted to outcome entries by the
orchestrator.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the cycle could not run."""

    CRITICAL = "critical"
    """Critical issue, the process cannot run."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class DCAException(Exception):
    """
    Base exception for all DCA agent errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - recoverable: whether the next cycle may succeed
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        base = (
            f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
            f" | recoverable={self.recoverable}"
        )
        return f"{base} | {ctx_str}" if ctx_str else base


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(DCAException):
    """Configuration is missing or invalid."""

    default_severity = Severity.CRITICAL
    default_recoverable = False

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        self.errors = list(errors or [])
        if self.errors:
            context["errors"] = self.errors
        super().__init__(message, context=context, **kwargs)


# ============================================================
# CYCLE ERRORS
# ============================================================

class ConnectivityError(DCAException):
    """
    Exchange is unreachable.

    Aborts the whole cycle before any order is attempted.
    """

    default_severity = Severity.HIGH
    default_recoverable = True

    def __init__(self, message: str, endpoint: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if endpoint:
            context["endpoint"] = endpoint
        super().__init__(message, context=context, **kwargs)


class SymbolError(DCAException):
    """
    Base class for errors scoped to a single symbol.

    `reason` is the outcome reason code recorded for the symbol.
    """

    default_severity = Severity.LOW
    default_reason: str = "internal_error"

    def __init__(
        self,
        message: str,
        symbol: str,
        reason: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["symbol"] = symbol
        self.symbol = symbol
        self.reason = reason or self.default_reason
        context["reason"] = self.reason
        super().__init__(message, context=context, **kwargs)


class DataInsufficientError(SymbolError):
    """Not enough candles to compute a momentum score."""

    default_reason = "insufficient_data"


class MarketDataError(SymbolError):
    """Price or trading rule could not be obtained for a symbol."""

    default_severity = Severity.MEDIUM


class SizingUnfillableError(SymbolError):
    """Rounded quantity does not exceed the exchange minimum."""

    default_reason = "below_minimum"


class SubmissionError(SymbolError):
    """Exchange rejected the order or the submit call failed."""

    default_severity = Severity.MEDIUM
    default_reason = "submission_error"

    def __init__(
        self,
        message: str,
        symbol: str,
        error_code: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if error_code:
            context["error_code"] = error_code
        self.error_code = error_code
        super().__init__(message, symbol=symbol, context=context, **kwargs)
