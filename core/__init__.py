"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Injectable time abstraction
- exceptions: Custom exception hierarchy
"""

from .clock import ClockProtocol, SystemClock, MockClock
from .exceptions import (
    Severity,
    DCAException,
    ConfigurationError,
    ConnectivityError,
    SymbolError,
    DataInsufficientError,
    MarketDataError,
    SizingUnfillableError,
    SubmissionError,
)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "Severity",
    "DCAException",
    "ConfigurationError",
    "ConnectivityError",
    "SymbolError",
    "DataInsufficientError",
    "MarketDataError",
    "SizingUnfillableError",
    "SubmissionError",
]
