"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
Injectable source of "now" for the agent.

- Request signing reads epoch milliseconds from it
- The orchestrator stamps cycle start and end with it
- The scheduler computes the next fire time from it

Always UTC; the scheduler converts to its own timezone.

============================================================
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class ClockProtocol(ABC):
    """Where the agent gets the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware UTC datetime."""

    @abstractmethod
    def timestamp(self) -> float:
        """Seconds since the epoch."""

    def timestamp_ms(self) -> int:
        """Epoch milliseconds, as Binance expects in `timestamp=`."""
        return int(self.timestamp() * 1000)


class SystemClock(ClockProtocol):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def timestamp(self) -> float:
        return time.time()


class MockClock(ClockProtocol):
    """
    Clock that only moves when told to.

    Naive datetimes passed in are taken as UTC.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = _as_utc(initial_time or datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._time

    def timestamp(self) -> float:
        return self._time.timestamp()

    def set_time(self, new_time: datetime) -> None:
        self._time = _as_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """Move forward; kwargs go to timedelta (minutes=, days=, ...)."""
        self._time += timedelta(seconds=seconds, **kwargs)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
]
