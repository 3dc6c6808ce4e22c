"""
Orchestrator - Cycle Scheduler.

============================================================
RESPONSIBILITY
============================================================
Fires the DCA cycle on a cron schedule in a fixed timezone
(default: every Friday 21:30 Asia/Shanghai).

- Cron parsing with croniter, timezones with pytz
- Single-slot guard: a trigger that arrives while a cycle is
  still running is dropped, never queued
- Cycle errors are logged and the loop waits for the next fire

============================================================
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

import pytz
from croniter import croniter

from core.clock import ClockProtocol, SystemClock
from core.exceptions import ConfigurationError, ConnectivityError
from dca.config import DEFAULT_CRON, DEFAULT_TIMEZONE
from dca.models import CycleOutcome


logger = logging.getLogger(__name__)


CycleRunner = Callable[[], Awaitable[CycleOutcome]]


class CycleScheduler:
    """Cron-driven runner for DCA cycles."""

    def __init__(
        self,
        run_cycle: CycleRunner,
        cron_expression: str = DEFAULT_CRON,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize scheduler.

        Args:
            run_cycle: Coroutine function running one cycle
            cron_expression: Five-field cron expression
            timezone: IANA timezone name the expression is evaluated in

        Raises:
            ConfigurationError: Invalid cron expression or timezone
        """
        if not croniter.is_valid(cron_expression):
            raise ConfigurationError(
                f"Invalid cron expression: {cron_expression!r}",
                errors=[f"DCA_CRON is not a valid cron expression: {cron_expression!r}"],
            )
        try:
            self._tz = pytz.timezone(timezone)
        except pytz.UnknownTimeZoneError:
            raise ConfigurationError(
                f"Unknown timezone: {timezone!r}",
                errors=[f"DCA_TIMEZONE is not a known timezone: {timezone!r}"],
            )

        self._run_cycle = run_cycle
        self._cron = cron_expression
        self._clock = clock or SystemClock()

        self._in_progress = False
        self._last_fire: Optional[datetime] = None
        self._stop_event = asyncio.Event()

    @property
    def cron_expression(self) -> str:
        return self._cron

    @property
    def timezone(self) -> str:
        return self._tz.zone

    @property
    def is_running_cycle(self) -> bool:
        return self._in_progress

    # --------------------------------------------------------
    # Schedule
    # --------------------------------------------------------

    def next_run(self, after: Optional[datetime] = None) -> datetime:
        """
        Next fire time strictly after `after` (default: now).

        Returns:
            Timezone-aware datetime in the configured timezone
        """
        base = after or self._clock.now()
        if base.tzinfo is None:
            base = pytz.utc.localize(base)
        local = base.astimezone(self._tz)
        fire = croniter(self._cron, local).get_next(datetime)
        return self._tz.normalize(fire)

    def upcoming(self, count: int, after: Optional[datetime] = None) -> List[datetime]:
        """The next `count` fire times."""
        times = []
        current = after
        for _ in range(count):
            current = self.next_run(current)
            times.append(current)
        return times

    def format_time(self, when: datetime) -> str:
        return when.astimezone(self._tz).strftime("%Y-%m-%d %H:%M:%S %Z")

    # --------------------------------------------------------
    # Execution
    # --------------------------------------------------------

    async def trigger(self) -> Optional[CycleOutcome]:
        """
        Run one cycle now.

        Returns:
            The cycle outcome, or None if a cycle was already running
        """
        if self._in_progress:
            logger.warning("Cycle already in progress, trigger dropped")
            return None

        self._in_progress = True
        try:
            return await self._run_cycle()
        finally:
            self._in_progress = False

    async def run_forever(self) -> None:
        """Sleep until each fire time and trigger, until stop() is called."""
        self._stop_event.clear()
        logger.info(
            f"Scheduler started | cron='{self._cron}' tz={self.timezone} "
            f"next={self.format_time(self._upcoming_fire())}"
        )

        while not self._stop_event.is_set():
            fire = self._upcoming_fire()
            delay = max((fire - self._clock.now()).total_seconds(), 0.0)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            self._last_fire = fire
            try:
                await self.trigger()
            except ConnectivityError as e:
                logger.error(f"Cycle skipped: {e.to_log_format()}")
            except Exception as e:
                logger.error(f"Cycle error: {e}", exc_info=True)

            logger.info(f"Next DCA time: {self.format_time(self._upcoming_fire())}")

        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stop_event.set()

    def _upcoming_fire(self) -> datetime:
        now = self._clock.now()
        if self._last_fire and self._last_fire > now:
            return self.next_run(self._last_fire)
        return self.next_run(now)
