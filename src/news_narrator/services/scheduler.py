from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


def next_refresh_time(hour: int = 6, now: datetime | None = None) -> datetime:
    now = now or datetime.now().astimezone()
    run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if run <= now:
        run += timedelta(days=1)
    return run


def next_periodic_time(interval_hours: int, now: datetime | None = None) -> datetime:
    now = now or datetime.now().astimezone()
    start_of_hour = now.replace(minute=0, second=0, microsecond=0)
    hours_ahead = interval_hours - (start_of_hour.hour % interval_hours)
    return start_of_hour + timedelta(hours=hours_ahead)


class RefreshScheduler:
    """Runs ``refresh`` every morning at ``hour``, or every ``interval_hours`` when set."""

    def __init__(
        self,
        refresh: Callable[[], Awaitable[object]],
        hour: int = 6,
        interval_hours: int | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval_hours is not None and not 1 <= interval_hours <= 24:
            raise ValueError("interval_hours must be between 1 and 24")
        self.refresh = refresh
        self.hour = hour
        self.interval_hours = interval_hours
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._sleep = sleep

    def next_run(self) -> datetime:
        now = self._clock()
        if self.interval_hours:
            return next_periodic_time(self.interval_hours, now)
        return next_refresh_time(self.hour, now)

    async def run_once(self) -> bool:
        try:
            await self.refresh()
        except Exception as exc:
            logger.error("Scheduled refresh failed: %s", exc)
            return False
        logger.info("Scheduled refresh completed")
        return True

    async def run_forever(self, iterations: int | None = None) -> None:
        completed = 0
        while iterations is None or completed < iterations:
            run_at = self.next_run()
            delay = max(0.0, (run_at - self._clock()).total_seconds())
            logger.info("Next listing refresh at %s", run_at.isoformat())
            await self._sleep(delay)
            await self.run_once()
            completed += 1
