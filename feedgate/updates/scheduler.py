"""
feedgate Scheduler

Runs one update cycle per day at a configured wall-clock time.
"""

import asyncio
import logging
from datetime import datetime, time, timedelta
from typing import Optional

logger = logging.getLogger(__name__)


def parse_daily_time(value: str) -> time:
    """
    Parse ``HH:MM``.

    Raises:
        ValueError: If the value is not a valid 24-hour time
    """
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit():
        raise ValueError(f"invalid schedule time {value!r}, expected HH:MM")
    return time(int(hours), int(minutes))


def next_run(now: datetime, at: time) -> datetime:
    """Next occurrence of ``at``: today if still ahead, otherwise tomorrow."""
    candidate = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class DailyScheduler:
    """
    Background task calling ``manager.run_cycle`` once a day.

    The next run is recomputed after every cycle, so a cycle that overruns
    midnight does not cause a double run.
    """

    def __init__(self, manager, at: str = "03:00"):
        """
        Initialize scheduler.

        Args:
            manager: UpdateManager to drive
            at: Local time of day as HH:MM
        """
        self.manager = manager
        self.at = parse_daily_time(at)
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._next: Optional[datetime] = None

    @property
    def next_run_at(self) -> Optional[datetime]:
        return self._next

    async def start(self):
        """Start the scheduling loop."""
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Scheduler started, daily update at {self.at.strftime('%H:%M')}")

    async def stop(self):
        """Stop the scheduling loop."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Scheduler stopped")

    async def _loop(self):
        while self._running:
            now = datetime.now()
            self._next = next_run(now, self.at)
            delay = (self._next - now).total_seconds()
            logger.info(f"Next update cycle at {self._next.isoformat(timespec='minutes')}")

            await asyncio.sleep(delay)

            try:
                await self.manager.run_cycle(trigger="scheduled")
            except Exception as e:
                logger.error(f"Scheduled update cycle failed: {e}")
