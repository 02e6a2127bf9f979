"""
feedgate Update Manager

Runs every feed once per cycle in a fixed order.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from ..config import Settings
from ..net import Downloader
from ..notifications import TelegramNotifier
from ..storage import VersionStore
from ..utils import get_current_timestamp
from .sources import (
    BitdefenderSource,
    CustomFilesSource,
    GeoSource,
    IDSSource,
    ShieldMatrixSource,
    SnortTemplateSource,
    WebFilterKeyFetcher,
)
from .updater import FeedUpdater, UpdateContext, UpdateResult

logger = logging.getLogger(__name__)


def build_updaters(settings: Settings) -> List[Any]:
    """
    Feed updaters in cycle order.

    The geo database takes over signature channel 4 when it is enabled.
    """
    updaters: List[Any] = []
    for channel in (1, 2, 3, 4, 5):
        if channel == 4 and settings.geo.enabled:
            updaters.append(FeedUpdater(GeoSource()))
        else:
            updaters.append(FeedUpdater(IDSSource(channel)))

    updaters.append(FeedUpdater(SnortTemplateSource()))
    updaters.append(WebFilterKeyFetcher())
    updaters.append(FeedUpdater(BitdefenderSource()))
    updaters.append(FeedUpdater(ShieldMatrixSource()))
    updaters.append(FeedUpdater(CustomFilesSource()))
    return updaters


class UpdateManager:
    """
    Manages update cycles: ordering, isolation between feeds, and
    notifications.

    A manual trigger and the scheduler may run cycles at the same time;
    nothing serializes them.
    """

    def __init__(
        self,
        settings: Settings,
        store: VersionStore,
        downloader: Optional[Downloader] = None,
        notifier: Optional[TelegramNotifier] = None,
    ):
        """
        Initialize update manager.

        Args:
            settings: Application settings
            store: Version store shared with the HTTP handlers
            downloader: Outbound client (created from settings if None)
            notifier: Telegram notifier (created from settings if None)
        """
        self.settings = settings
        self.store = store
        self._owns_downloader = downloader is None
        self.downloader = downloader or Downloader.from_settings(settings)
        self.notifier = notifier or TelegramNotifier(
            settings.notifications, proxy_url=settings.download.proxy_url
        )
        self.updaters = build_updaters(settings)

        self._tasks: Set[asyncio.Task] = set()
        self._running = 0
        self._last_cycle: Optional[Dict[str, Any]] = None

    @property
    def running(self) -> bool:
        return self._running > 0

    @property
    def last_cycle(self) -> Optional[Dict[str, Any]]:
        return self._last_cycle

    def new_context(self) -> UpdateContext:
        return UpdateContext(
            settings=self.settings,
            downloader=self.downloader,
            store=self.store,
            mirror_root=self.settings.mirror_root,
        )

    async def run_cycle(self, trigger: str = "scheduled") -> List[UpdateResult]:
        """
        Run every feed once.

        One feed's failure, whatever its cause, never stops the others.

        Args:
            trigger: What started the cycle, for logs and notifications

        Returns:
            Per-feed results in cycle order
        """
        ctx = self.new_context()
        started = ctx.started_at
        self._running += 1
        logger.info(f"Update cycle started ({trigger})")
        await self._notify("start", f"<b>Update started</b> ({trigger})")

        results: List[UpdateResult] = []
        try:
            for updater in self.updaters:
                try:
                    result = await updater.run(ctx)
                except Exception as e:
                    logger.exception(f"{updater.feed_id}: unexpected error during update")
                    result = UpdateResult(updater.feed_id, "failed", message=str(e))
                results.append(result)
        finally:
            self._running -= 1

        finished = get_current_timestamp()
        failed = [r for r in results if r.status == "failed"]
        self._last_cycle = {
            "trigger": trigger,
            "started_at": started.isoformat(),
            "finished_at": finished.isoformat(),
            "results": [r.to_dict() for r in results],
        }

        duration = (finished - started).total_seconds()
        logger.info(f"Update cycle finished in {duration:.1f}s, {len(failed)} failed")

        if failed:
            lines = [f"{r.feed_id}: {r.message or 'failed'}" for r in failed]
            await self._notify("error", "<b>Update finished with errors</b>\n" + "\n".join(lines))
        else:
            updated = [f"{r.feed_id} {r.version}" for r in results if r.status == "updated"]
            summary = ", ".join(updated) if updated else "no changes"
            await self._notify("success", f"<b>Update completed</b>: {summary}")

        return results

    def trigger_now(self) -> asyncio.Task:
        """Start a cycle in the background and return immediately."""
        task = asyncio.create_task(self.run_cycle(trigger="manual"))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _notify(self, kind: str, text: str):
        try:
            if kind == "start":
                await self.notifier.notify_start(text)
            elif kind == "success":
                await self.notifier.notify_success(text)
            else:
                await self.notifier.notify_error(text)
        except Exception as e:
            logger.error(f"Notification failed: {e}")

    async def close(self):
        """Cancel background cycles and release the outbound client."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._owns_downloader:
            await self.downloader.aclose()

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "feeds": [u.feed_id for u in self.updaters],
            "last_cycle": self._last_cycle,
        }
