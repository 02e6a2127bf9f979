"""
feedgate Custom Files Feed

Mirrors arbitrary configured URLs, each stored at its URL path under
mirror/custom so the catch-all route can serve it back verbatim.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

from ...exceptions import DownloadError, ForbiddenPathError, StagingError
from ...utils import date_token, safe_join, url_relative_path
from ..updater import Descriptor, FeedSource, UpdateContext

logger = logging.getLogger(__name__)

CUSTOM_DIR = "custom"


class CustomFilesSource(FeedSource):
    """A failed download keeps the previously mirrored copy of that file."""

    feed_id = "custom"

    def skip_reason(self, ctx: UpdateContext) -> Optional[str]:
        if not [url for url in ctx.settings.custom.urls if url]:
            return "no custom URLs configured"
        return None

    async def fetch_descriptor(self, ctx: UpdateContext) -> Descriptor:
        return Descriptor(version=date_token(ctx.started_at.astimezone()))

    def published_path(self, ctx: UpdateContext) -> Path:
        return ctx.mirror_root / CUSTOM_DIR

    async def stage(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Optional[str]:
        published = self.published_path(ctx)
        stored = 0

        for url in ctx.settings.custom.urls:
            if not url:
                continue
            relative = url_relative_path(url)
            if not relative:
                logger.warning(f"custom: cannot determine a path for {url}")
                continue

            try:
                dest = safe_join(staging, relative)
            except ForbiddenPathError:
                logger.warning(f"custom: refusing path {relative!r} from {url}")
                continue

            try:
                await ctx.downloader.download_to(url, dest)
                stored += 1
                logger.info(f"custom: downloaded {relative}")
                continue
            except DownloadError as e:
                logger.warning(f"custom: failed to download {url}: {e}")

            previous = published / relative
            if previous.is_file():
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(previous, dest)
                stored += 1
                logger.info(f"custom: keeping previous copy of {relative}")

        if stored == 0:
            raise StagingError("custom: none of the configured files could be mirrored")
        return None
