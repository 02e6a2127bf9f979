"""
feedgate Feed Updater

Generic check → stage → commit routine shared by every feed kind.
"""

import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..config import Settings
from ..exceptions import DescriptorError, DownloadError, FeedgateError, StagingError
from ..net import Downloader
from ..storage import FeedRecord, VersionStore
from ..utils import get_current_timestamp, hash_file, is_newer, safe_join
from .atomic import atomic_replace

logger = logging.getLogger(__name__)


@dataclass
class UpdateContext:
    """Everything one update cycle needs, passed explicitly to each feed."""
    settings: Settings
    downloader: Downloader
    store: VersionStore
    mirror_root: Path
    started_at: datetime = field(default_factory=get_current_timestamp)


@dataclass
class Descriptor:
    """Result of the cheap upstream version check."""
    version: Optional[str]  # None when upstream offers nothing
    filename: Optional[str] = None
    source_url: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Artifact:
    """One file to download into the staging area."""
    url: str
    path: str  # relative to the staging root
    required: bool = True


@dataclass
class UpdateResult:
    """Outcome of one feed's update attempt."""
    feed_id: str
    status: str  # skipped, failed, up_to_date, updated
    version: Optional[str] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feed_id": self.feed_id,
            "status": self.status,
            "version": self.version,
            "message": self.message,
        }


class FeedSource(ABC):
    """
    Capabilities of one feed kind.

    Subclasses describe where the version lives upstream, how to fill a
    staging area and where the result is published; FeedUpdater drives
    them through the common sequence.
    """

    feed_id: str = ""

    # Feeds that keep old artifacts next to the new ones delete them
    # after a successful commit.
    retains_superseded: bool = False

    def skip_reason(self, ctx: UpdateContext) -> Optional[str]:
        """Return why this feed should not run, or None to run it."""
        return None

    @abstractmethod
    async def fetch_descriptor(self, ctx: UpdateContext) -> Descriptor:
        """
        Fetch and parse the upstream version descriptor.

        Raises:
            DownloadError: If the descriptor could not be fetched
            DescriptorError: If it could not be parsed
        """

    @abstractmethod
    async def stage(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Optional[str]:
        """
        Download the artifact set into the staging directory.

        Returns:
            SHA-256 of the main artifact, if there is one

        Raises:
            StagingError: If a required artifact is missing
        """

    @abstractmethod
    def published_path(self, ctx: UpdateContext) -> Path:
        """Directory (or file) clients read this feed from."""

    def commit(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Path:
        """Publish the staged set. Directory feeds swap the whole directory."""
        return atomic_replace(staging, self.published_path(ctx))

    def is_published(self, ctx: UpdateContext, record: Optional[FeedRecord]) -> bool:
        """True if the currently recorded version is present on disk."""
        return self.published_path(ctx).exists()

    def superseded_paths(self, ctx: UpdateContext, filename: str) -> List[Path]:
        """On-disk files belonging to an older artifact."""
        return []

    def create_staging(self, ctx: UpdateContext) -> Path:
        """Create a private staging directory on the published path's filesystem."""
        published = self.published_path(ctx)
        published.parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f".{published.name}_tmp", dir=published.parent))

    async def fetch_artifacts(self, ctx: UpdateContext, artifacts: Iterable[Artifact], staging: Path) -> int:
        """
        Download artifacts into the staging directory.

        Missing optional artifacts are logged and skipped.

        Returns:
            Number of files stored

        Raises:
            StagingError: If a required artifact could not be downloaded
        """
        stored = 0
        for artifact in artifacts:
            dest = safe_join(staging, artifact.path)
            try:
                await ctx.downloader.download_to(artifact.url, dest)
                stored += 1
            except DownloadError as e:
                if artifact.required:
                    raise StagingError(f"{self.feed_id}: required artifact missing: {e}") from e
                logger.warning(f"{self.feed_id}: skipping optional artifact: {e}")
        return stored


class FeedUpdater:
    """
    Run one feed through check → stage → commit.

    Published data is only replaced after every required artifact has
    been staged, and the version store is written only after the commit.
    """

    def __init__(self, source: FeedSource):
        self.source = source

    @property
    def feed_id(self) -> str:
        return self.source.feed_id

    async def run(self, ctx: UpdateContext) -> UpdateResult:
        source = self.source
        feed_id = source.feed_id

        reason = source.skip_reason(ctx)
        if reason:
            logger.info(f"{feed_id}: skipped ({reason})")
            return UpdateResult(feed_id, "skipped", message=reason)

        record = await ctx.store.get(feed_id)
        current = record.version if record else None

        try:
            descriptor = await source.fetch_descriptor(ctx)
        except (DownloadError, DescriptorError) as e:
            logger.error(f"{feed_id}: version check failed: {e}")
            return UpdateResult(feed_id, "failed", version=current, message=str(e))

        if descriptor.version is None:
            await ctx.store.mark_up_to_date(feed_id, source_url=descriptor.source_url)
            logger.info(f"{feed_id}: upstream has no update available")
            return UpdateResult(feed_id, "up_to_date", version=current)

        if not is_newer(descriptor.version, current):
            if source.is_published(ctx, record):
                await ctx.store.mark_up_to_date(feed_id, source_url=descriptor.source_url)
                logger.info(f"{feed_id}: up to date (version {current})")
                return UpdateResult(feed_id, "up_to_date", version=current)

            # Published data is gone; only the recorded version may be restored.
            if is_newer(current, descriptor.version):
                message = f"upstream version {descriptor.version} is older than {current}"
                logger.warning(f"{feed_id}: {message}")
                await ctx.store.record_failure(feed_id)
                return UpdateResult(feed_id, "failed", version=current, message=message)

        logger.info(f"{feed_id}: updating {current or 'nothing'} -> {descriptor.version}")

        staging = source.create_staging(ctx)
        try:
            checksum = await source.stage(ctx, descriptor, staging)
            source.commit(ctx, descriptor, staging)
        except (FeedgateError, OSError) as e:
            logger.error(f"{feed_id}: update to {descriptor.version} failed: {e}")
            await ctx.store.record_failure(feed_id)
            return UpdateResult(feed_id, "failed", version=current, message=str(e))
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        written = await ctx.store.record_success(
            feed_id,
            descriptor.version,
            filename=descriptor.filename,
            source_url=descriptor.source_url,
            checksum=checksum,
        )
        if not written:
            await ctx.store.record_failure(feed_id)
            message = f"upstream version {descriptor.version} is older than {current}"
            return UpdateResult(feed_id, "failed", version=current, message=message)

        if source.retains_superseded:
            await self._remove_superseded(ctx)

        logger.info(f"{feed_id}: updated to version {descriptor.version}")
        return UpdateResult(feed_id, "updated", version=descriptor.version)

    async def _remove_superseded(self, ctx: UpdateContext):
        feed_id = self.source.feed_id
        removed = []

        for filename in await ctx.store.superseded_files(feed_id):
            for path in self.source.superseded_paths(ctx, filename):
                try:
                    path.unlink(missing_ok=True)
                    logger.debug(f"{feed_id}: removed superseded {path}")
                except OSError as e:
                    logger.warning(f"{feed_id}: could not remove {path}: {e}")
                    break
            else:
                removed.append(filename)

        await ctx.store.forget_artifacts(feed_id, removed)


def sha256_of(path: Path) -> Optional[str]:
    """Checksum of a staged file, or None if it is not there."""
    return hash_file(path) if path.is_file() else None
