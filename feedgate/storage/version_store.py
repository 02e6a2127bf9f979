"""
feedgate Version Store

Persistent per-feed record of the published version, its artifact and the
outcome of the last update attempt.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, select

from .database import DatabaseManager
from .models import FeedArtifact, FeedState, WebFilterKey
from ..utils import get_current_timestamp, is_newer

logger = logging.getLogger(__name__)


@dataclass
class FeedRecord:
    """Snapshot of one feed's row."""
    feed_id: str
    version: Optional[str] = None
    filename: Optional[str] = None
    source_url: Optional[str] = None
    success: bool = False
    last_attempt_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: FeedState) -> "FeedRecord":
        return cls(
            feed_id=row.feed_id,
            version=row.version,
            filename=row.filename,
            source_url=row.source_url,
            success=bool(row.last_success),
            last_attempt_at=row.last_attempt_at,
            last_success_at=row.last_success_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feed_id": self.feed_id,
            "version": self.version,
            "filename": self.filename,
            "source_url": self.source_url,
            "success": self.success,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
        }


class VersionStore:
    """
    Data access layer for feed versions.

    Rows are written only at the end of a feed's update attempt; the
    protocol handlers read them on every appliance request.
    """

    def __init__(self, db: DatabaseManager):
        """
        Initialize version store.

        Args:
            db: Database manager providing sessions
        """
        self.db = db

    async def get(self, feed_id: str) -> Optional[FeedRecord]:
        """Return the stored record for a feed, or None if never attempted."""
        async with self.db.get_session() as session:
            row = await session.get(FeedState, feed_id)
            return FeedRecord.from_row(row) if row else None

    async def list_all(self) -> List[FeedRecord]:
        async with self.db.get_session() as session:
            result = await session.execute(select(FeedState).order_by(FeedState.feed_id))
            return [FeedRecord.from_row(row) for row in result.scalars()]

    async def record_success(
        self,
        feed_id: str,
        version: str,
        filename: Optional[str] = None,
        source_url: Optional[str] = None,
        checksum: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> bool:
        """
        Store a newly committed version.

        The stored token never moves backwards: a write carrying an older
        token than the stored one is refused.

        Args:
            feed_id: Feed identifier
            version: Committed version token
            filename: Artifact advertised to clients
            source_url: Upstream base URL, if the feed has one
            checksum: SHA-256 of the main artifact
            when: Commit time (defaults to now)

        Returns:
            True if the row was written, False if it would have regressed
        """
        when = when or get_current_timestamp()
        version = str(version)

        async with self.db.get_session() as session:
            row = await session.get(FeedState, feed_id)
            if row is None:
                row = FeedState(feed_id=feed_id)
                session.add(row)
            elif row.version and version != row.version and not is_newer(version, row.version):
                logger.warning(
                    f"{feed_id}: refusing to replace version {row.version} with older {version}"
                )
                return False

            row.version = version
            if filename is not None:
                row.filename = filename
            if source_url is not None:
                row.source_url = source_url
            row.last_success = True
            row.last_attempt_at = when
            row.last_success_at = when

            if filename:
                session.add(FeedArtifact(
                    feed_id=feed_id,
                    version=version,
                    filename=filename,
                    checksum=checksum,
                    created_at=when,
                ))

        return True

    async def mark_up_to_date(
        self,
        feed_id: str,
        source_url: Optional[str] = None,
        when: Optional[datetime] = None,
    ):
        """Record a successful check that found nothing new."""
        when = when or get_current_timestamp()

        async with self.db.get_session() as session:
            row = await session.get(FeedState, feed_id)
            if row is None:
                row = FeedState(feed_id=feed_id)
                session.add(row)
            if source_url is not None:
                row.source_url = source_url
            row.last_success = True
            row.last_attempt_at = when
            row.last_success_at = when

    async def record_failure(self, feed_id: str, when: Optional[datetime] = None):
        """Record a failed attempt; version and filename stay untouched."""
        when = when or get_current_timestamp()

        async with self.db.get_session() as session:
            row = await session.get(FeedState, feed_id)
            if row is None:
                row = FeedState(feed_id=feed_id)
                session.add(row)
            row.last_success = False
            row.last_attempt_at = when

    async def superseded_files(self, feed_id: str) -> List[str]:
        """
        List artifacts of a feed other than the currently published one.

        Args:
            feed_id: Feed identifier

        Returns:
            Distinct filenames, oldest first
        """
        async with self.db.get_session() as session:
            row = await session.get(FeedState, feed_id)
            current = row.filename if row else None

            query = (
                select(FeedArtifact.filename)
                .where(FeedArtifact.feed_id == feed_id)
                .order_by(FeedArtifact.created_at, FeedArtifact.id)
            )
            if current:
                query = query.where(FeedArtifact.filename != current)

            result = await session.execute(query)
            filenames = []
            for filename in result.scalars():
                if filename not in filenames:
                    filenames.append(filename)
            return filenames

    async def forget_artifacts(self, feed_id: str, filenames: Iterable[str]):
        """Drop history rows for artifacts that were removed from disk."""
        filenames = list(filenames)
        if not filenames:
            return

        async with self.db.get_session() as session:
            await session.execute(
                delete(FeedArtifact).where(
                    FeedArtifact.feed_id == feed_id,
                    FeedArtifact.filename.in_(filenames),
                )
            )

    async def get_webfilter_key(self, license_number: str) -> Optional[str]:
        async with self.db.get_session() as session:
            row = await session.get(WebFilterKey, license_number)
            return row.key if row else None

    async def set_webfilter_key(self, license_number: str, key: str):
        async with self.db.get_session() as session:
            row = await session.get(WebFilterKey, license_number)
            if row is None:
                session.add(WebFilterKey(license_number=license_number, key=key))
            else:
                row.key = key
