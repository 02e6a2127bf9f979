"""
feedgate Geo Database Feed

Builds the country database the appliance expects on signature channel 4
from the public GeoLite2 country CSVs.
"""

import asyncio
import csv
import gzip
import io
import logging
import os
from pathlib import Path
from typing import List, Optional

from ...exceptions import AtomicReplaceError, StagingError
from ...storage import FeedRecord
from ...utils import date_token
from ..atomic import atomic_replace
from ..updater import Artifact, Descriptor, FeedSource, UpdateContext, sha256_of

logger = logging.getLogger(__name__)

GEO_DIR = "geo"
GEO_FEED_ID = "ids4"

RAW_V4 = "raw-v4.csv"
RAW_V6 = "raw-v6.csv"
V4_CSV = "v4.csv"
V6_CSV = "v6.csv"
LOCATIONS_CSV = "locations.csv"
PREVIOUS_SUFFIX = "_prev"


def combined_filename(version: str) -> str:
    return f"full-4-{version}.gz"


def fill_country_columns(source: Path, dest: Path):
    """
    Copy a GeoLite2 blocks CSV, making geoname_id and
    registered_country_geoname_id mirror each other when one is empty.
    """
    with open(source, newline="", encoding="utf-8") as fin, \
            open(dest, "w", newline="", encoding="utf-8") as fout:
        reader = csv.reader(fin)
        writer = csv.writer(fout, lineterminator="\n")

        header = next(reader, None)
        if header is None:
            raise StagingError(f"{source.name} is empty")
        writer.writerow(header)

        for row in reader:
            if len(row) >= 3:
                if row[1]:
                    row[2] = row[1]
                elif row[2]:
                    row[1] = row[2]
            writer.writerow(row)


def combine_networks(sources: List[Path], dest: Path):
    """Write network,geoname_id pairs from every source (headers skipped) into one gzip CSV."""
    with gzip.open(dest, "wb") as gz:
        with io.TextIOWrapper(gz, encoding="utf-8", newline="") as text:
            writer = csv.writer(text, lineterminator="\n")
            for source in sources:
                with open(source, newline="", encoding="utf-8") as fin:
                    reader = csv.reader(fin)
                    next(reader, None)
                    for row in reader:
                        if len(row) >= 2:
                            writer.writerow(row[:2])

    if dest.stat().st_size == 0:
        raise StagingError(f"{dest.name} is empty")


class GeoSource(FeedSource):
    """Country database published as ``full-4-<YYYYMMDD>.gz``."""

    feed_id = GEO_FEED_ID
    retains_superseded = True

    def skip_reason(self, ctx: UpdateContext) -> Optional[str]:
        geo = ctx.settings.geo
        if not geo.enabled:
            return "geo database disabled"
        if not geo.ipv4_url or not geo.ipv6_url:
            return "geo database URLs are not configured"
        return None

    async def fetch_descriptor(self, ctx: UpdateContext) -> Descriptor:
        version = date_token(ctx.started_at.astimezone())
        return Descriptor(version=version, filename=combined_filename(version))

    def published_path(self, ctx: UpdateContext) -> Path:
        return ctx.mirror_root / GEO_DIR

    def is_published(self, ctx: UpdateContext, record: Optional[FeedRecord]) -> bool:
        if not record or not record.filename:
            return False
        return (self.published_path(ctx) / record.filename).is_file()

    async def stage(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Optional[str]:
        geo = ctx.settings.geo
        artifacts = [
            Artifact(geo.ipv4_url, RAW_V4),
            Artifact(geo.ipv6_url, RAW_V6),
        ]
        if geo.locations_url:
            artifacts.append(Artifact(geo.locations_url, LOCATIONS_CSV, required=False))
        await self.fetch_artifacts(ctx, artifacts, staging)

        output = staging / descriptor.filename
        try:
            await asyncio.to_thread(fill_country_columns, staging / RAW_V4, staging / V4_CSV)
            await asyncio.to_thread(fill_country_columns, staging / RAW_V6, staging / V6_CSV)
            await asyncio.to_thread(combine_networks, [staging / V4_CSV, staging / V6_CSV], output)
        except (csv.Error, UnicodeDecodeError) as e:
            raise StagingError(f"{self.feed_id}: cannot process country CSV: {e}") from e
        logger.info(f"{self.feed_id}: built {output.name} ({output.stat().st_size} bytes)")
        return sha256_of(output)

    def commit(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Path:
        """
        Publish the CSVs, then the advertised archive.

        If the archive cannot be published the previous CSVs are put back.
        """
        published_dir = self.published_path(ctx)
        published_dir.mkdir(parents=True, exist_ok=True)

        kept = []  # (published, previous copy or None)
        try:
            for name in (V4_CSV, V6_CSV, LOCATIONS_CSV):
                if not (staging / name).is_file():
                    continue
                published = published_dir / name
                previous = published.with_name(published.name + PREVIOUS_SUFFIX)
                if published.exists():
                    os.replace(published, previous)
                    kept.append((published, previous))
                else:
                    kept.append((published, None))
                os.rename(staging / name, published)

            # Advertised file last.
            result = atomic_replace(staging / descriptor.filename, published_dir / descriptor.filename)
        except (AtomicReplaceError, OSError):
            self._restore(kept)
            raise

        for _, previous in kept:
            if previous is not None:
                previous.unlink(missing_ok=True)
        return result

    def _restore(self, kept):
        for published, previous in reversed(kept):
            try:
                if previous is None:
                    published.unlink(missing_ok=True)
                elif previous.exists():
                    os.replace(previous, published)
            except OSError as e:
                logger.error(f"{self.feed_id}: could not restore {published}: {e}")

    def superseded_paths(self, ctx: UpdateContext, filename: str) -> List[Path]:
        return [self.published_path(ctx) / filename]
