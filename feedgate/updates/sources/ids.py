"""
feedgate Signature Feeds

IDS signature channels 1-5. Artifacts live side by side in mirror/ids,
so each file is published on its own and old ones are removed afterwards.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import List, Optional
from urllib.parse import urlencode, urlsplit

from ...exceptions import DescriptorError, StagingError
from ...protocol import wire
from ...storage import FeedRecord
from ..atomic import atomic_replace
from ..updater import Artifact, Descriptor, FeedSource, UpdateContext, sha256_of

logger = logging.getLogger(__name__)

IDS_DIR = "ids"
SIGNATURE_SUFFIX = ".sig"


def parse_ids_descriptor(text: str, channel: int) -> Descriptor:
    """
    Parse an update.php answer from the signature service.

    Expected lines are ``0:<channel>.<version>`` and ``full:<url>``.

    Raises:
        DescriptorError: On unknown keys, malformed fields or no update
    """
    version = None
    link = None

    for key, value in wire.parse_lines(text):
        if key == wire.VERSION_KEY:
            _, version = wire.split_version(value)
            if not version.isdigit():
                raise DescriptorError(f"IDSv{channel}: non-numeric version {version!r}")
        elif key == wire.FULL_KEY:
            link = value.strip()
        else:
            raise DescriptorError(f"IDSv{channel}: unexpected line {key}:{value}")

    if not link or not version or int(version) == 0:
        raise DescriptorError(f"IDSv{channel}: no update offered")

    filename = PurePosixPath(urlsplit(link).path).name
    if not filename:
        raise DescriptorError(f"IDSv{channel}: cannot derive filename from {link}")

    return Descriptor(version=str(int(version)), filename=filename, payload={"url": link})


class IDSSource(FeedSource):
    """One signature channel (ids1 .. ids5)."""

    retains_superseded = True

    def __init__(self, channel: int):
        self.channel = channel
        self.feed_id = f"ids{channel}"

    def signed(self, ctx: UpdateContext) -> bool:
        return self.channel in ctx.settings.ids.signed_versions

    def skip_reason(self, ctx: UpdateContext) -> Optional[str]:
        if self.channel not in ctx.settings.ids.versions:
            return "channel disabled"
        if not ctx.settings.license.number:
            return "license number is not configured"
        return None

    def descriptor_url(self, ctx: UpdateContext) -> str:
        query = urlencode({
            "id": ctx.settings.license.number,
            "version": f"{self.channel}.0",
            "tag": "",
        })
        return f"{ctx.settings.ids.url}?{query}"

    async def fetch_descriptor(self, ctx: UpdateContext) -> Descriptor:
        text = await ctx.downloader.get_text(self.descriptor_url(ctx))
        return parse_ids_descriptor(text, self.channel)

    def published_path(self, ctx: UpdateContext) -> Path:
        return ctx.mirror_root / IDS_DIR

    def is_published(self, ctx: UpdateContext, record: Optional[FeedRecord]) -> bool:
        if not record or not record.filename:
            return False
        return (self.published_path(ctx) / record.filename).is_file()

    async def stage(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Optional[str]:
        url = descriptor.payload["url"]
        artifacts = [Artifact(url, descriptor.filename)]
        if self.signed(ctx):
            artifacts.append(Artifact(url + SIGNATURE_SUFFIX, descriptor.filename + SIGNATURE_SUFFIX))

        await self.fetch_artifacts(ctx, artifacts, staging)
        checksum = sha256_of(staging / descriptor.filename)
        if checksum is None:
            raise StagingError(f"{self.feed_id}: {descriptor.filename} missing after download")
        return checksum

    def commit(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Path:
        published_dir = self.published_path(ctx)
        published_dir.mkdir(parents=True, exist_ok=True)

        # The signature goes first; the main file is what gets advertised.
        names = [descriptor.filename]
        if self.signed(ctx):
            names.insert(0, descriptor.filename + SIGNATURE_SUFFIX)

        for name in names:
            atomic_replace(staging / name, published_dir / name)
        return published_dir / descriptor.filename

    def superseded_paths(self, ctx: UpdateContext, filename: str) -> List[Path]:
        base = self.published_path(ctx) / filename
        return [base, base.with_name(base.name + SIGNATURE_SUFFIX)]
