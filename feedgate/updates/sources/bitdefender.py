"""
feedgate Antivirus Feed

Mirrors the Bitdefender engine update tree used by the appliance's
antivirus plugin. The whole tree is staged and swapped as one directory.
"""

import asyncio
import gzip
import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional

from ...exceptions import DescriptorError, StagingError
from ..updater import Artifact, Descriptor, FeedSource, UpdateContext, sha256_of

logger = logging.getLogger(__name__)

BITDEFENDER_DIR = "bitdefender"
ENGINE_INDEX = "av64bit/versions.id"
THIN_SDK = "as-thin-sdk-win-x86_64"


@dataclass
class EngineIndex:
    """Parsed ``versions.id`` document."""
    version: str
    id_path: str = ""
    dat_path: str = ""
    sig_path: str = ""

    @property
    def archives(self) -> List[str]:
        return [p for p in (self.id_path, self.dat_path, self.sig_path) if p]


def parse_versions_id(data: bytes) -> EngineIndex:
    """
    Parse ``<... ><all><id value="N"/></all><v3 id_path dat_path sig_path/></...>``.

    Raises:
        DescriptorError: If the XML is malformed or has no id value
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise DescriptorError(f"versions.id is not valid XML: {e}") from e

    id_elem = root.find("all/id")
    value = (id_elem.get("value") or "").strip() if id_elem is not None else ""
    if not value:
        raise DescriptorError("versions.id has no <all><id value>")

    v3 = root.find("v3")
    if v3 is None:
        return EngineIndex(version=value)
    return EngineIndex(
        version=value,
        id_path=v3.get("id_path", ""),
        dat_path=v3.get("dat_path", ""),
        sig_path=v3.get("sig_path", ""),
    )


def parse_thin_manifest(text: str) -> List[str]:
    """Blob names listed in a thin-SDK ``versions.dat`` (third column, ``.gzip`` appended)."""
    names = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 3:
            names.append(parts[2] + ".gzip")
    return names


def read_dat_archive(path: Path) -> List[str]:
    """
    Local paths listed in the gzipped JSON dat archive.

    Raises:
        DescriptorError: If the archive cannot be decompressed or decoded
    """
    try:
        with gzip.open(path, "rb") as f:
            document = json.load(f)
    except (OSError, EOFError, ValueError) as e:
        raise DescriptorError(f"cannot read dat archive {path.name}: {e}") from e

    files = document.get("files", []) if isinstance(document, dict) else []
    return [
        entry["local_path"]
        for entry in files
        if isinstance(entry, dict) and entry.get("local_path") and entry.get("url")
    ]


class BitdefenderSource(FeedSource):
    """Antivirus engine and definitions, published to mirror/bitdefender."""

    feed_id = "bitdefender"

    def skip_reason(self, ctx: UpdateContext) -> Optional[str]:
        bitdefender = ctx.settings.bitdefender
        if not bitdefender.enabled:
            return "antivirus mirroring disabled"
        if bitdefender.proxy_mode:
            return "proxy mode serves antivirus files on demand"
        return None

    def _url(self, ctx: UpdateContext, path: str) -> str:
        return f"{ctx.settings.bitdefender.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def fetch_descriptor(self, ctx: UpdateContext) -> Descriptor:
        data = await ctx.downloader.get(self._url(ctx, ENGINE_INDEX))
        index = parse_versions_id(data)
        return Descriptor(
            version=index.version,
            filename=ENGINE_INDEX,
            payload={"raw": data, "index": index},
        )

    def published_path(self, ctx: UpdateContext) -> Path:
        return ctx.mirror_root / BITDEFENDER_DIR

    def is_published(self, ctx, record) -> bool:
        return (self.published_path(ctx) / ENGINE_INDEX).is_file()

    async def stage(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Optional[str]:
        index: EngineIndex = descriptor.payload["index"]
        engine_dir = f"av64bit_{index.version}"

        index_path = staging / ENGINE_INDEX
        index_path.parent.mkdir(parents=True, exist_ok=True)
        index_path.write_bytes(descriptor.payload["raw"])

        await self.fetch_artifacts(ctx, [
            Artifact(self._url(ctx, f"{engine_dir}/{name}"), f"{engine_dir}/{name}", required=False)
            for name in ("versions.dat", "versions.sig", "versions.dat.gz")
        ], staging)

        # Thin SDK: its own index, then a manifest listing every blob.
        thin_index = f"{THIN_SDK}/versions.id"
        await self.fetch_artifacts(ctx, [Artifact(self._url(ctx, thin_index), thin_index)], staging)
        try:
            thin_id = parse_versions_id((staging / thin_index).read_bytes()).version
        except DescriptorError as e:
            raise StagingError(f"bitdefender: {THIN_SDK} index unusable: {e}") from e

        thin_dir = f"{THIN_SDK}_{thin_id}"
        await self.fetch_artifacts(ctx, [
            Artifact(self._url(ctx, f"{thin_dir}/versions.dat"), f"{thin_dir}/versions.dat"),
            Artifact(self._url(ctx, f"{thin_dir}/versions.dat.gz"), f"{thin_dir}/versions.dat.gz", required=False),
        ], staging)

        manifest = (staging / thin_dir / "versions.dat").read_text(encoding="utf-8", errors="replace")
        blobs = parse_thin_manifest(manifest)
        stored = await self.fetch_artifacts(ctx, [
            Artifact(self._url(ctx, f"{thin_dir}/avx/{name}"), f"{thin_dir}/{name}", required=False)
            for name in blobs
        ], staging)
        logger.info(f"bitdefender: {stored}/{len(blobs)} thin SDK files stored")

        # Update archives, kept under their basename.
        await self.fetch_artifacts(ctx, [
            Artifact(self._url(ctx, path), PurePosixPath(path).name)
            for path in index.archives
        ], staging)

        if not index.dat_path:
            raise StagingError("bitdefender: versions.id names no dat archive")

        dat_archive = staging / PurePosixPath(index.dat_path).name
        try:
            local_paths = await asyncio.to_thread(read_dat_archive, dat_archive)
        except DescriptorError as e:
            raise StagingError(f"bitdefender: {e}") from e

        stored = await self.fetch_artifacts(ctx, [
            Artifact(
                self._url(ctx, f"{engine_dir}/avx/{local_path}.gzip"),
                f"{engine_dir}/avx/{local_path}.gzip",
                required=False,
            )
            for local_path in local_paths
        ], staging)
        logger.info(f"bitdefender: {stored}/{len(local_paths)} definition files stored")

        return sha256_of(dat_archive)
