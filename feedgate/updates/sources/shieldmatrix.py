"""
feedgate Reputation Feed

ShieldMatrix threat-reputation data. Only the version and CDN location
are tracked by default; data files are fetched on demand, or preloaded
when configured.
"""

import json
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from ...cache import OnDemandCache
from ...exceptions import DescriptorError
from ..updater import Descriptor, FeedSource, UpdateContext

logger = logging.getLogger(__name__)

MATRIX_DIR = "matrix"
DATA_FAMILIES = ("ipv4", "ipv6")
DATA_STEM = "threat_data"
DATA_SUFFIX = ".dat"


def parse_check_update(body: bytes) -> Optional[str]:
    """
    Parse the ``check_update`` answer.

    Returns:
        CDN base URL if an update is available, None otherwise

    Raises:
        DescriptorError: On invalid JSON or an available update without URL
    """
    try:
        document = json.loads(body)
    except ValueError as e:
        raise DescriptorError(f"shieldmatrix: invalid check_update response: {e}") from e

    if not isinstance(document, dict) or not document.get("available"):
        return None

    url = (document.get("url") or "").strip()
    if not url:
        raise DescriptorError("shieldmatrix: update available but URL is empty")
    return url.rstrip("/")


class ShieldMatrixSource(FeedSource):
    """Reputation data, published to mirror/matrix."""

    feed_id = "shieldmatrix"

    def skip_reason(self, ctx: UpdateContext) -> Optional[str]:
        matrix = ctx.settings.shield_matrix
        if not matrix.enabled:
            return "reputation feed disabled"
        if not matrix.check_update_url:
            return "check_update URL is not configured"
        return None

    def check_update_url(self, ctx: UpdateContext) -> str:
        matrix = ctx.settings.shield_matrix
        query = urlencode({
            "client-id": matrix.client_id,
            "version": matrix.product_version,
            "last-update": 0,
        })
        return f"{matrix.check_update_url.rstrip('/')}?{query}"

    async def fetch_descriptor(self, ctx: UpdateContext) -> Descriptor:
        cdn_url = parse_check_update(await ctx.downloader.get(self.check_update_url(ctx)))
        if cdn_url is None:
            return Descriptor(version=None)

        version = (await ctx.downloader.get_text(f"{cdn_url}/version")).strip()
        if not version:
            raise DescriptorError("shieldmatrix: empty version")

        logger.info(f"shieldmatrix: remote version {version} at {cdn_url}")
        return Descriptor(version=version, source_url=cdn_url)

    def published_path(self, ctx: UpdateContext) -> Path:
        return ctx.mirror_root / MATRIX_DIR

    def is_published(self, ctx, record) -> bool:
        if not ctx.settings.shield_matrix.preload_files:
            return True
        published = self.published_path(ctx)
        return all(
            (published / family / f"{DATA_STEM}_1{DATA_SUFFIX}").is_file()
            for family in DATA_FAMILIES
        )

    async def stage(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Optional[str]:
        matrix = ctx.settings.shield_matrix
        for family in DATA_FAMILIES:
            (staging / family).mkdir(parents=True, exist_ok=True)

        if not matrix.preload_files:
            logger.info("shieldmatrix: data files will be fetched on demand")
            return None

        cache = OnDemandCache(
            staging,
            ctx.downloader,
            timeout=ctx.settings.download.proxy_timeout_seconds,
            name="shieldmatrix-preload",
        )
        for family in DATA_FAMILIES:
            await cache.preload_sequence(
                family, DATA_STEM, DATA_SUFFIX,
                descriptor.source_url,
                ceiling=matrix.max_preload_files,
            )
        return None
