"""
feedgate Snort Template Feed

Companion of signature channel 5: the IPS rule template and its checksum.
"""

from pathlib import Path
from typing import Optional

from ...utils import date_token
from ..updater import Artifact, Descriptor, FeedSource, UpdateContext, sha256_of

SNORT_DIR = Path("control-update") / "config" / "v1"
TEMPLATE_NAME = "snort.tpl"


class SnortTemplateSource(FeedSource):
    """Refreshed once per day into mirror/control-update/config/v1."""

    feed_id = "snort_template"

    def skip_reason(self, ctx: UpdateContext) -> Optional[str]:
        template = ctx.settings.snort_template
        if not template.enabled:
            return "template update disabled"
        if not template.url:
            return "template URL is not configured"
        return None

    async def fetch_descriptor(self, ctx: UpdateContext) -> Descriptor:
        return Descriptor(version=date_token(ctx.started_at.astimezone()), filename=TEMPLATE_NAME)

    def published_path(self, ctx: UpdateContext) -> Path:
        return ctx.mirror_root / SNORT_DIR

    def is_published(self, ctx, record) -> bool:
        return (self.published_path(ctx) / TEMPLATE_NAME).is_file()

    async def stage(self, ctx: UpdateContext, descriptor: Descriptor, staging: Path) -> Optional[str]:
        url = ctx.settings.snort_template.url
        await self.fetch_artifacts(ctx, [
            Artifact(url, TEMPLATE_NAME),
            Artifact(url + ".md5", TEMPLATE_NAME + ".md5", required=False),
        ], staging)
        return sha256_of(staging / TEMPLATE_NAME)
