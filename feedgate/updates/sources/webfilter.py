"""
feedgate Web Filter Key

Fetches the web-filter activation key for the configured license once
and keeps it for /getkey.php.
"""

import logging
from urllib.parse import urlencode

from ...exceptions import DownloadError
from ..updater import UpdateContext, UpdateResult

logger = logging.getLogger(__name__)

REJECTION_MARKERS = {
    "Invalid product license": "invalid license",
    "Product Software Maintenance expired": "license maintenance expired",
}


class WebFilterKeyFetcher:
    """Not versioned: a stored key is kept until the license changes."""

    feed_id = "webfilter"

    async def run(self, ctx: UpdateContext) -> UpdateResult:
        settings = ctx.settings
        license_number = settings.license.number

        if not settings.webfilter.enabled:
            return UpdateResult(self.feed_id, "skipped", message="web filter key disabled")
        if not license_number:
            return UpdateResult(self.feed_id, "skipped", message="license number is not configured")

        if await ctx.store.get_webfilter_key(license_number):
            logger.info("webfilter: key already stored")
            return UpdateResult(self.feed_id, "up_to_date")

        query = urlencode({"id": license_number, "tag": ""})
        try:
            text = await ctx.downloader.get_text(f"{settings.webfilter.url}?{query}")
        except DownloadError as e:
            logger.error(f"webfilter: error fetching key: {e}")
            return UpdateResult(self.feed_id, "failed", message=str(e))

        for marker, reason in REJECTION_MARKERS.items():
            if marker in text:
                logger.warning(f"webfilter: {reason} for license {license_number}")
                return UpdateResult(self.feed_id, "failed", message=reason)

        key = text.strip()
        if not key:
            return UpdateResult(self.feed_id, "failed", message="empty key")

        await ctx.store.set_webfilter_key(license_number, key)
        logger.info("webfilter: received new key")
        return UpdateResult(self.feed_id, "updated")
