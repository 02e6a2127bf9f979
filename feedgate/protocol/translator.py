"""
feedgate Protocol Translator

Answers the appliance's ``update.php?version=`` check the way the vendor
service does, using locally recorded versions.
"""

import logging
import re
from typing import Optional, Tuple

from ..config import Settings
from ..storage import VersionStore
from . import wire

logger = logging.getLogger(__name__)

BAD_REQUEST = "400 Bad Request"
NOT_FOUND = "404 Not found"
INTERNAL_ERROR = "500 Internal Server Error"

SIGNATURE_CHANNELS = range(1, 6)
REPUTATION_CHANNELS = (6, 7, 8)
ANTIVIRUS_CHANNELS = (9, 10)

_MAJOR = re.compile(r"[+-]?[0-9]+")


def parse_major(version: str) -> Optional[int]:
    """Leading dot-separated segment as an integer, or None."""
    segment = version.split(".", 1)[0]
    if not _MAJOR.fullmatch(segment):
        return None
    return int(segment)


async def translate(
    version: Optional[str],
    host: str,
    store: VersionStore,
    settings: Settings,
) -> Tuple[int, str]:
    """
    Build the update.php answer.

    Args:
        version: Raw ``version`` query parameter
        host: Host header of the request, echoed into URLs
        store: Version store to read from
        settings: Application settings

    Returns:
        (HTTP status, plain-text body)
    """
    if not version:
        logger.error("update.php request without version")
        return 400, ""

    major = parse_major(version)
    if major is None:
        logger.error(f"Invalid version format: {version}")
        return 400, BAD_REQUEST

    if major == 0:
        return 200, wire.no_update()

    if major in REPUTATION_CHANNELS:
        record = await store.get("shieldmatrix")
        if not record or not record.version:
            logger.warning(f"No reputation version recorded for request {version}")
            return 200, wire.no_update()
        return 200, wire.encode_lines([
            (wire.VERSION_KEY, record.version),
            (wire.MATRIX_KEY, f"http://{host}/matrix/"),
        ])

    if major in ANTIVIRUS_CHANNELS:
        bitdefender = settings.bitdefender
        target = f"http://{host}/" if bitdefender.proxy_mode else bitdefender.vendor_update_dir
        return 200, wire.encode_directive(wire.THD_DIRECTIVE, target)

    if major in SIGNATURE_CHANNELS:
        record = await store.get(f"ids{major}")
        if not record or not record.version or not record.filename:
            logger.error(f"No published version for signature channel {major}")
            return 500, INTERNAL_ERROR
        body = wire.encode_lines([
            wire.version_line(major, record.version),
            (wire.FULL_KEY, f"http://{host}/control-update/{record.filename}"),
        ])
        logger.info(f"update.php version={version}: {record.version}")
        return 200, body

    logger.error(f"Received unknown download request: {version}")
    return 404, NOT_FOUND
