"""
feedgate Content Routes

Published feed files, on-demand proxied files and the host-based fallback
for requests the appliance sends to vendor hostnames.
"""

import logging
from http import HTTPStatus
from pathlib import Path
from typing import Iterable, Optional

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, PlainTextResponse, StreamingResponse

from ...cache import CacheResponse, OnDemandCache
from ...exceptions import ForbiddenPathError, UpstreamStatusError, UpstreamTransportError
from ...protocol import BAD_REQUEST, NOT_FOUND
from ...utils import safe_join

logger = logging.getLogger(__name__)

router = APIRouter()

FORBIDDEN = "403 Forbidden"
BAD_GATEWAY = "502 Bad Gateway"
UNKNOWN_ROUTE = "Unknown route"

MATRIX_FAMILIES = ("ipv4/threat_data", "ipv6/threat_data")


def text(status_code: int, body: str) -> PlainTextResponse:
    return PlainTextResponse(body, status_code=status_code)


def status_text(status_code: int) -> str:
    try:
        return f"{status_code} {HTTPStatus(status_code).phrase}"
    except ValueError:
        return str(status_code)


def to_response(result: CacheResponse):
    if result.path is not None:
        return FileResponse(result.path)
    return StreamingResponse(result.body, media_type=result.media_type or "application/octet-stream")


async def serve_cached(cache: OnDemandCache, relative: str, upstream_url: str):
    """Serve through an on-demand cache, mapping failures to appliance-style bodies."""
    try:
        result = await cache.open(relative, upstream_url)
    except ForbiddenPathError:
        logger.warning(f"{cache.name}: path traversal attempt: {relative}")
        return text(403, FORBIDDEN)
    except UpstreamStatusError as e:
        return text(e.status_code, status_text(e.status_code))
    except UpstreamTransportError as e:
        logger.error(f"{cache.name}: {e}")
        return text(502, BAD_GATEWAY)
    return to_response(result)


def find_published(roots: Iterable[Path], relative: str) -> Optional[Path]:
    """
    First existing file for ``relative`` under the given roots.

    Raises:
        ForbiddenPathError: If the path escapes any root
    """
    for root in roots:
        candidate = safe_join(root, relative)
        if candidate.is_file():
            return candidate
    return None


def serve_published(roots: Iterable[Path], relative: str):
    if not relative:
        return text(400, BAD_REQUEST)
    try:
        path = find_published(roots, relative)
    except ForbiddenPathError:
        logger.warning(f"Path traversal attempt: {relative}")
        return text(403, FORBIDDEN)
    if path is None:
        return text(404, NOT_FOUND)
    return FileResponse(path)


def matrix_upstream(state, record) -> str:
    base = record.source_url if record and record.source_url else state.settings.shield_matrix.base_url
    return base.rstrip("/")


def is_matrix_data(subpath: str) -> bool:
    return subpath.startswith(MATRIX_FAMILIES)


@router.get("/control-update/{file_path:path}")
async def control_update(file_path: str, request: Request):
    """Snort template, then signature files, then the geo database."""
    mirror_root = request.app.state.settings.mirror_root
    roots = [
        mirror_root / "control-update",
        mirror_root / "ids",
        mirror_root / "geo",
    ]
    return serve_published(roots, file_path)


@router.get("/matrix/{file_path:path}")
async def matrix_file(file_path: str, request: Request):
    """Reputation data, fetched from the recorded CDN on first access."""
    state = request.app.state
    if not is_matrix_data(file_path):
        logger.warning(f"matrix: refusing non-data request {file_path}")
        return text(404, NOT_FOUND)

    record = await state.store.get("shieldmatrix")
    return await serve_cached(state.matrix_cache, file_path, f"{matrix_upstream(state, record)}/{file_path}")


async def _cdn_fallback(request: Request, path: str):
    """Requests the appliance sends straight to the reputation CDN host."""
    state = request.app.state
    parts = path.split("/", 1)
    if len(parts) < 2 or not parts[1]:
        return text(400, BAD_REQUEST)

    subpath = parts[1]
    record = await state.store.get("shieldmatrix")
    upstream = matrix_upstream(state, record)

    if subpath == "version":
        try:
            body = await state.downloader.get(f"{upstream}/version")
        except (UpstreamStatusError, UpstreamTransportError) as e:
            logger.error(f"matrix: version proxy failed: {e}")
            return text(404, NOT_FOUND)
        return PlainTextResponse(body.decode("utf-8", errors="replace"))

    if not is_matrix_data(subpath):
        return text(404, NOT_FOUND)
    return await serve_cached(state.matrix_cache, subpath, f"{upstream}/{subpath}")


async def _antivirus_fallback(request: Request, path: str):
    """Requests the appliance sends to the antivirus update hosts."""
    state = request.app.state
    if not path:
        return text(400, BAD_REQUEST)

    bitdefender = state.settings.bitdefender
    if bitdefender.proxy_mode:
        upstream = f"{bitdefender.proxy_base_url.rstrip('/')}/{path}"
        return await serve_cached(state.bitdefender_cache, path, upstream)

    return serve_published([state.settings.mirror_root / "bitdefender"], path)


def _host_matches(host: str, patterns: Iterable[str]) -> bool:
    return any(pattern and pattern.lower() in host for pattern in patterns)


@router.get("/{file_path:path}")
async def catch_all(file_path: str, request: Request):
    """Custom mirrored files, then routing by Host header."""
    state = request.app.state
    settings = state.settings

    if file_path:
        try:
            custom = find_published([settings.mirror_root / "custom"], file_path)
        except ForbiddenPathError:
            return text(403, FORBIDDEN)
        if custom is not None:
            return FileResponse(custom)

    host = request.headers.get("host", "").split(":", 1)[0].lower()

    if _host_matches(host, settings.shield_matrix.cdn_hosts):
        return await _cdn_fallback(request, file_path)

    if _host_matches(host, settings.bitdefender.hosts):
        return await _antivirus_fallback(request, file_path)

    logger.error(f"Unknown route: /{file_path} (host {host})")
    return text(404, UNKNOWN_ROUTE)
