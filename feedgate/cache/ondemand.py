"""
feedgate On-Demand Cache

Lazily fetches individual upstream files and keeps them on disk.
"""

import logging
import os
import tempfile
from contextlib import AsyncExitStack
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Optional, Union

import aiofiles
import httpx

from ..exceptions import DownloadError, UpstreamStatusError
from ..net import CHUNK_SIZE, Downloader
from ..utils import safe_join

logger = logging.getLogger(__name__)

# Version indexes change in place upstream and must always be fetched fresh.
NON_CACHEABLE_NAMES = frozenset({"versions.id", "version.txt", "cumulative.txt"})


def is_cacheable(path: str) -> bool:
    """Decide by the last path segment only, case-insensitively."""
    name = PurePosixPath(str(path).replace("\\", "/")).name
    return name.lower() not in NON_CACHEABLE_NAMES


@dataclass
class CacheResponse:
    """
    What to send back for one request.

    Exactly one of ``path`` (serve from disk) or ``body`` (stream) is set.
    """
    path: Optional[Path] = None
    body: Optional[AsyncIterator[bytes]] = None
    media_type: Optional[str] = None
    cached: bool = False


class OnDemandCache:
    """
    Per-file fetch-and-persist cache rooted at one directory.

    A cacheable file is written to a temp file in its destination
    directory while it streams to the client, and renamed into place only
    once the whole body arrived. There is no in-flight deduplication:
    concurrent misses for the same file each fetch it and the last
    rename wins.
    """

    def __init__(
        self,
        root: Union[str, Path],
        downloader: Downloader,
        timeout: Optional[float] = None,
        name: str = "cache",
    ):
        """
        Initialize cache.

        Args:
            root: Directory cached files live under
            downloader: Shared outbound client
            timeout: Per-request upstream timeout in seconds
            name: Label used in log messages
        """
        self.root = Path(root)
        self.downloader = downloader
        self.timeout = timeout
        self.name = name

    def resolve(self, relative: str) -> Path:
        """
        Map a request path onto the cache root.

        Raises:
            ForbiddenPathError: If the path escapes the root
        """
        return safe_join(self.root, relative)

    async def open(self, relative: str, upstream_url: str) -> CacheResponse:
        """
        Serve one file, fetching it upstream on a miss.

        Args:
            relative: Path below the cache root
            upstream_url: Where to fetch it from

        Returns:
            A disk path for hits, a byte stream for misses

        Raises:
            ForbiddenPathError: Path escapes the cache root
            UpstreamStatusError: Upstream answered with a non-200 status
            UpstreamTransportError: Upstream could not be reached
        """
        local = self.resolve(relative)
        cacheable = is_cacheable(relative)

        if not cacheable:
            if local.is_file():
                logger.info(f"{self.name}: deleting stale non-cacheable copy {local}")
                try:
                    local.unlink()
                except OSError as e:
                    logger.error(f"{self.name}: could not delete {local}: {e}")
        elif local.is_file():
            logger.debug(f"{self.name}: hit {local}")
            return CacheResponse(path=local, cached=True)

        stack = AsyncExitStack()
        response = await stack.enter_async_context(self.downloader.stream(upstream_url, self.timeout))
        if response.status_code != 200:
            await stack.aclose()
            logger.warning(f"{self.name}: upstream returned {response.status_code} for {upstream_url}")
            raise UpstreamStatusError(upstream_url, response.status_code)

        media_type = response.headers.get("content-type")
        if cacheable:
            logger.info(f"{self.name}: miss, caching {upstream_url}")
            body = self._tee(response, local, stack)
        else:
            logger.info(f"{self.name}: passing through non-cacheable {upstream_url}")
            body = self._passthrough(response, stack)

        return CacheResponse(body=body, media_type=media_type)

    async def _passthrough(self, response: httpx.Response, stack: AsyncExitStack) -> AsyncIterator[bytes]:
        async with stack:
            async for chunk in response.aiter_bytes(CHUNK_SIZE):
                yield chunk

    async def _tee(self, response: httpx.Response, dest: Path, stack: AsyncExitStack) -> AsyncIterator[bytes]:
        async with stack:
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
                os.close(fd)
            except OSError as e:
                logger.error(f"{self.name}: cannot cache {dest}, streaming only: {e}")
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    yield chunk
                return

            tmp_path = Path(tmp_name)
            complete = False
            try:
                async with aiofiles.open(tmp_path, "wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        await f.write(chunk)
                        yield chunk
                complete = True
            finally:
                if complete:
                    # The client already has the bytes; a failed rename only loses the copy.
                    try:
                        os.replace(tmp_path, dest)
                        logger.info(f"{self.name}: cached {dest}")
                    except OSError as e:
                        logger.error(f"{self.name}: could not store {dest}: {e}")
                        tmp_path.unlink(missing_ok=True)
                else:
                    logger.warning(f"{self.name}: incomplete copy of {dest} discarded")
                    tmp_path.unlink(missing_ok=True)

    async def fetch(self, relative: str, upstream_url: str) -> Optional[Path]:
        """
        Make sure a file is on disk without a client attached.

        Returns:
            Local path for cacheable files, None for non-cacheable ones
        """
        result = await self.open(relative, upstream_url)
        if result.path is not None:
            return result.path
        async for _ in result.body:
            pass
        return self.resolve(relative) if is_cacheable(relative) else None

    async def preload_sequence(
        self,
        prefix: str,
        stem: str,
        suffix: str,
        base_url: str,
        ceiling: int = 100,
    ) -> int:
        """
        Eagerly fetch ``prefix/<stem>_<i><suffix>`` for i = 1, 2, ...

        Stops at the first file upstream does not have or at the ceiling.

        Returns:
            Number of files now on disk
        """
        base_url = base_url.rstrip("/")
        count = 0

        for index in range(1, ceiling + 1):
            relative = f"{prefix}/{stem}_{index}{suffix}"
            try:
                await self.fetch(relative, f"{base_url}/{relative}")
            except UpstreamStatusError as e:
                if e.status_code != 404:
                    logger.warning(f"{self.name}: preload of {relative} stopped: {e}")
                break
            except DownloadError as e:
                logger.warning(f"{self.name}: preload of {relative} stopped: {e}")
                break
            count += 1
        else:
            logger.warning(f"{self.name}: preload of {prefix} reached ceiling of {ceiling} files")

        logger.info(f"{self.name}: preloaded {count} files under {prefix}")
        return count
