"""
feedgate Downloader

HTTP GET with bounded retries and an optional upstream proxy.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import aiofiles
import httpx

from ..config import Settings
from ..exceptions import DownloadError, UpstreamStatusError, UpstreamTransportError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class Downloader:
    """
    Shared outbound HTTP client.

    Every GET is attempted ``retry_count + 1`` times with a fixed delay in
    between. Anything other than 200 OK counts as a failed attempt.
    Proxy URLs may use the http://, https:// or socks5:// scheme.
    """

    def __init__(
        self,
        retry_count: int = 3,
        retry_delay: float = 10.0,
        timeout: float = 60.0,
        proxy_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize downloader.

        Args:
            retry_count: Extra attempts after the first one
            retry_delay: Seconds to wait between attempts
            timeout: Per-request timeout in seconds
            proxy_url: Upstream proxy, empty for direct connections
            transport: Custom transport (used by tests)
        """
        self.retry_count = max(0, retry_count)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.proxy_url = proxy_url or None

        client_kwargs = {"timeout": timeout, "follow_redirects": True}
        if transport is not None:
            client_kwargs["transport"] = transport
        elif self.proxy_url:
            client_kwargs["proxy"] = self.proxy_url

        self._client = httpx.AsyncClient(**client_kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "Downloader":
        download = settings.download
        return cls(
            retry_count=download.retry_count,
            retry_delay=download.retry_delay_seconds,
            timeout=download.timeout_seconds,
            proxy_url=download.proxy_url,
            transport=transport,
        )

    async def __aenter__(self) -> "Downloader":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _attempt_get(self, url: str) -> bytes:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise UpstreamTransportError(url, f"request failed ({e.__class__.__name__})") from e

        if response.status_code != 200:
            raise UpstreamStatusError(url, response.status_code)
        return response.content

    async def _attempt_download(self, url: str, dest: Path) -> int:
        written = 0
        try:
            async with self._client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise UpstreamStatusError(url, response.status_code)
                async with aiofiles.open(dest, "wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        await f.write(chunk)
                        written += len(chunk)
        except httpx.HTTPError as e:
            raise UpstreamTransportError(url, f"request failed ({e.__class__.__name__})") from e
        return written

    async def _retrying(self, url: str, attempt, *args):
        last_error: Optional[DownloadError] = None

        for attempt_no in range(1, self.retry_count + 2):
            try:
                return await attempt(url, *args)
            except DownloadError as e:
                last_error = e
                logger.debug(f"GET {url} attempt {attempt_no} failed: {e}")
                if attempt_no <= self.retry_count:
                    await asyncio.sleep(self.retry_delay)

        logger.warning(f"GET {url} failed after {self.retry_count + 1} attempts: {last_error}")
        raise last_error

    async def get(self, url: str) -> bytes:
        """
        Fetch a URL into memory.

        Args:
            url: Absolute URL

        Returns:
            Response body

        Raises:
            UpstreamTransportError: Network failure on the last attempt
            UpstreamStatusError: Non-200 status on the last attempt
        """
        return await self._retrying(url, self._attempt_get)

    async def get_text(self, url: str, encoding: str = "utf-8") -> str:
        body = await self.get(url)
        return body.decode(encoding, errors="replace")

    async def download_to(self, url: str, dest: Union[str, Path]) -> Path:
        """
        Stream a URL to a file, retrying like ``get``.

        A partially written file is removed before the next attempt and
        after the final failure.

        Args:
            url: Absolute URL
            dest: Destination file; parent directories are created

        Returns:
            The destination path
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        async def attempt(u: str) -> int:
            try:
                return await self._attempt_download(u, dest)
            except DownloadError:
                dest.unlink(missing_ok=True)
                raise

        size = await self._retrying(url, attempt)
        logger.debug(f"Stored {url} -> {dest} ({size} bytes)")
        return dest

    @asynccontextmanager
    async def stream(self, url: str, timeout: Optional[float] = None) -> AsyncIterator[httpx.Response]:
        """
        Open a single-attempt streaming GET for pass-through proxying.

        The response is yielded whatever its status; the caller decides
        what a non-200 means.

        Raises:
            UpstreamTransportError: If the connection cannot be made
        """
        try:
            async with self._client.stream(
                "GET", url, timeout=timeout if timeout is not None else self.timeout
            ) as response:
                yield response
        except httpx.HTTPError as e:
            raise UpstreamTransportError(url, f"request failed ({e.__class__.__name__})") from e
