"""
Shared fixtures: isolated settings, a fresh version store and a fake
upstream served through httpx.MockTransport.
"""

from typing import Callable, Dict, List, Union

import httpx
import pytest
import pytest_asyncio

from feedgate.config import Settings
from feedgate.net import Downloader
from feedgate.storage import DatabaseManager, VersionStore

Route = Union[bytes, str, tuple, Callable[[httpx.Request], httpx.Response], Exception]


class FakeUpstream:
    """
    URL → canned response table.

    Values may be bytes/str (200), a (status, body) tuple, a callable taking
    the request, or an exception to raise. Full URLs are matched first,
    then the URL without its query string.
    """

    def __init__(self, routes: Dict[str, Route] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)

        route = self.routes.get(url)
        if route is None:
            route = self.routes.get(url.split("?", 1)[0])
        if route is None:
            return httpx.Response(404, content=b"not found")

        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        if isinstance(route, tuple):
            status, body = route
            return httpx.Response(status, content=body.encode() if isinstance(body, str) else body)
        return httpx.Response(200, content=route.encode() if isinstance(route, str) else route)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, url: str) -> int:
        return sum(1 for call in self.calls if call == url or call.split("?", 1)[0] == url)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        base_path=tmp_path,
        database={"path": "data/test.db"},
        mirror={"root": "mirror"},
        schedule={"enabled": False},
        download={"retry_count": 0, "retry_delay_seconds": 0, "timeout_seconds": 5},
        license={"number": "LIC-123"},
        notifications={"telegram_bot_token": "", "telegram_chat_id": ""},
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest_asyncio.fixture
async def downloader(upstream):
    async with Downloader(retry_count=0, retry_delay=0, timeout=5, transport=upstream.transport) as client:
        yield client


@pytest_asyncio.fixture
async def store(settings):
    db = DatabaseManager(settings=settings)
    await db.init_db()
    yield VersionStore(db)
    await db.close()
