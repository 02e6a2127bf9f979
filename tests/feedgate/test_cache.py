import httpx
import pytest

from feedgate.cache import OnDemandCache, is_cacheable
from feedgate.exceptions import ForbiddenPathError, UpstreamStatusError, UpstreamTransportError

BASE = "https://cdn.test/9.5.0"


async def consume(result):
    if result.path is not None:
        return result.path.read_bytes()
    return b"".join([chunk async for chunk in result.body])


def test_is_cacheable():
    assert is_cacheable("av64bit/avx/core.dat")
    assert not is_cacheable("av64bit/versions.id")
    assert not is_cacheable("a/b/VERSIONS.ID")
    assert not is_cacheable("cumulative.txt")
    assert is_cacheable("versions.id/real.dat")


@pytest.mark.asyncio
class TestOnDemandCache:

    @pytest.fixture
    def cache(self, tmp_path, downloader):
        return OnDemandCache(tmp_path / "matrix", downloader, name="matrix")

    async def test_miss_then_hit(self, cache, upstream):
        url = f"{BASE}/ipv4/threat_data_1.dat"
        upstream.routes[url] = b"threats"

        first = await cache.open("ipv4/threat_data_1.dat", url)
        assert first.cached is False
        assert await consume(first) == b"threats"

        second = await cache.open("ipv4/threat_data_1.dat", url)
        assert second.cached is True
        assert await consume(second) == b"threats"

        assert upstream.count(url) == 1
        assert (cache.root / "ipv4" / "threat_data_1.dat").read_bytes() == b"threats"

    async def test_non_cacheable_always_fetched(self, cache, upstream):
        url = f"{BASE}/av64bit/versions.id"
        upstream.routes[url] = b"<all/>"

        for _ in range(2):
            assert await consume(await cache.open("av64bit/versions.id", url)) == b"<all/>"

        assert upstream.count(url) == 2
        assert not (cache.root / "av64bit" / "versions.id").exists()

    async def test_stale_non_cacheable_copy_deleted(self, cache, upstream):
        stale = cache.root / "versions.id"
        stale.parent.mkdir(parents=True)
        stale.write_text("old")
        upstream.routes[f"{BASE}/versions.id"] = b"new"

        assert await consume(await cache.open("versions.id", f"{BASE}/versions.id")) == b"new"
        assert not stale.exists()

    async def test_traversal_forbidden(self, cache, upstream):
        with pytest.raises(ForbiddenPathError):
            await cache.open("../../etc/passwd", f"{BASE}/etc/passwd")

        assert upstream.calls == []

    async def test_upstream_status_propagated(self, cache, upstream):
        with pytest.raises(UpstreamStatusError) as exc_info:
            await cache.open("ipv4/missing.dat", f"{BASE}/ipv4/missing.dat")

        assert exc_info.value.status_code == 404
        assert not (cache.root / "ipv4" / "missing.dat").exists()

    async def test_unreachable_upstream(self, cache, upstream):
        url = f"{BASE}/ipv4/a.dat"
        upstream.routes[url] = httpx.ConnectTimeout("timed out")

        with pytest.raises(UpstreamTransportError):
            await cache.open("ipv4/a.dat", url)

    async def test_abandoned_stream_not_cached(self, cache, upstream):
        url = f"{BASE}/ipv6/big.dat"
        upstream.routes[url] = b"z" * 300_000

        result = await cache.open("ipv6/big.dat", url)
        await result.body.__anext__()
        await result.body.aclose()

        folder = cache.root / "ipv6"
        assert not (folder / "big.dat").exists()
        assert list(folder.iterdir()) == []

    async def test_failed_rename_leaves_no_temp_file(self, cache, upstream):
        url = f"{BASE}/av64bit"
        upstream.routes[url] = b"body"
        (cache.root / "av64bit").mkdir(parents=True)

        result = await cache.open("av64bit", url)

        assert await consume(result) == b"body"
        assert [p.name for p in cache.root.iterdir()] == ["av64bit"]
        assert list((cache.root / "av64bit").iterdir()) == []

    async def test_fetch(self, cache, upstream):
        url = f"{BASE}/ipv4/threat_data_2.dat"
        upstream.routes[url] = b"two"

        path = await cache.fetch("ipv4/threat_data_2.dat", url)

        assert path.read_bytes() == b"two"

    async def test_preload_sequence_stops_at_first_gap(self, cache, upstream):
        for index in (1, 2, 3, 5):
            upstream.routes[f"{BASE}/ipv4/threat_data_{index}.dat"] = b"d"

        count = await cache.preload_sequence("ipv4", "threat_data", ".dat", BASE)

        assert count == 3
        assert sorted(p.name for p in (cache.root / "ipv4").iterdir()) == [
            "threat_data_1.dat", "threat_data_2.dat", "threat_data_3.dat",
        ]

    async def test_preload_ceiling(self, cache, upstream):
        for index in range(1, 6):
            upstream.routes[f"{BASE}/ipv6/threat_data_{index}.dat"] = b"d"

        assert await cache.preload_sequence("ipv6", "threat_data", ".dat", BASE, ceiling=2) == 2
