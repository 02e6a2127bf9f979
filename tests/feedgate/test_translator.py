import pytest

from feedgate.protocol import parse_major, translate

HOST = "10.0.0.5:8080"


@pytest.mark.parametrize("version, expected", [
    ("3", 3),
    ("3.0", 3),
    ("10.123", 10),
    ("+7.1", 7),
    ("-1.0", -1),
    ("abc", None),
    (".5", None),
    ("3a.0", None),
])
def test_parse_major(version, expected):
    assert parse_major(version) == expected


@pytest.mark.asyncio
class TestTranslate:

    async def test_missing_version(self, store, settings):
        assert await translate(None, HOST, store, settings) == (400, "")
        assert await translate("", HOST, store, settings) == (400, "")

    async def test_malformed_version(self, store, settings):
        assert await translate("abc", HOST, store, settings) == (400, "400 Bad Request")

    async def test_version_zero(self, store, settings):
        assert await translate("0.0", HOST, store, settings) == (200, "0:0.0")

    async def test_signature_channel(self, store, settings):
        await store.record_success("ids3", "41234", filename="ids3-41234.bin")

        status, body = await translate("3.0", HOST, store, settings)

        assert status == 200
        assert body == f"0:3.41234\nfull:http://{HOST}/control-update/ids3-41234.bin"

    async def test_signature_channel_never_published(self, store, settings):
        assert await translate("2.0", HOST, store, settings) == (500, "500 Internal Server Error")

    async def test_geo_channel(self, store, settings):
        await store.record_success("ids4", "20251019", filename="full-4-20251019.gz")

        status, body = await translate("4.0", HOST, store, settings)

        assert status == 200
        assert body.endswith("/control-update/full-4-20251019.gz")
        assert body.startswith("0:4.20251019\n")

    @pytest.mark.parametrize("version", ["6.0", "7.0", "8.0"])
    async def test_reputation_channels(self, store, settings, version):
        await store.record_success("shieldmatrix", "1234")

        status, body = await translate(version, HOST, store, settings)

        assert status == 200
        assert body == f"0:1234\nmatrix:http://{HOST}/matrix/"

    async def test_reputation_without_version(self, store, settings):
        assert await translate("6.0", HOST, store, settings) == (200, "0:0.0")

    async def test_antivirus_vendor_directory(self, store, settings):
        status, body = await translate("9.0", HOST, store, settings)

        assert status == 200
        assert body == "THDdir=https://bdupdate.kerio.com/../"

    async def test_antivirus_proxy_mode(self, store, settings):
        settings.bitdefender.proxy_mode = True

        assert await translate("10.0", HOST, store, settings) == (200, f"THDdir=http://{HOST}/")

    @pytest.mark.parametrize("version", ["11.0", "-1.0", "99"])
    async def test_unknown_channel(self, store, settings, version):
        assert await translate(version, HOST, store, settings) == (404, "404 Not found")
