from datetime import datetime, timedelta, timezone

import pytest


@pytest.mark.asyncio
class TestVersionStore:

    async def test_unknown_feed(self, store):
        assert await store.get("ids1") is None

    async def test_record_success(self, store):
        assert await store.record_success("ids1", "41234", filename="ids1-41234.bin", checksum="ab" * 32)

        record = await store.get("ids1")
        assert record.version == "41234"
        assert record.filename == "ids1-41234.bin"
        assert record.success is True
        assert record.last_success_at is not None

    async def test_version_never_regresses(self, store):
        await store.record_success("ids2", "100", filename="new.bin")

        assert await store.record_success("ids2", "99", filename="old.bin") is False

        record = await store.get("ids2")
        assert record.version == "100"
        assert record.filename == "new.bin"

    async def test_mark_up_to_date_advances_time_only(self, store):
        first = datetime(2025, 1, 1, tzinfo=timezone.utc)
        await store.record_success("ids3", "5", filename="f.bin", when=first)
        await store.mark_up_to_date("ids3", when=first + timedelta(days=1))

        record = await store.get("ids3")
        assert record.version == "5"
        assert record.filename == "f.bin"
        assert record.last_success_at.date() == (first + timedelta(days=1)).date()

    async def test_record_failure_keeps_version(self, store):
        await store.record_success("bitdefender", "7", filename="av64bit/versions.id")
        await store.record_failure("bitdefender")

        record = await store.get("bitdefender")
        assert record.version == "7"
        assert record.success is False

    async def test_superseded_files(self, store):
        await store.record_success("ids1", "1", filename="a.bin")
        await store.record_success("ids1", "2", filename="b.bin")
        await store.record_success("ids1", "3", filename="c.bin")

        assert await store.superseded_files("ids1") == ["a.bin", "b.bin"]

        await store.forget_artifacts("ids1", ["a.bin"])
        assert await store.superseded_files("ids1") == ["b.bin"]

    async def test_list_all(self, store):
        await store.record_success("ids2", "1")
        await store.record_failure("custom")

        assert [r.feed_id for r in await store.list_all()] == ["custom", "ids2"]

    async def test_webfilter_key(self, store):
        assert await store.get_webfilter_key("LIC") is None

        await store.set_webfilter_key("LIC", "KEY-1")
        await store.set_webfilter_key("LIC", "KEY-2")

        assert await store.get_webfilter_key("LIC") == "KEY-2"
