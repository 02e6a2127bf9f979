from pathlib import Path

import pytest

from feedgate.exceptions import DescriptorError, StagingError
from feedgate.updates import Descriptor, FeedSource, FeedUpdater, UpdateContext


class StubSource(FeedSource):
    """Directory feed whose descriptor and staging behaviour tests control."""

    feed_id = "stub"

    def __init__(self, version="2", fail_stage=False, descriptor_error=None, reason=None):
        self.version = version
        self.fail_stage = fail_stage
        self.descriptor_error = descriptor_error
        self.reason = reason
        self.checks = 0
        self.stages = 0

    def skip_reason(self, ctx):
        return self.reason

    async def fetch_descriptor(self, ctx):
        self.checks += 1
        if self.descriptor_error:
            raise self.descriptor_error
        return Descriptor(version=self.version, filename="data.txt")

    def published_path(self, ctx) -> Path:
        return ctx.mirror_root / "stub"

    async def stage(self, ctx, descriptor, staging):
        self.stages += 1
        (staging / "data.txt").write_text(f"v{descriptor.version}")
        if self.fail_stage:
            raise StagingError("required part missing")
        return None


@pytest.fixture
def ctx(settings, downloader, store):
    return UpdateContext(settings, downloader, store, settings.mirror_root)


def published_text(ctx):
    return (ctx.mirror_root / "stub" / "data.txt").read_text()


def mirror_entries(ctx):
    return sorted(p.name for p in ctx.mirror_root.iterdir())


@pytest.mark.asyncio
class TestFeedUpdater:

    async def test_first_update(self, ctx, store):
        result = await FeedUpdater(StubSource("2")).run(ctx)

        assert result.status == "updated"
        assert result.version == "2"
        assert published_text(ctx) == "v2"
        assert (await store.get("stub")).version == "2"

    async def test_same_version_is_up_to_date(self, ctx):
        source = StubSource("2")
        await FeedUpdater(source).run(ctx)

        result = await FeedUpdater(source).run(ctx)

        assert result.status == "up_to_date"
        assert source.checks == 2
        assert source.stages == 1

    async def test_missing_published_data_is_restaged(self, ctx):
        source = StubSource("2")
        await FeedUpdater(source).run(ctx)
        (ctx.mirror_root / "stub" / "data.txt").unlink()
        (ctx.mirror_root / "stub").rmdir()

        result = await FeedUpdater(source).run(ctx)

        assert result.status == "updated"
        assert published_text(ctx) == "v2"

    async def test_failed_stage_keeps_published_data(self, ctx, store):
        await FeedUpdater(StubSource("2")).run(ctx)

        result = await FeedUpdater(StubSource("3", fail_stage=True)).run(ctx)

        assert result.status == "failed"
        assert not result.ok
        assert published_text(ctx) == "v2"
        record = await store.get("stub")
        assert record.version == "2"
        assert record.success is False
        assert mirror_entries(ctx) == ["stub"]

    async def test_descriptor_failure_writes_nothing(self, ctx, store):
        source = StubSource(descriptor_error=DescriptorError("garbled"))

        result = await FeedUpdater(source).run(ctx)

        assert result.status == "failed"
        assert await store.get("stub") is None
        assert source.stages == 0

    async def test_older_upstream_version_ignored(self, ctx, store):
        await FeedUpdater(StubSource("10")).run(ctx)

        source = StubSource("9")
        result = await FeedUpdater(source).run(ctx)

        assert result.status == "up_to_date"
        assert source.stages == 0
        assert published_text(ctx) == "v10"
        assert (await store.get("stub")).version == "10"

    async def test_older_version_not_restaged_over_missing_data(self, ctx, store):
        await FeedUpdater(StubSource("10")).run(ctx)
        (ctx.mirror_root / "stub" / "data.txt").unlink()
        (ctx.mirror_root / "stub").rmdir()

        source = StubSource("9")
        result = await FeedUpdater(source).run(ctx)

        assert result.status == "failed"
        assert source.stages == 0
        assert (await store.get("stub")).version == "10"

    async def test_no_update_offered(self, ctx, store):
        result = await FeedUpdater(StubSource(version=None)).run(ctx)

        assert result.status == "up_to_date"
        record = await store.get("stub")
        assert record.version is None
        assert record.success is True

    async def test_skipped(self, ctx, store):
        source = StubSource(reason="disabled")

        result = await FeedUpdater(source).run(ctx)

        assert result.status == "skipped"
        assert result.message == "disabled"
        assert source.checks == 0
        assert await store.get("stub") is None

    async def test_newer_version_replaces_directory(self, ctx):
        await FeedUpdater(StubSource("2")).run(ctx)

        result = await FeedUpdater(StubSource("3")).run(ctx)

        assert result.status == "updated"
        assert published_text(ctx) == "v3"
        assert mirror_entries(ctx) == ["stub"]
