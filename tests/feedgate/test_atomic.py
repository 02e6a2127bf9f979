import os
from pathlib import Path

import pytest

from feedgate.exceptions import AtomicReplaceError
from feedgate.updates import atomic_replace
from feedgate.updates.atomic import backup_path_for


class TestAtomicReplace:

    @pytest.fixture
    def published(self, tmp_path):
        path = tmp_path / "bitdefender"
        path.mkdir()
        (path / "old.dat").write_text("old")
        return path

    @pytest.fixture
    def staging(self, tmp_path):
        path = tmp_path / ".bitdefender_tmp1"
        path.mkdir()
        (path / "new.dat").write_text("new")
        return path

    def test_directory_replaced(self, published, staging):
        atomic_replace(staging, published)

        assert (published / "new.dat").read_text() == "new"
        assert not (published / "old.dat").exists()
        assert not staging.exists()
        assert not backup_path_for(published).exists()

    def test_first_publish(self, tmp_path, staging):
        target = tmp_path / "fresh"

        atomic_replace(staging, target)

        assert (target / "new.dat").exists()

    def test_single_file(self, tmp_path):
        target = tmp_path / "ids" / "ids1.bin"
        target.parent.mkdir()
        target.write_bytes(b"v1")
        staged = tmp_path / "ids1.bin.new"
        staged.write_bytes(b"v2")

        atomic_replace(staged, target)

        assert target.read_bytes() == b"v2"

    def test_leftover_backup_cleared(self, published, staging):
        leftover = backup_path_for(published)
        leftover.mkdir()
        (leftover / "stale").write_text("x")

        atomic_replace(staging, published)

        assert not leftover.exists()
        assert (published / "new.dat").exists()

    def test_missing_staging(self, tmp_path, published):
        with pytest.raises(AtomicReplaceError):
            atomic_replace(tmp_path / "nope", published)

        assert (published / "old.dat").read_text() == "old"

    def test_rollback_when_publish_fails(self, monkeypatch, published, staging):
        real_rename = os.rename

        def failing_rename(src, dst):
            if Path(src) == staging:
                raise OSError("disk full")
            return real_rename(src, dst)

        monkeypatch.setattr(os, "rename", failing_rename)

        with pytest.raises(AtomicReplaceError) as exc_info:
            atomic_replace(staging, published)

        assert exc_info.value.rolled_back is True
        assert (published / "old.dat").read_text() == "old"
        assert not backup_path_for(published).exists()
