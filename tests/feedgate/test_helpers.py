from datetime import datetime

import pytest

from feedgate.exceptions import ForbiddenPathError
from feedgate.utils import date_token, is_newer, safe_join, url_relative_path, version_key


class TestVersionOrdering:

    def test_integers_compare_numerically(self):
        assert is_newer("41235", "41234")
        assert is_newer("10", "9")
        assert not is_newer("9", "10")

    def test_equal_is_not_newer(self):
        assert not is_newer("20251019", "20251019")

    def test_dotted_tokens(self):
        assert is_newer("9.5.10", "9.5.2")
        assert version_key("1.0-2") < version_key("1.0-10")

    def test_absent_stored_token_is_older(self):
        assert is_newer("1", None)
        assert is_newer("1", "")

    def test_date_tokens(self):
        assert is_newer("20251020", "20251019")


class TestSafeJoin:

    def test_inside_root(self, tmp_path):
        assert safe_join(tmp_path, "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()

    def test_leading_slash_is_relative(self, tmp_path):
        assert safe_join(tmp_path, "/a/b.txt") == (tmp_path / "a" / "b.txt").resolve()

    def test_traversal_rejected(self, tmp_path):
        with pytest.raises(ForbiddenPathError):
            safe_join(tmp_path / "cache", "../../etc/passwd")

    def test_backslash_traversal_rejected(self, tmp_path):
        with pytest.raises(ForbiddenPathError):
            safe_join(tmp_path / "cache", "..\\..\\etc\\passwd")


def test_date_token():
    assert date_token(datetime(2025, 1, 9, 23, 59)) == "20250109"


def test_url_relative_path():
    assert url_relative_path("https://example.com/dir/file.bin") == "dir/file.bin"
    assert url_relative_path("https://example.com") == ""