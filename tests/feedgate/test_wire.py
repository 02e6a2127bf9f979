import pytest

from feedgate.exceptions import DescriptorError
from feedgate.protocol import wire


class TestKeyValueLines:

    def test_parse_keeps_colons_in_value(self):
        pairs = wire.parse_lines("0:1.41234\nfull:http://host/control-update/file.bin\n")

        assert pairs == [("0", "1.41234"), ("full", "http://host/control-update/file.bin")]

    def test_blank_lines_ignored(self):
        assert wire.parse_lines("\n0:0.0\n\n") == [("0", "0.0")]

    def test_line_without_colon(self):
        with pytest.raises(DescriptorError):
            wire.parse_lines("garbage")

    def test_round_trip(self):
        pairs = [("0", "3.123"), ("full", "http://10.0.0.1:8080/control-update/ids3.bin")]

        assert wire.parse_lines(wire.encode_lines(pairs)) == pairs

    def test_encode_uses_bare_newline(self):
        assert wire.encode_lines([("0", "1"), ("matrix", "http://h/matrix/")]) == "0:1\nmatrix:http://h/matrix/"

    def test_no_update(self):
        assert wire.no_update() == "0:0.0"


class TestVersionField:

    def test_split(self):
        assert wire.split_version("5.41234") == ("5", "41234")

    @pytest.mark.parametrize("value", ["5", "5.1.2", ".1", "5."])
    def test_malformed(self, value):
        with pytest.raises(DescriptorError):
            wire.split_version(value)


class TestDirective:

    def test_encode(self):
        assert wire.encode_directive("THDdir", "http://h/") == "THDdir=http://h/"

    def test_round_trip(self):
        text = wire.encode_directive(wire.THD_DIRECTIVE, "https://bdupdate.kerio.com/../")

        assert wire.parse_directive(text) == ("THDdir", "https://bdupdate.kerio.com/../")
