"""
feedgate Wire Format

The appliance's line-oriented ``key:value`` format, used both by the
upstream signature descriptor and by our own update.php answers.
"""

from typing import Iterable, List, Tuple

from ..exceptions import DescriptorError

Pair = Tuple[str, str]

VERSION_KEY = "0"
FULL_KEY = "full"
MATRIX_KEY = "matrix"
THD_DIRECTIVE = "THDdir"


def parse_lines(text: str) -> List[Pair]:
    """
    Parse ``key:value`` lines.

    Only the first colon separates key from value, so URLs survive intact.
    Blank lines are ignored.

    Raises:
        DescriptorError: If a non-blank line has no colon
    """
    pairs = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise DescriptorError(f"malformed line: {line!r}")
        pairs.append((key, value))
    return pairs


def encode_lines(pairs: Iterable[Pair]) -> str:
    """Inverse of parse_lines; lines are joined with a bare newline."""
    return "\n".join(f"{key}:{value}" for key, value in pairs)


def split_version(value: str) -> Tuple[str, str]:
    """
    Split a ``<channel>.<version>`` field.

    Raises:
        DescriptorError: If the field is not exactly two dot-separated parts
    """
    parts = value.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise DescriptorError(f"malformed version field: {value!r}")
    return parts[0], parts[1]


def version_line(channel: int, version: str) -> Pair:
    return VERSION_KEY, f"{channel}.{version}"


def no_update() -> str:
    """Body telling the appliance there is nothing to download."""
    return encode_lines([(VERSION_KEY, "0.0")])


def encode_directive(name: str, value: str) -> str:
    return f"{name}={value}"


def parse_directive(text: str) -> Tuple[str, str]:
    name, sep, value = text.strip().partition("=")
    if not sep:
        raise DescriptorError(f"malformed directive: {text!r}")
    return name, value
