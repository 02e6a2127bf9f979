"""
feedgate Utility Functions

Common helper functions used throughout the application.
"""

import hashlib
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union
from urllib.parse import urlsplit

from ..exceptions import ForbiddenPathError


_TOKEN_SEPARATORS = re.compile(r"[.\-_]")


def get_current_timestamp() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def date_token(moment: Optional[datetime] = None) -> str:
    """Version token for feeds refreshed at most once per day (YYYYMMDD)."""
    moment = moment or datetime.now()
    return moment.strftime("%Y%m%d")


def version_key(token: Union[str, int]) -> Tuple:
    """
    Build a sort key for an opaque version token.

    Tokens are split on '.', '-' and '_'; numeric segments compare
    numerically, anything else lexically and after numbers.

    Args:
        token: Version token, e.g. "20251019", "9.5.0" or 41234

    Returns:
        Tuple usable with the normal comparison operators
    """
    parts = _TOKEN_SEPARATORS.split(str(token).strip())
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in parts
    )


def is_newer(candidate: Union[str, int], current: Optional[Union[str, int]]) -> bool:
    """Return True if candidate is strictly greater than current."""
    if current is None or str(current).strip() == "":
        return True
    return version_key(candidate) > version_key(current)


def safe_join(root: Union[str, Path], relative: str) -> Path:
    """
    Join a client supplied path onto a root directory.

    Leading slashes are ignored, so "/a/b" is looked up as "a/b" below root.

    Args:
        root: Directory the result must stay inside
        relative: Untrusted relative path

    Returns:
        Absolute, canonical path inside root

    Raises:
        ForbiddenPathError: If the path escapes root
    """
    base = Path(root).resolve()
    cleaned = str(relative).replace("\\", "/").lstrip("/")
    target = (base / cleaned).resolve()
    if target != base and base not in target.parents:
        raise ForbiddenPathError(f"path escapes {base}: {relative}")
    return target


def url_relative_path(url: str) -> str:
    """Path component of a URL without its leading slash ("" if none)."""
    return urlsplit(url).path.lstrip("/")


def hash_file(path: Union[str, Path], algorithm: str = "sha256") -> str:
    """
    Compute hash of a file's contents.

    Args:
        path: File to hash
        algorithm: Hash algorithm (sha256, sha512, md5)

    Returns:
        Hexadecimal hash string
    """
    hasher = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
