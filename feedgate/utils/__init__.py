"""
feedgate Utilities Package
"""

from .helpers import (
    date_token,
    get_current_timestamp,
    hash_file,
    is_newer,
    safe_join,
    url_relative_path,
    version_key,
)

__all__ = [
    "date_token",
    "get_current_timestamp",
    "hash_file",
    "is_newer",
    "safe_join",
    "url_relative_path",
    "version_key",
]
