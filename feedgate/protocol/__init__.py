"""
feedgate Protocol Package

Appliance wire format and the update.php translator.
"""

from . import wire
from .translator import BAD_REQUEST, INTERNAL_ERROR, NOT_FOUND, parse_major, translate

__all__ = [
    "wire",
    "BAD_REQUEST",
    "INTERNAL_ERROR",
    "NOT_FOUND",
    "parse_major",
    "translate",
]
