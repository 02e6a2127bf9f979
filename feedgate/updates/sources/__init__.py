"""
feedgate Feed Sources

One FeedSource per upstream feed kind.
"""

from .bitdefender import BitdefenderSource
from .custom import CustomFilesSource
from .geo import GeoSource
from .ids import IDSSource
from .shieldmatrix import ShieldMatrixSource
from .snort import SnortTemplateSource
from .webfilter import WebFilterKeyFetcher

__all__ = [
    "BitdefenderSource",
    "CustomFilesSource",
    "GeoSource",
    "IDSSource",
    "ShieldMatrixSource",
    "SnortTemplateSource",
    "WebFilterKeyFetcher",
]
