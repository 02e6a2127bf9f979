"""
feedgate Network Package

Outbound HTTP client shared by the update engine and the on-demand cache.
"""

from .downloader import CHUNK_SIZE, Downloader

__all__ = [
    "CHUNK_SIZE",
    "Downloader",
]
