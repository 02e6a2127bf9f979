"""
feedgate Cache Package

On-demand fetch-and-persist cache for proxied vendor files.
"""

from .ondemand import NON_CACHEABLE_NAMES, CacheResponse, OnDemandCache, is_cacheable

__all__ = [
    "NON_CACHEABLE_NAMES",
    "CacheResponse",
    "OnDemandCache",
    "is_cacheable",
]
