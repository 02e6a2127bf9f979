"""
feedgate Storage Package

Database models and the version store.
"""

from .database import DatabaseManager
from .models import FeedArtifact, FeedState, WebFilterKey
from .version_store import FeedRecord, VersionStore

__all__ = [
    "DatabaseManager",
    "FeedArtifact",
    "FeedState",
    "WebFilterKey",
    "FeedRecord",
    "VersionStore",
]
