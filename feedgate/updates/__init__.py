"""
feedgate Updates Package

Feed update engine: per-feed updaters, atomic publishing and scheduling.
"""

from .atomic import atomic_replace
from .manager import UpdateManager, build_updaters
from .scheduler import DailyScheduler
from .updater import Artifact, Descriptor, FeedSource, FeedUpdater, UpdateContext, UpdateResult

__all__ = [
    "atomic_replace",
    "UpdateManager",
    "build_updaters",
    "DailyScheduler",
    "Artifact",
    "Descriptor",
    "FeedSource",
    "FeedUpdater",
    "UpdateContext",
    "UpdateResult",
]
