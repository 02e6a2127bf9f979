"""
feedgate Configuration Package
"""

from .settings import NotificationsConfig, Settings, get_settings, load_config

__all__ = ["NotificationsConfig", "Settings", "get_settings", "load_config"]
