"""
feedgate Configuration Module

Handles loading and validation of application configuration.
"""

import os
from pathlib import Path
from typing import Optional, List
from functools import lru_cache

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ServerConfig(BaseModel):
    """Server configuration settings."""
    host: str = "0.0.0.0"
    port: int = 80
    debug: bool = False
    ssl_certfile: str = ""
    ssl_keyfile: str = ""


class DatabaseConfig(BaseModel):
    """Database configuration settings."""
    path: str = "data/feedgate.db"
    echo: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file_path: str = "logs/feedgate.log"
    max_size_mb: int = 100
    backup_count: int = 5


class DownloadConfig(BaseModel):
    """Upstream HTTP client configuration."""
    retry_count: int = 3
    retry_delay_seconds: float = 10
    timeout_seconds: float = 60
    # On-demand proxying streams whole definition files to the appliance
    proxy_timeout_seconds: float = 300
    # http://, https:// or socks5:// proxy for every upstream request
    proxy_url: str = ""


class ScheduleConfig(BaseModel):
    """Daily update schedule."""
    enabled: bool = True
    time: str = "03:00"


class MirrorConfig(BaseModel):
    """Local mirror layout."""
    root: str = "mirror"


class LicenseConfig(BaseModel):
    """Appliance license, required by the signature and web filter feeds."""
    number: str = ""


class IDSConfig(BaseModel):
    """Intrusion signature feeds (update.php versions 1-5)."""
    url: str = "https://ids-update.kerio.com/update.php"
    versions: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    # Versions shipped with a detached .sig companion
    signed_versions: List[int] = Field(default_factory=lambda: [1, 2, 3, 5])


class SnortTemplateConfig(BaseModel):
    """IPS template companion of signature feed 5."""
    enabled: bool = True
    url: str = "http://download.kerio.com/control-update/config/v1/snort.tpl"


class GeoConfig(BaseModel):
    """Geo-IP country database, served on the version 4 channel."""
    enabled: bool = True
    ipv4_url: str = "https://raw.githubusercontent.com/wyot1/GeoLite2-Unwalled/downloads/COUNTRY/CSV/GeoLite2-Country-Blocks-IPv4.csv"
    ipv6_url: str = "https://raw.githubusercontent.com/wyot1/GeoLite2-Unwalled/downloads/COUNTRY/CSV/GeoLite2-Country-Blocks-IPv6.csv"
    locations_url: str = "https://raw.githubusercontent.com/wyot1/GeoLite2-Unwalled/downloads/COUNTRY/CSV/GeoLite2-Country-Locations-en.csv"


class WebFilterConfig(BaseModel):
    """Web filter activation key."""
    enabled: bool = True
    url: str = "https://wf-activation.kerio.com/getkey.php"


class BitdefenderConfig(BaseModel):
    """Antivirus definitions (update.php versions 9 and 10)."""
    enabled: bool = True
    base_url: str = "https://upgrade.bitdefender.com"
    proxy_mode: bool = False
    proxy_base_url: str = "https://upgrade.bitdefender.com"
    vendor_update_dir: str = "https://bdupdate.kerio.com/../"
    hosts: List[str] = Field(default_factory=lambda: ["bdupdate.kerio.com", "bda-update.kerio.com"])


class ShieldMatrixConfig(BaseModel):
    """Threat reputation feed (update.php versions 6-8)."""
    enabled: bool = True
    check_update_url: str = "https://shieldmatrix-updates.gfikeriocontrol.com/check_update/"
    client_id: str = "control"
    product_version: str = "9.5.0"
    base_url: str = "https://d2akeya8d016xi.cloudfront.net/9.5.0"
    preload_files: bool = False
    max_preload_files: int = 100
    cdn_hosts: List[str] = Field(default_factory=lambda: ["cloudfront.net", "d2akeya8d016xi"])


class CustomConfig(BaseModel):
    """Arbitrary files mirrored under their URL path."""
    urls: List[str] = Field(default_factory=list)


class IPFilterConfig(BaseModel):
    """Client address allow/deny lists (addresses or CIDR ranges)."""
    allowed: List[str] = Field(default_factory=list)
    blocked: List[str] = Field(default_factory=list)
    # Honour X-Real-IP / X-Forwarded-For; only safe behind a trusted reverse proxy.
    trust_forwarded: bool = True


class NotificationsConfig(BaseModel):
    """Telegram notifications about update cycles."""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    notify_on_start: bool = False
    notify_on_success: bool = True
    notify_on_error: bool = True


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from config.yml file, with environment variable overrides.
    """
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    license: LicenseConfig = Field(default_factory=LicenseConfig)
    ids: IDSConfig = Field(default_factory=IDSConfig)
    snort_template: SnortTemplateConfig = Field(default_factory=SnortTemplateConfig)
    geo: GeoConfig = Field(default_factory=GeoConfig)
    webfilter: WebFilterConfig = Field(default_factory=WebFilterConfig)
    bitdefender: BitdefenderConfig = Field(default_factory=BitdefenderConfig)
    shield_matrix: ShieldMatrixConfig = Field(default_factory=ShieldMatrixConfig)
    custom: CustomConfig = Field(default_factory=CustomConfig)
    ip_filter: IPFilterConfig = Field(default_factory=IPFilterConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)

    # Base path for relative paths
    base_path: Path = Field(default_factory=lambda: Path.cwd())

    class Config:
        env_prefix = "FEEDGATE_"
        env_nested_delimiter = "__"

    def resolve_path(self, path: str) -> Path:
        """Resolve a relative path against the base path."""
        p = Path(path)
        if p.is_absolute():
            return p
        return self.base_path / p

    @property
    def mirror_root(self) -> Path:
        return self.resolve_path(self.mirror.root)


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to $FEEDGATE_CONFIG, then 'config.yml'.

    Returns:
        Settings object with loaded configuration.
    """
    if config_path is None:
        config_path = os.environ.get("FEEDGATE_CONFIG", "config.yml")

    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        config_data = {}

    # Set base path to config file's parent directory
    config_data["base_path"] = config_file.parent.resolve()

    return Settings(**config_data)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This is the primary way to access settings throughout the application.
    """
    return load_config()
