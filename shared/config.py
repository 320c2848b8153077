"""
Shared configuration management for the tiered cache.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_cache_root() -> Path:
    xdg = os.getenv("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".cache"


def _default_data_dir() -> Path:
    return Path.home() / ".local" / "share" / "tiered-cache"


class CacheConfig(BaseSettings):
    """Cache and persistence settings, read from TIERED_CACHE_* env vars."""

    model_config = SettingsConfigDict(
        env_prefix="TIERED_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Capacities
    memory_max_entries: int = 100
    disk_max_entries: int = 1000

    # Storage locations
    cache_root: Path = Field(default_factory=_default_cache_root)
    disk_subdirectory: str = "DiskCache"
    data_dir: Path = Field(default_factory=_default_data_dir)

    # Secret store
    master_key: Optional[str] = None
    secrets_file: str = "secrets.json"

    # Observability
    enable_metrics: bool = True

    @field_validator("memory_max_entries", "disk_max_entries")
    @classmethod
    def _positive_capacity(cls, value: int) -> int:
        if value < 1:
            raise ValueError("capacity must be at least 1")
        return value

    @field_validator("disk_subdirectory")
    @classmethod
    def _plain_subdirectory(cls, value: str) -> str:
        if not value or "/" in value or value in (".", ".."):
            raise ValueError("disk_subdirectory must be a single path component")
        return value

    @property
    def disk_cache_dir(self) -> Path:
        """Directory holding one file per disk-tier entry."""
        return Path(self.cache_root) / self.disk_subdirectory


def get_config(**overrides) -> CacheConfig:
    """Get configuration, with keyword overrides taking precedence over env."""
    return CacheConfig(**overrides)
