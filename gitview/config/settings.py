"""
Settings module for gitview.
Uses pydantic-settings for environment variable management.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GITVIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Process execution
    git_executable: str = "git"
    read_timeout: float = 10.0  # seconds
    write_timeout: float = 30.0  # seconds
    network_timeout: float = 120.0  # seconds
    max_concurrent_processes: int = 4
    max_diff_bytes: int = 512 * 1024  # 512 KiB

    # Read cache
    cache_enabled: bool = True
    cache_ttl: float = 2.0  # seconds
    cache_max_entries: int = 64

    # Change watcher
    watcher_enabled: bool = True
    watcher_debounce: float = 0.5  # seconds

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
