"""Configuration module exports."""

from gitview.config.settings import Settings, get_settings

from gitview.config.gitview_config import (
    RunnerConfig,
    ServiceConfig,
    CacheConfig,
    WatcherConfig,
    GitViewConfig,
)

__all__ = [
    "Settings",
    "get_settings",
    "RunnerConfig",
    "ServiceConfig",
    "CacheConfig",
    "WatcherConfig",
    "GitViewConfig",
]
