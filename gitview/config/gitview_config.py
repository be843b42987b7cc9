"""
Configuration dataclasses for gitview components.
Provides immutable configuration objects for dependency injection.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gitview.exceptions import ConfigurationException

if TYPE_CHECKING:
    from gitview.config.settings import Settings


@dataclass(frozen=True)
class RunnerConfig:
    """Process execution configuration."""

    executable: str = "git"
    read_timeout: float = 10.0
    write_timeout: float = 30.0
    network_timeout: float = 120.0
    max_concurrent: int = 4

    def __post_init__(self):
        for name in ("read_timeout", "write_timeout", "network_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationException(
                    f"{name} must be positive", details={name: getattr(self, name)}
                )
        if self.max_concurrent < 1:
            raise ConfigurationException(
                "max_concurrent must be at least 1",
                details={"max_concurrent": self.max_concurrent},
            )


@dataclass(frozen=True)
class ServiceConfig:
    """Service facade configuration."""

    max_diff_bytes: int = 512 * 1024  # 512 KiB

    def __post_init__(self):
        if self.max_diff_bytes <= 0:
            raise ConfigurationException(
                "max_diff_bytes must be positive",
                details={"max_diff_bytes": self.max_diff_bytes},
            )


@dataclass(frozen=True)
class CacheConfig:
    """Read cache configuration."""

    enabled: bool = True
    ttl: float = 2.0
    max_entries: int = 64

    def __post_init__(self):
        if self.ttl <= 0:
            raise ConfigurationException("cache ttl must be positive", details={"ttl": self.ttl})
        if self.max_entries < 1:
            raise ConfigurationException(
                "cache max_entries must be at least 1",
                details={"max_entries": self.max_entries},
            )


@dataclass(frozen=True)
class WatcherConfig:
    """Change watcher configuration."""

    enabled: bool = True
    debounce: float = 0.5

    def __post_init__(self):
        if self.debounce <= 0:
            raise ConfigurationException(
                "watcher debounce must be positive", details={"debounce": self.debounce}
            )


@dataclass
class GitViewConfig:
    """Complete gitview configuration."""

    runner: RunnerConfig = field(default_factory=RunnerConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GitViewConfig":
        """Create config from application settings."""
        return cls(
            runner=RunnerConfig(
                executable=settings.git_executable,
                read_timeout=settings.read_timeout,
                write_timeout=settings.write_timeout,
                network_timeout=settings.network_timeout,
                max_concurrent=settings.max_concurrent_processes,
            ),
            service=ServiceConfig(max_diff_bytes=settings.max_diff_bytes),
            cache=CacheConfig(
                enabled=settings.cache_enabled,
                ttl=settings.cache_ttl,
                max_entries=settings.cache_max_entries,
            ),
            watcher=WatcherConfig(
                enabled=settings.watcher_enabled,
                debounce=settings.watcher_debounce,
            ),
        )
