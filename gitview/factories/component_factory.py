"""
Component Factory for creating gitview dependencies.
Provides abstract factory pattern for dependency injection and testing.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union, cast

from gitview.config.gitview_config import (
    CacheConfig,
    GitViewConfig,
    RunnerConfig,
    ServiceConfig,
    WatcherConfig,
)
from gitview.git.cached_service import CachedGitService
from gitview.git.service import CLIGitService
from gitview.interfaces.runner import IProcessRunner
from gitview.interfaces.service import IGitService
from gitview.process.runner import ProcessRunner
from gitview.watcher.change_watcher import ChangeWatcher

logger = logging.getLogger(__name__)

# Sentinel value to distinguish between "not provided" and "explicitly None"
_NOT_PROVIDED = object()


@dataclass
class Repository:
    """An opened repository: the service to call and its optional watcher."""

    service: IGitService
    runner: IProcessRunner
    watcher: Optional[ChangeWatcher] = None

    @property
    def root(self) -> Path:
        return self.service.root

    @property
    def git_dir(self) -> Path:
        return self.service.git_dir

    async def close(self) -> None:
        """Stop the watcher, if one was started."""
        if self.watcher is not None:
            await self.watcher.stop()


class ComponentFactory(ABC):
    """Abstract factory for creating gitview components."""

    @abstractmethod
    def create_limiter(self, config: RunnerConfig) -> asyncio.Semaphore:
        """
        Create the process limiter shared by every runner.

        Args:
            config: Runner configuration

        Returns:
            Counting semaphore with ``max_concurrent`` slots
        """
        pass

    @abstractmethod
    def create_runner(self, config: RunnerConfig, limiter: asyncio.Semaphore) -> IProcessRunner:
        """
        Create process runner.

        Args:
            config: Runner configuration
            limiter: Shared limiter

        Returns:
            Configured runner implementing IProcessRunner
        """
        pass

    @abstractmethod
    async def create_service(
        self,
        path: Path,
        config: ServiceConfig,
        runner: IProcessRunner,
    ) -> IGitService:
        """
        Open the repository containing ``path``.

        Args:
            path: Any path inside the working tree
            config: Service configuration
            runner: Runner the service executes git through

        Returns:
            Service implementing IGitService

        Raises:
            NotARepositoryException: If ``path`` is not inside a repository
        """
        pass

    @abstractmethod
    def create_cached_service(self, config: CacheConfig, inner: IGitService) -> IGitService:
        """
        Wrap a service with the read cache.

        Args:
            config: Cache configuration
            inner: Service to decorate

        Returns:
            Caching service implementing IGitService
        """
        pass

    @abstractmethod
    def create_watcher(self, config: WatcherConfig, git_dir: Path) -> Optional[ChangeWatcher]:
        """
        Create change watcher (None if disabled).

        Args:
            config: Watcher configuration
            git_dir: Control directory to watch

        Returns:
            Unstarted ChangeWatcher if enabled, None otherwise
        """
        pass


class DefaultComponentFactory(ComponentFactory):
    """Default factory implementation for production use."""

    def create_limiter(self, config: RunnerConfig) -> asyncio.Semaphore:
        return asyncio.Semaphore(config.max_concurrent)

    def create_runner(self, config: RunnerConfig, limiter: asyncio.Semaphore) -> IProcessRunner:
        """Create production process runner."""
        return ProcessRunner(
            executable=config.executable,
            read_timeout=config.read_timeout,
            write_timeout=config.write_timeout,
            network_timeout=config.network_timeout,
            max_concurrent=config.max_concurrent,
            limiter=limiter,
        )

    async def create_service(
        self,
        path: Path,
        config: ServiceConfig,
        runner: IProcessRunner,
    ) -> IGitService:
        """Create production git service."""
        return await CLIGitService.open(path, runner=runner, max_diff_bytes=config.max_diff_bytes)

    def create_cached_service(self, config: CacheConfig, inner: IGitService) -> IGitService:
        return CachedGitService(
            inner,
            cache_enabled=config.enabled,
            ttl=config.ttl,
            max_entries=config.max_entries,
        )

    def create_watcher(self, config: WatcherConfig, git_dir: Path) -> Optional[ChangeWatcher]:
        """Create change watcher if enabled."""
        if not config.enabled:
            return None
        return ChangeWatcher(git_dir, debounce=config.debounce)


class MockComponentFactory(DefaultComponentFactory):
    """Factory for testing with mock components."""

    # Sentinel type alias for better type hints
    _SentinelOrRunner = Union[object, IProcessRunner, None]
    _SentinelOrService = Union[object, IGitService, None]
    _SentinelOrWatcher = Union[object, ChangeWatcher, None]

    def __init__(
        self,
        mock_runner: _SentinelOrRunner = _NOT_PROVIDED,
        mock_service: _SentinelOrService = _NOT_PROVIDED,
        mock_watcher: _SentinelOrWatcher = _NOT_PROVIDED,
    ):
        """
        Initialize test factory with optional mocks.

        Args:
            mock_runner: Fake IProcessRunner (default creates a real runner)
            mock_service: Fake IGitService used instead of opening a repository
            mock_watcher: Fake watcher (or None to disable, default creates a real watcher)
        """
        self.mock_runner: MockComponentFactory._SentinelOrRunner = mock_runner
        self.mock_service: MockComponentFactory._SentinelOrService = mock_service
        self.mock_watcher: MockComponentFactory._SentinelOrWatcher = mock_watcher

    def create_runner(self, config: RunnerConfig, limiter: asyncio.Semaphore) -> IProcessRunner:
        """Create mock or real process runner."""
        if self.mock_runner is not _NOT_PROVIDED:
            return cast(IProcessRunner, self.mock_runner)
        return super().create_runner(config, limiter)

    async def create_service(
        self,
        path: Path,
        config: ServiceConfig,
        runner: IProcessRunner,
    ) -> IGitService:
        """Return the mock service, or open the repository through ``runner``."""
        if self.mock_service is not _NOT_PROVIDED:
            return cast(IGitService, self.mock_service)
        return await super().create_service(path, config, runner)

    def create_watcher(self, config: WatcherConfig, git_dir: Path) -> Optional[ChangeWatcher]:
        """Create mock or real change watcher."""
        if self.mock_watcher is not _NOT_PROVIDED:
            # Return the mock even if it's explicitly None
            return cast(Optional[ChangeWatcher], self.mock_watcher)
        return super().create_watcher(config, git_dir)


async def open_repository(
    path: Path,
    config: Optional[GitViewConfig] = None,
    factory: Optional[ComponentFactory] = None,
    start_watcher: bool = True,
) -> Repository:
    """
    Open the repository containing ``path`` with the full component stack.

    Builds the shared limiter, the runner, the CLI service wrapped in the
    read cache and, when enabled, the change watcher. Must be awaited on
    the event loop the components will be used from.

    Args:
        path: Any path inside the working tree
        config: Component configuration (default: GitViewConfig())
        factory: Component factory (default: DefaultComponentFactory)
        start_watcher: Start the watcher before returning

    Returns:
        The opened Repository; call ``close()`` when done

    Raises:
        NotARepositoryException: If ``path`` is not inside a repository
        WatcherException: If the watcher cannot be started
    """
    config = config or GitViewConfig()
    factory = factory or DefaultComponentFactory()

    limiter = factory.create_limiter(config.runner)
    runner = factory.create_runner(config.runner, limiter)
    inner = await factory.create_service(Path(path), config.service, runner)
    service = factory.create_cached_service(config.cache, inner)

    watcher = factory.create_watcher(config.watcher, service.git_dir)
    if watcher is not None and start_watcher:
        watcher.start()

    logger.info(
        f"Repository ready: {service.root} "
        f"(cache={'on' if config.cache.enabled else 'off'}, "
        f"watcher={'on' if watcher is not None else 'off'})"
    )
    return Repository(service=service, runner=runner, watcher=watcher)
