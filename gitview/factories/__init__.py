"""Factory pattern implementation for component creation.

This module provides factory classes for wiring the runner, git service,
read cache and change watcher with proper dependency injection and
testability.
"""

from gitview.factories.component_factory import (
    ComponentFactory,
    DefaultComponentFactory,
    MockComponentFactory,
    Repository,
    open_repository,
)

__all__ = [
    "ComponentFactory",
    "DefaultComponentFactory",
    "MockComponentFactory",
    "Repository",
    "open_repository",
]
