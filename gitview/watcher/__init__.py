"""Watcher package for gitview."""

from gitview.watcher.change_watcher import (
    ChangeEvent,
    ChangeWatcher,
    should_ignore,
    watch_targets,
)

__all__ = [
    "ChangeEvent",
    "ChangeWatcher",
    "should_ignore",
    "watch_targets",
]
