"""Git package for gitview.

Provides the typed domain model, output parsers, the CLI-backed service and
its caching decorator.
"""

from gitview.git.models import (
    Branch,
    Commit,
    FileStatus,
    GraphEntry,
    Ref,
    RefType,
    Remote,
    StashEntry,
    StatusCode,
    StatusResult,
    Worktree,
)
from gitview.git.service import CLIGitService
from gitview.git.cached_service import CachedGitService

__all__ = [
    "Branch",
    "Commit",
    "FileStatus",
    "GraphEntry",
    "Ref",
    "RefType",
    "Remote",
    "StashEntry",
    "StatusCode",
    "StatusResult",
    "Worktree",
    "CLIGitService",
    "CachedGitService",
]
