"""
Typed domain records produced by the git output parsers.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import List, Optional, Tuple


class StatusCode(str, Enum):
    """Single-character git status indicator (porcelain v1)."""

    UNMODIFIED = " "
    MODIFIED = "M"
    TYPE_CHANGED = "T"
    ADDED = "A"
    DELETED = "D"
    RENAMED = "R"
    COPIED = "C"
    UNMERGED = "U"
    UNTRACKED = "?"
    IGNORED = "!"

    @property
    def label(self) -> str:
        """Human-readable description of the status."""
        return _STATUS_LABELS.get(self, "")

    def __str__(self) -> str:
        return self.value


_STATUS_LABELS = {
    StatusCode.MODIFIED: "Modified",
    StatusCode.TYPE_CHANGED: "Type Changed",
    StatusCode.ADDED: "Added",
    StatusCode.DELETED: "Deleted",
    StatusCode.RENAMED: "Renamed",
    StatusCode.COPIED: "Copied",
    StatusCode.UNMERGED: "Unmerged",
    StatusCode.UNTRACKED: "Untracked",
    StatusCode.IGNORED: "Ignored",
}


@dataclass(frozen=True)
class FileStatus:
    """Status of a single path in the index and the working tree."""
    path: str
    staging: StatusCode
    worktree: StatusCode
    orig_path: str = ""  # renames/copies only
    is_staged: bool = False


@dataclass
class StatusResult:
    """
    Categorised status of the whole repository.

    A path may appear in both ``staged`` and ``unstaged`` (a partially staged
    edit). Conflicted paths appear only in ``conflicts`` and untracked paths
    only in ``untracked``.
    """
    staged: List[FileStatus] = field(default_factory=list)
    unstaged: List[FileStatus] = field(default_factory=list)
    untracked: List[FileStatus] = field(default_factory=list)
    conflicts: List[FileStatus] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.staged) + len(self.unstaged) + len(self.untracked) + len(self.conflicts)

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0


class RefType(Enum):
    """Classification of a decoration ref."""
    HEAD = "head"
    BRANCH = "branch"
    REMOTE_BRANCH = "remote_branch"
    TAG = "tag"
    STASH = "stash"


@dataclass(frozen=True)
class Ref:
    """A named pointer decoded from a commit decoration."""
    name: str
    type: RefType
    remote: str = ""


@dataclass(frozen=True)
class Commit:
    """An immutable commit record. ``hash`` is the identity key."""
    hash: str
    short_hash: str
    author: str
    author_email: str
    timestamp: int
    relative_date: str
    subject: str
    body: str = ""
    parents: Tuple[str, ...] = ()
    refs: Tuple[Ref, ...] = ()

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclass(frozen=True)
class GraphEntry:
    """A commit paired with its ASCII graph prefix; ``commit`` is None for connector lines."""
    graph: str
    commit: Optional[Commit] = None


@dataclass
class Branch:
    """A local or remote branch."""
    name: str
    is_current: bool = False
    is_remote: bool = False
    hash: str = ""
    upstream: str = ""
    ahead: int = 0
    behind: int = 0
    subject: str = ""
    upstream_gone: bool = False


@dataclass(frozen=True)
class StashEntry:
    index: int
    message: str
    branch: str = ""


@dataclass
class Remote:
    name: str
    fetch_url: str = ""
    push_url: str = ""


@dataclass
class Worktree:
    path: str
    head: str = ""
    branch: str = ""
    bare: bool = False
    detached: bool = False
