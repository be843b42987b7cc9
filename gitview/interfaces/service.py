"""
Service interface for repository operations.

IGitService is the single contract consumed by user interfaces and other
orchestrators. The CLI-backed service, the caching decorator and test fakes
all implement it, so any layer can be substituted without touching callers.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from gitview.git.models import (
        Branch,
        Commit,
        GraphEntry,
        Remote,
        StashEntry,
        StatusResult,
        Worktree,
    )


class IGitService(ABC):
    """
    Abstract interface with one coroutine per repository concept.

    Implementations:
        - CLIGitService: shells out to git through an IProcessRunner
        - CachedGitService: TTL cache around another IGitService
    """

    # ── Repository info ──────────────────────────────────────────────

    @property
    @abstractmethod
    def root(self) -> Path:
        """Absolute path of the repository's top-level directory."""
        pass

    @property
    @abstractmethod
    def git_dir(self) -> Path:
        """Absolute path of the control (.git) directory."""
        pass

    @abstractmethod
    async def head(self) -> str:
        """Current branch name, or the short hash when HEAD is detached."""
        pass

    @abstractmethod
    async def is_clean(self) -> bool:
        """True when tracked files have no staged or unstaged changes."""
        pass

    @abstractmethod
    async def is_merging(self) -> bool:
        pass

    @abstractmethod
    async def is_rebasing(self) -> bool:
        pass

    @abstractmethod
    async def ahead_behind(self) -> Tuple[int, int]:
        """Commits ahead of and behind the upstream; (0, 0) without an upstream."""
        pass

    @abstractmethod
    async def upstream(self) -> str:
        """Upstream tracking branch name, or "" when none is configured."""
        pass

    # ── Status & staging ─────────────────────────────────────────────

    @abstractmethod
    async def status(self) -> "StatusResult":
        pass

    @abstractmethod
    async def stage(self, *paths: str) -> None:
        pass

    @abstractmethod
    async def stage_all(self) -> None:
        pass

    @abstractmethod
    async def unstage(self, *paths: str) -> None:
        pass

    @abstractmethod
    async def unstage_all(self) -> None:
        pass

    @abstractmethod
    async def discard(self, *paths: str) -> None:
        pass

    # ── Commits & history ────────────────────────────────────────────

    @abstractmethod
    async def commit(self, message: str) -> None:
        pass

    @abstractmethod
    async def commit_amend(self, message: str) -> None:
        pass

    @abstractmethod
    async def log(self, limit: int, *args: str) -> List["Commit"]:
        """At most ``limit`` commits; extra ``args`` are passed to git log."""
        pass

    @abstractmethod
    async def log_graph(self, limit: int) -> List["GraphEntry"]:
        pass

    @abstractmethod
    async def show(self, commit_hash: str) -> Tuple["Commit", str]:
        """Commit metadata and its patch."""
        pass

    # ── Diff ─────────────────────────────────────────────────────────

    @abstractmethod
    async def diff(self, staged: bool = False, path: str = "") -> str:
        pass

    @abstractmethod
    async def diff_range(self, from_ref: str, to_ref: str) -> str:
        pass

    # ── Branches ─────────────────────────────────────────────────────

    @abstractmethod
    async def branches(self) -> List["Branch"]:
        pass

    @abstractmethod
    async def create_branch(self, name: str) -> None:
        pass

    @abstractmethod
    async def switch_branch(self, name: str) -> None:
        pass

    @abstractmethod
    async def delete_branch(self, name: str, force: bool = False) -> None:
        pass

    @abstractmethod
    async def merge_branch(self, name: str) -> None:
        pass

    @abstractmethod
    async def rename_branch(self, old_name: str, new_name: str) -> None:
        pass

    # ── Stash ────────────────────────────────────────────────────────

    @abstractmethod
    async def stash_list(self) -> List["StashEntry"]:
        pass

    @abstractmethod
    async def stash_save(self, message: str = "") -> None:
        pass

    @abstractmethod
    async def stash_pop(self, index: int) -> None:
        pass

    @abstractmethod
    async def stash_apply(self, index: int) -> None:
        pass

    @abstractmethod
    async def stash_drop(self, index: int) -> None:
        pass

    @abstractmethod
    async def stash_show(self, index: int) -> str:
        pass

    # ── Remotes ──────────────────────────────────────────────────────

    @abstractmethod
    async def remotes(self) -> List["Remote"]:
        pass

    @abstractmethod
    async def fetch(self, remote: str) -> None:
        pass

    @abstractmethod
    async def pull(self, remote: str, branch: str) -> None:
        pass

    @abstractmethod
    async def push(self, remote: str, branch: str, force: bool = False) -> None:
        pass

    # ── Worktrees ────────────────────────────────────────────────────

    @abstractmethod
    async def worktree_list(self) -> List["Worktree"]:
        pass

    @abstractmethod
    async def worktree_add(self, path: str, branch: str = "") -> None:
        pass

    @abstractmethod
    async def worktree_remove(self, path: str) -> None:
        pass

    # ── Rebase ───────────────────────────────────────────────────────

    @abstractmethod
    async def rebase_interactive(self, onto: str) -> None:
        pass

    @abstractmethod
    async def rebase_continue(self) -> None:
        pass

    @abstractmethod
    async def rebase_abort(self) -> None:
        pass

    # ── Bisect ───────────────────────────────────────────────────────

    @abstractmethod
    async def bisect_start(self, bad: str, good: str) -> None:
        pass

    @abstractmethod
    async def bisect_good(self) -> None:
        pass

    @abstractmethod
    async def bisect_bad(self) -> None:
        pass

    @abstractmethod
    async def bisect_reset(self) -> None:
        pass

    @abstractmethod
    async def bisect_log(self) -> str:
        pass

    # ── Conflict resolution ──────────────────────────────────────────

    @abstractmethod
    async def conflict_files(self) -> List[str]:
        pass

    @abstractmethod
    async def mark_resolved(self, path: str) -> None:
        pass
