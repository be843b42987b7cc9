"""
Cached git service for gitview.
Wraps any IGitService with a short TTL cache for parameterless reads.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from gitview.cache.ttl_cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL, TTLCache
from gitview.exceptions import GitViewException
from gitview.git.models import (
    Branch,
    Commit,
    GraphEntry,
    Remote,
    StashEntry,
    StatusResult,
    Worktree,
)
from gitview.interfaces.service import IGitService

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One fixed key per cached read. Parameterized reads are never cached.
KEY_HEAD = "head"
KEY_IS_CLEAN = "is_clean"
KEY_IS_MERGING = "is_merging"
KEY_IS_REBASING = "is_rebasing"
KEY_AHEAD_BEHIND = "ahead_behind"
KEY_UPSTREAM = "upstream"
KEY_STATUS = "status"
KEY_BRANCHES = "branches"
KEY_STASH_LIST = "stash_list"
KEY_REMOTES = "remotes"
KEY_WORKTREES = "worktrees"
KEY_CONFLICTS = "conflicts"


class CachedGitService(IGitService):
    """
    Git service decorator with read caching.

    A single UI refresh issues many overlapping reads (head, status,
    ahead/behind, ...). Within the TTL each of them reaches git once.

    - Cached reads: head, is_clean, is_merging, is_rebasing, ahead_behind,
      upstream, status, branches, stash_list, remotes, worktree_list,
      conflict_files
    - Failed reads are cached for the same TTL
    - Every successful write clears the whole cache before returning
    - Log, graph, show, diff and stash_show always reach the inner service
    """

    def __init__(
        self,
        inner: IGitService,
        cache_enabled: bool = True,
        ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        cache: Optional[TTLCache] = None,
    ):
        """
        Initialize the cached service.

        Args:
            inner: The service to delegate to
            cache_enabled: If False, every call goes straight to ``inner``
            ttl: Cache TTL in seconds (default: 2)
            max_entries: Entry count that triggers eviction (default: 64)
            cache: Pre-built cache (tests inject one with a fake clock)
        """
        self.inner = inner
        self.cache_enabled = cache_enabled
        self.cache: Optional[TTLCache] = None

        if cache_enabled:
            self.cache = cache if cache is not None else TTLCache(
                ttl_seconds=ttl,
                max_entries=max_entries,
            )
            logger.info(
                f"Initialized read cache with max_entries={self.cache.max_entries}, "
                f"ttl={self.cache.ttl}s"
            )

    async def _cached(self, key: str, load: Callable[[], Awaitable[T]]) -> T:
        """Serve ``key`` from the cache, or load it without holding the cache lock."""
        if self.cache is None:
            return await load()

        lookup = self.cache.lookup(key)
        if lookup.hit:
            logger.debug(f"Cache HIT for {key}")
            if lookup.entry.error is not None:
                # Drop frames left by earlier re-raises of the same instance.
                raise lookup.entry.error.with_traceback(None)
            # Copied so callers cannot mutate the cached value.
            return copy.deepcopy(lookup.entry.value)

        logger.debug(f"Cache MISS for {key}")
        try:
            value = await load()
        except GitViewException as e:
            self.cache.store(key, error=e, generation=lookup.generation)
            raise
        self.cache.store(key, value=copy.deepcopy(value), generation=lookup.generation)
        return value

    async def _write(self, operation: Awaitable[Any]) -> None:
        await operation
        self.invalidate()

    def invalidate(self) -> None:
        """Clear all cache entries."""
        if self.cache is not None:
            count = self.cache.invalidate()
            logger.debug(f"Cache invalidated ({count} entries)")

    def cache_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics, or a disabled marker
        """
        if self.cache is not None:
            return {"enabled": True, **self.cache.stats()}
        return {
            "enabled": False,
            "size": 0,
            "max_entries": 0,
            "hits": 0,
            "misses": 0,
            "hit_rate": 0.0,
        }

    # ── Repository info (cached reads) ──────────────────────────────────────

    @property
    def root(self) -> Path:
        return self.inner.root

    @property
    def git_dir(self) -> Path:
        return self.inner.git_dir

    async def head(self) -> str:
        return await self._cached(KEY_HEAD, self.inner.head)

    async def is_clean(self) -> bool:
        return await self._cached(KEY_IS_CLEAN, self.inner.is_clean)

    async def is_merging(self) -> bool:
        return await self._cached(KEY_IS_MERGING, self.inner.is_merging)

    async def is_rebasing(self) -> bool:
        return await self._cached(KEY_IS_REBASING, self.inner.is_rebasing)

    async def ahead_behind(self) -> Tuple[int, int]:
        return await self._cached(KEY_AHEAD_BEHIND, self.inner.ahead_behind)

    async def upstream(self) -> str:
        return await self._cached(KEY_UPSTREAM, self.inner.upstream)

    # ── Status (cached) and staging (invalidating) ──────────────────────────

    async def status(self) -> StatusResult:
        return await self._cached(KEY_STATUS, self.inner.status)

    async def stage(self, *paths: str) -> None:
        await self._write(self.inner.stage(*paths))

    async def stage_all(self) -> None:
        await self._write(self.inner.stage_all())

    async def unstage(self, *paths: str) -> None:
        await self._write(self.inner.unstage(*paths))

    async def unstage_all(self) -> None:
        await self._write(self.inner.unstage_all())

    async def discard(self, *paths: str) -> None:
        await self._write(self.inner.discard(*paths))

    # ── Commits (invalidating) and history (not cached) ─────────────────────

    async def commit(self, message: str) -> None:
        await self._write(self.inner.commit(message))

    async def commit_amend(self, message: str) -> None:
        await self._write(self.inner.commit_amend(message))

    async def log(self, limit: int, *args: str) -> List[Commit]:
        return await self.inner.log(limit, *args)

    async def log_graph(self, limit: int) -> List[GraphEntry]:
        return await self.inner.log_graph(limit)

    async def show(self, commit_hash: str) -> Tuple[Commit, str]:
        return await self.inner.show(commit_hash)

    # ── Diff (not cached) ───────────────────────────────────────────────────

    async def diff(self, staged: bool = False, path: str = "") -> str:
        return await self.inner.diff(staged, path)

    async def diff_range(self, from_ref: str, to_ref: str) -> str:
        return await self.inner.diff_range(from_ref, to_ref)

    # ── Branches ────────────────────────────────────────────────────────────

    async def branches(self) -> List[Branch]:
        return await self._cached(KEY_BRANCHES, self.inner.branches)

    async def create_branch(self, name: str) -> None:
        await self._write(self.inner.create_branch(name))

    async def switch_branch(self, name: str) -> None:
        await self._write(self.inner.switch_branch(name))

    async def delete_branch(self, name: str, force: bool = False) -> None:
        await self._write(self.inner.delete_branch(name, force))

    async def merge_branch(self, name: str) -> None:
        await self._write(self.inner.merge_branch(name))

    async def rename_branch(self, old_name: str, new_name: str) -> None:
        await self._write(self.inner.rename_branch(old_name, new_name))

    # ── Stash ───────────────────────────────────────────────────────────────

    async def stash_list(self) -> List[StashEntry]:
        return await self._cached(KEY_STASH_LIST, self.inner.stash_list)

    async def stash_save(self, message: str = "") -> None:
        await self._write(self.inner.stash_save(message))

    async def stash_pop(self, index: int) -> None:
        await self._write(self.inner.stash_pop(index))

    async def stash_apply(self, index: int) -> None:
        await self._write(self.inner.stash_apply(index))

    async def stash_drop(self, index: int) -> None:
        await self._write(self.inner.stash_drop(index))

    async def stash_show(self, index: int) -> str:
        return await self.inner.stash_show(index)

    # ── Remotes ─────────────────────────────────────────────────────────────

    async def remotes(self) -> List[Remote]:
        return await self._cached(KEY_REMOTES, self.inner.remotes)

    async def fetch(self, remote: str) -> None:
        await self._write(self.inner.fetch(remote))

    async def pull(self, remote: str, branch: str) -> None:
        await self._write(self.inner.pull(remote, branch))

    async def push(self, remote: str, branch: str, force: bool = False) -> None:
        await self._write(self.inner.push(remote, branch, force))

    # ── Worktrees ───────────────────────────────────────────────────────────

    async def worktree_list(self) -> List[Worktree]:
        return await self._cached(KEY_WORKTREES, self.inner.worktree_list)

    async def worktree_add(self, path: str, branch: str = "") -> None:
        await self._write(self.inner.worktree_add(path, branch))

    async def worktree_remove(self, path: str) -> None:
        await self._write(self.inner.worktree_remove(path))

    # ── Rebase ──────────────────────────────────────────────────────────────

    async def rebase_interactive(self, onto: str) -> None:
        await self._write(self.inner.rebase_interactive(onto))

    async def rebase_continue(self) -> None:
        await self._write(self.inner.rebase_continue())

    async def rebase_abort(self) -> None:
        await self._write(self.inner.rebase_abort())

    # ── Bisect ──────────────────────────────────────────────────────────────

    async def bisect_start(self, bad: str, good: str) -> None:
        await self._write(self.inner.bisect_start(bad, good))

    async def bisect_good(self) -> None:
        await self._write(self.inner.bisect_good())

    async def bisect_bad(self) -> None:
        await self._write(self.inner.bisect_bad())

    async def bisect_reset(self) -> None:
        await self._write(self.inner.bisect_reset())

    async def bisect_log(self) -> str:
        return await self.inner.bisect_log()

    # ── Conflict resolution ─────────────────────────────────────────────────

    async def conflict_files(self) -> List[str]:
        return await self._cached(KEY_CONFLICTS, self.inner.conflict_files)

    async def mark_resolved(self, path: str) -> None:
        await self._write(self.inner.mark_resolved(path))
