"""
Git service facade backed by the git command-line tool.

Every operation is a thin composition of one or two git invocations run
through an IProcessRunner and decoded by the parsers in gitview.git.parsers.
The facade holds no cache and no concurrency policy of its own.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from gitview.exceptions import ExecutionFailedException, NotARepositoryException
from gitview.git import parsers
from gitview.git.models import (
    Branch,
    Commit,
    GraphEntry,
    Remote,
    StashEntry,
    StatusResult,
    Worktree,
)
from gitview.interfaces.runner import IProcessRunner
from gitview.interfaces.service import IGitService
from gitview.process.runner import ProcessRunner, TimeoutClass

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIFF_BYTES = 512 * 1024  # 512 KiB


def format_size(size_bytes: int) -> str:
    """Format a byte count in human-readable form."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.0f} KiB"
    else:
        return f"{size_bytes / 1024 / 1024:.1f} MiB"


def truncate_output(text: str, max_bytes: int) -> str:
    """
    Cap ``text`` at ``max_bytes`` UTF-8 bytes, appending a truncation notice.

    A multi-byte character cut in half at the boundary is dropped.
    """
    if len(text) * 4 <= max_bytes:
        return text
    data = text.encode("utf-8")
    if len(data) <= max_bytes:
        return text
    head = data[:max_bytes].decode("utf-8", errors="ignore")
    return (
        f"{head}\n\n"
        f"... diff truncated: {format_size(len(data))} exceeds the "
        f"{format_size(max_bytes)} display limit ...\n"
    )


def _stash_ref(index: int) -> str:
    return f"stash@{{{index}}}"


class CLIGitService(IGitService):
    """
    IGitService implementation that shells out to git.

    Reads run in the READ timeout class (optional locks disabled), local
    mutations in WRITE and fetch/pull/push in NETWORK.
    """

    def __init__(
        self,
        root: Path,
        git_dir: Path,
        runner: IProcessRunner,
        max_diff_bytes: int = DEFAULT_MAX_DIFF_BYTES,
    ):
        self._root = root
        self._git_dir = git_dir
        self.runner = runner
        self.max_diff_bytes = max_diff_bytes

    @classmethod
    async def open(
        cls,
        path: Path,
        runner: Optional[IProcessRunner] = None,
        max_diff_bytes: int = DEFAULT_MAX_DIFF_BYTES,
    ) -> "CLIGitService":
        """
        Open the repository containing ``path``.

        Raises:
            NotARepositoryException: If the top-level or control directory
                cannot be resolved
        """
        runner = runner or ProcessRunner()
        start = Path(path).resolve()

        try:
            top_level = await runner.run(
                ["rev-parse", "--show-toplevel"], TimeoutClass.READ, cwd=start
            )
        except ExecutionFailedException as e:
            raise NotARepositoryException(str(start), e.diagnostic) from e
        root = Path(top_level.strip())

        try:
            git_dir_out = await runner.run(
                ["rev-parse", "--git-dir"], TimeoutClass.READ, cwd=root
            )
        except ExecutionFailedException as e:
            raise NotARepositoryException(str(root), e.diagnostic) from e
        git_dir = Path(git_dir_out.strip())
        if not git_dir.is_absolute():
            git_dir = root / git_dir

        logger.info(f"Opened repository {root} (git dir: {git_dir})")
        return cls(root=root, git_dir=git_dir, runner=runner, max_diff_bytes=max_diff_bytes)

    # ── helpers ─────────────────────────────────────────────────────────────

    async def _read(self, *args: str) -> str:
        return await self.runner.run(list(args), TimeoutClass.READ, cwd=self._root)

    async def _write(self, *args: str, timeout_class: TimeoutClass = TimeoutClass.WRITE) -> None:
        await self.runner.run(list(args), timeout_class, cwd=self._root)

    def _truncate(self, text: str) -> str:
        return truncate_output(text, self.max_diff_bytes)

    # ── Repository info ─────────────────────────────────────────────────────

    @property
    def root(self) -> Path:
        return self._root

    @property
    def git_dir(self) -> Path:
        return self._git_dir

    async def head(self) -> str:
        try:
            ref = await self._read("symbolic-ref", "--short", "HEAD")
        except ExecutionFailedException as symbolic_error:
            # Detached HEAD: fall back to the abbreviated commit hash.
            try:
                commit_hash = await self._read("rev-parse", "--short", "HEAD")
            except ExecutionFailedException:
                raise symbolic_error
            return commit_hash.strip()
        return ref.strip()

    async def is_clean(self) -> bool:
        out = await self._read("status", "--porcelain=v1", "--untracked-files=no")
        return out.strip() == ""

    async def is_merging(self) -> bool:
        return (self._git_dir / "MERGE_HEAD").exists()

    async def is_rebasing(self) -> bool:
        return any((self._git_dir / sub).is_dir() for sub in ("rebase-merge", "rebase-apply"))

    async def ahead_behind(self) -> Tuple[int, int]:
        try:
            out = await self._read("rev-list", "--left-right", "--count", "HEAD...@{upstream}")
        except ExecutionFailedException:
            return 0, 0  # no upstream
        parts = out.split()
        if len(parts) != 2:
            return 0, 0
        try:
            return int(parts[0]), int(parts[1])
        except ValueError:
            return 0, 0

    async def upstream(self) -> str:
        try:
            out = await self._read("rev-parse", "--abbrev-ref", "@{upstream}")
        except ExecutionFailedException:
            return ""
        return out.strip()

    # ── Status & staging ────────────────────────────────────────────────────

    async def status(self) -> StatusResult:
        out = await self._read("status", "--porcelain=v1", "-z", "--untracked-files=normal")
        return parsers.parse_status_output(out)

    async def stage(self, *paths: str) -> None:
        if paths:
            await self._write("add", "--", *paths)

    async def stage_all(self) -> None:
        await self._write("add", "-A")

    async def unstage(self, *paths: str) -> None:
        if paths:
            await self._write("reset", "-q", "HEAD", "--", *paths)

    async def unstage_all(self) -> None:
        await self._write("reset", "-q", "HEAD")

    async def discard(self, *paths: str) -> None:
        if paths:
            await self._write("checkout", "--", *paths)

    # ── Commits & history ───────────────────────────────────────────────────

    async def commit(self, message: str) -> None:
        await self._write("commit", "-m", message)

    async def commit_amend(self, message: str) -> None:
        await self._write("commit", "--amend", "-m", message)

    async def log(self, limit: int, *args: str) -> List[Commit]:
        out = await self._read(
            "log", f"--max-count={limit}", "--no-color", parsers.log_format_flag(), *args
        )
        return parsers.parse_log_output(out)

    async def log_graph(self, limit: int) -> List[GraphEntry]:
        # --all on repositories with many refs is expensive; the count bound keeps it in check.
        out = await self._read(
            "log", f"--max-count={limit}", "--graph", "--all", "--no-color",
            parsers.log_format_flag(),
        )
        return parsers.parse_graph_output(out)

    async def show(self, commit_hash: str) -> Tuple[Commit, str]:
        commits = await self.log(1, commit_hash)
        if not commits:
            raise ExecutionFailedException(
                ["log", "--max-count=1", commit_hash], f"no commit found for {commit_hash}"
            )
        try:
            patch = await self._read(
                "show", "--format=", "--patch", "--no-color", "--no-ext-diff", commit_hash
            )
        except ExecutionFailedException as e:
            logger.debug(f"Showing patch for {commit_hash} failed: {e.message}")
            return commits[0], ""
        return commits[0], self._truncate(patch)

    # ── Diff ────────────────────────────────────────────────────────────────

    async def diff(self, staged: bool = False, path: str = "") -> str:
        args = ["diff", "--color=never", "--no-ext-diff"]
        if staged:
            args.append("--cached")
        if path:
            args.extend(["--", path])
        return self._truncate(await self._read(*args))

    async def diff_range(self, from_ref: str, to_ref: str) -> str:
        out = await self._read("diff", "--color=never", "--no-ext-diff", f"{from_ref}..{to_ref}")
        return self._truncate(out)

    # ── Branches ────────────────────────────────────────────────────────────

    async def branches(self) -> List[Branch]:
        # Most recently active branches first.
        out = await self._read(
            "branch", "-a", parsers.branch_format_flag(), "--sort=-committerdate"
        )
        return parsers.parse_branch_output(out)

    async def create_branch(self, name: str) -> None:
        await self._write("branch", name)

    async def switch_branch(self, name: str) -> None:
        await self._write("switch", name)

    async def delete_branch(self, name: str, force: bool = False) -> None:
        await self._write("branch", "-D" if force else "-d", name)

    async def merge_branch(self, name: str) -> None:
        await self._write("merge", "--no-edit", name)

    async def rename_branch(self, old_name: str, new_name: str) -> None:
        await self._write("branch", "-m", old_name, new_name)

    # ── Stash ───────────────────────────────────────────────────────────────

    async def stash_list(self) -> List[StashEntry]:
        out = await self._read("stash", "list", "--format=%gd: %gs")
        return parsers.parse_stash_list(out)

    async def stash_save(self, message: str = "") -> None:
        args = ["stash", "push"]
        if message:
            args.extend(["-m", message])
        await self._write(*args)

    async def stash_pop(self, index: int) -> None:
        await self._write("stash", "pop", _stash_ref(index))

    async def stash_apply(self, index: int) -> None:
        await self._write("stash", "apply", _stash_ref(index))

    async def stash_drop(self, index: int) -> None:
        await self._write("stash", "drop", _stash_ref(index))

    async def stash_show(self, index: int) -> str:
        out = await self._read("stash", "show", "-p", "--no-color", _stash_ref(index))
        return self._truncate(out)

    # ── Remotes ─────────────────────────────────────────────────────────────

    async def remotes(self) -> List[Remote]:
        out = await self._read("remote", "-v")
        return parsers.parse_remote_output(out)

    async def fetch(self, remote: str) -> None:
        await self._write("fetch", remote, timeout_class=TimeoutClass.NETWORK)

    async def pull(self, remote: str, branch: str) -> None:
        await self._write("pull", remote, branch, timeout_class=TimeoutClass.NETWORK)

    async def push(self, remote: str, branch: str, force: bool = False) -> None:
        args = ["push", remote, branch]
        if force:
            args.append("--force-with-lease")
        await self._write(*args, timeout_class=TimeoutClass.NETWORK)

    # ── Worktrees ───────────────────────────────────────────────────────────

    async def worktree_list(self) -> List[Worktree]:
        out = await self._read("worktree", "list", "--porcelain")
        return parsers.parse_worktree_list(out)

    async def worktree_add(self, path: str, branch: str = "") -> None:
        args = ["worktree", "add"]
        if branch:
            args.extend(["-b", branch])
        args.append(path)
        await self._write(*args)

    async def worktree_remove(self, path: str) -> None:
        await self._write("worktree", "remove", path)

    # ── Rebase ──────────────────────────────────────────────────────────────

    async def rebase_interactive(self, onto: str) -> None:
        await self._write("rebase", "-i", onto)

    async def rebase_continue(self) -> None:
        await self._write("rebase", "--continue")

    async def rebase_abort(self) -> None:
        await self._write("rebase", "--abort")

    # ── Bisect ──────────────────────────────────────────────────────────────

    async def bisect_start(self, bad: str, good: str) -> None:
        await self._write("bisect", "start", bad, good)

    async def bisect_good(self) -> None:
        await self._write("bisect", "good")

    async def bisect_bad(self) -> None:
        await self._write("bisect", "bad")

    async def bisect_reset(self) -> None:
        await self._write("bisect", "reset")

    async def bisect_log(self) -> str:
        return await self._read("bisect", "log")

    # ── Conflict resolution ─────────────────────────────────────────────────

    async def conflict_files(self) -> List[str]:
        out = await self._read("diff", "--name-only", "--diff-filter=U")
        return parsers.parse_path_list(out)

    async def mark_resolved(self, path: str) -> None:
        await self._write("add", "--", path)
