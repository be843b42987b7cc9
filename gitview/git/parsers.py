"""
Parsers for git's machine-oriented output.

Every command is invoked with explicit format flags and custom separators, so
parsing never depends on git's human-readable or localized output. Output is
scanned incrementally with ``iter_records`` instead of being split into one
large list up front; malformed records are skipped, never raised.
"""

import logging
import re
from typing import Dict, Iterator, List, Optional

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

logger = logging.getLogger(__name__)

FIELD_SEP = "\x00"
RECORD_SEP = "\x01"

# hash, short hash, author, email, epoch, relative date, subject, body, parents, decoration
LOG_FORMAT = "%H%x00%h%x00%an%x00%ae%x00%at%x00%ar%x00%s%x00%b%x00%P%x00%D"
LOG_RECORD_TERMINATOR = "%x01"
COMMIT_FIELD_COUNT = 10

# HEAD marker, full refname, short hash, upstream, tracking info, subject
BRANCH_FORMAT = (
    "%(HEAD)%00%(refname)%00%(objectname:short)%00"
    "%(upstream:short)%00%(upstream:track)%00%(subject)"
)
BRANCH_FIELD_COUNT = 6

_GRAPH_CHARS = frozenset("*|/\\_ ")
_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")
_STASH_RE = re.compile(r"^stash@\{(\d+)\}: (.*)$")
_STASH_BRANCH_RE = re.compile(r"^(?:WIP on|On) ([^:]+): (.*)$", re.DOTALL)
_STATUS_CODES: Dict[str, StatusCode] = {code.value: code for code in StatusCode}


def log_format_flag() -> str:
    """Return the --format flag understood by parse_log_output."""
    return f"--format={LOG_FORMAT}{LOG_RECORD_TERMINATOR}"


def branch_format_flag() -> str:
    """Return the --format flag understood by parse_branch_output."""
    return f"--format={BRANCH_FORMAT}"


def iter_records(out: str, sep: str) -> Iterator[str]:
    """
    Yield the records of ``out`` delimited by ``sep``.

    Finds the next separator, slices and advances; a trailing separator does
    not produce an empty final record.
    """
    start = 0
    end = len(out)
    step = len(sep)
    while start < end:
        idx = out.find(sep, start)
        if idx < 0:
            yield out[start:]
            return
        yield out[start:idx]
        start = idx + step


# ── Log / commit parsing ────────────────────────────────────────────────────


def parse_log_output(out: str) -> List[Commit]:
    """Parse ``git log`` output produced with log_format_flag()."""
    commits: List[Commit] = []
    for entry in iter_records(out, RECORD_SEP):
        entry = entry.strip()
        if not entry:
            continue
        commit = parse_commit_entry(entry)
        if commit is not None:
            commits.append(commit)
    return commits


def parse_commit_entry(entry: str) -> Optional[Commit]:
    """Decode one fixed-arity commit record, or None if it is malformed."""
    fields = entry.split(FIELD_SEP, COMMIT_FIELD_COUNT - 1)
    if len(fields) < COMMIT_FIELD_COUNT:
        logger.debug(f"Skipping commit record with {len(fields)} fields")
        return None

    (full_hash, short_hash, author, email, epoch,
     rel_date, subject, body, parents, decoration) = fields

    try:
        timestamp = int(epoch.strip())
    except ValueError:
        timestamp = 0

    decoration = decoration.strip()
    return Commit(
        hash=full_hash.strip(),
        short_hash=short_hash.strip(),
        author=author.strip(),
        author_email=email.strip(),
        timestamp=timestamp,
        relative_date=rel_date.strip(),
        subject=subject.strip(),
        body=body.strip(),
        parents=tuple(parents.split()),
        refs=tuple(parse_refs(decoration)) if decoration else (),
    )


def parse_refs(raw: str) -> List[Ref]:
    """Parse a ``%D`` decoration string into typed refs."""
    refs: List[Ref] = []
    for name in iter_records(raw, ", "):
        name = name.strip()
        if not name:
            continue
        if name == "HEAD":
            refs.append(Ref(name=name, type=RefType.HEAD))
        elif name.startswith("HEAD -> "):
            refs.append(Ref(name=name[len("HEAD -> "):], type=RefType.HEAD))
        elif name.startswith("tag: "):
            refs.append(Ref(name=name[len("tag: "):], type=RefType.TAG))
        elif name == "refs/stash":
            refs.append(Ref(name=name, type=RefType.STASH))
        elif "/" in name:
            remote, _, branch = name.partition("/")
            refs.append(Ref(name=branch, type=RefType.REMOTE_BRANCH, remote=remote))
        else:
            refs.append(Ref(name=name, type=RefType.BRANCH))
    return refs


# ── Status parsing ──────────────────────────────────────────────────────────


def parse_status_output(out: str) -> StatusResult:
    """
    Parse ``git status --porcelain=v1 -z``.

    Classification:
    - ``U`` on either side, ``AA`` or ``DD``: conflict only
    - ``??``: untracked only
    - otherwise staged if the index side changed, unstaged if the worktree
      side changed; both is a partially staged file
    """
    result = StatusResult()
    records = iter_records(out, FIELD_SEP)

    for entry in records:
        if len(entry) < 4:
            continue

        staging = _STATUS_CODES.get(entry[0])
        worktree = _STATUS_CODES.get(entry[1])
        if staging is None or worktree is None:
            logger.debug(f"Skipping status record with unknown codes: {entry[:2]!r}")
            continue

        orig_path = ""
        # Renames/copies carry the original path as the next NUL-delimited field.
        if staging in (StatusCode.RENAMED, StatusCode.COPIED) or \
                worktree in (StatusCode.RENAMED, StatusCode.COPIED):
            orig_path = next(records, "")

        status = FileStatus(
            path=entry[3:],
            staging=staging,
            worktree=worktree,
            orig_path=orig_path,
        )

        if staging == StatusCode.UNTRACKED and worktree == StatusCode.UNTRACKED:
            result.untracked.append(status)
            continue

        if _is_conflict(staging, worktree):
            result.conflicts.append(status)
            continue

        if staging not in (StatusCode.UNMODIFIED, StatusCode.UNTRACKED):
            result.staged.append(FileStatus(
                path=status.path,
                staging=staging,
                worktree=worktree,
                orig_path=orig_path,
                is_staged=True,
            ))
        if worktree not in (StatusCode.UNMODIFIED, StatusCode.UNTRACKED):
            result.unstaged.append(status)

    return result


def _is_conflict(staging: StatusCode, worktree: StatusCode) -> bool:
    if StatusCode.UNMERGED in (staging, worktree):
        return True
    if staging == worktree and staging in (StatusCode.ADDED, StatusCode.DELETED):
        return True
    return False


# ── Branch parsing ──────────────────────────────────────────────────────────


def parse_branch_output(out: str) -> List[Branch]:
    """Parse ``git branch -a`` output produced with branch_format_flag()."""
    branches: List[Branch] = []
    for line in iter_records(out, "\n"):
        fields = line.split(FIELD_SEP, BRANCH_FIELD_COUNT - 1)
        if len(fields) < BRANCH_FIELD_COUNT:
            continue
        head, refname, short_hash, upstream, track, subject = fields

        name = refname.strip()
        is_remote = False
        if name.startswith("refs/heads/"):
            name = name[len("refs/heads/"):]
        elif name.startswith("refs/remotes/"):
            name = name[len("refs/remotes/"):]
            is_remote = True
        elif name.startswith("remotes/"):
            name = name[len("remotes/"):]
            is_remote = True

        branch = Branch(
            name=name,
            is_current=head.strip() == "*",
            is_remote=is_remote,
            hash=short_hash.strip(),
            upstream=upstream.strip(),
            subject=subject.strip(),
        )

        track = track.strip()
        if track:
            if "gone" in track:
                branch.upstream_gone = True
            ahead = _AHEAD_RE.search(track)
            behind = _BEHIND_RE.search(track)
            if ahead:
                branch.ahead = int(ahead.group(1))
            if behind:
                branch.behind = int(behind.group(1))

        branches.append(branch)
    return branches


# ── Stash parsing ───────────────────────────────────────────────────────────


def parse_stash_list(out: str) -> List[StashEntry]:
    """Parse ``git stash list`` (``stash@{N}: On <branch>: <message>``)."""
    entries: List[StashEntry] = []
    for line in iter_records(out, "\n"):
        match = _STASH_RE.match(line.rstrip("\r"))
        if not match:
            continue
        index = int(match.group(1))
        rest = match.group(2)

        branch_match = _STASH_BRANCH_RE.match(rest)
        if branch_match:
            entries.append(StashEntry(
                index=index,
                message=branch_match.group(2),
                branch=branch_match.group(1),
            ))
        else:
            entries.append(StashEntry(index=index, message=rest))
    return entries


# ── Remote parsing ──────────────────────────────────────────────────────────


def parse_remote_output(out: str) -> List[Remote]:
    """Parse ``git remote -v``, merging fetch/push lines per remote in first-seen order."""
    remotes: Dict[str, Remote] = {}
    for line in iter_records(out, "\n"):
        fields = line.split()
        if len(fields) < 3:
            continue
        name, url, kind = fields[0], fields[1], fields[2].strip("()")
        remote = remotes.get(name)
        if remote is None:
            remote = remotes[name] = Remote(name=name)
        if kind == "fetch":
            remote.fetch_url = url
        elif kind == "push":
            remote.push_url = url
    return list(remotes.values())


# ── Worktree parsing ────────────────────────────────────────────────────────


def parse_worktree_list(out: str) -> List[Worktree]:
    """Parse ``git worktree list --porcelain`` blocks."""
    worktrees: List[Worktree] = []
    current: Optional[Worktree] = None
    for line in iter_records(out, "\n"):
        if line.startswith("worktree "):
            if current is not None:
                worktrees.append(current)
            current = Worktree(path=line[len("worktree "):])
        elif current is None:
            continue
        elif line.startswith("HEAD "):
            current.head = line[len("HEAD "):]
        elif line.startswith("branch "):
            branch = line[len("branch "):]
            if branch.startswith("refs/heads/"):
                branch = branch[len("refs/heads/"):]
            current.branch = branch
        elif line == "bare":
            current.bare = True
        elif line == "detached":
            current.detached = True
    if current is not None:
        worktrees.append(current)
    return worktrees


# ── Conflict parsing ────────────────────────────────────────────────────────


def parse_path_list(out: str) -> List[str]:
    """Parse newline-separated paths (``git diff --name-only``)."""
    return [line for line in iter_records(out, "\n") if line.strip()]


# ── Graph parsing ───────────────────────────────────────────────────────────


def parse_graph_output(out: str) -> List[GraphEntry]:
    """Parse ``git log --graph`` output produced with log_format_flag()."""
    entries: List[GraphEntry] = []
    payload: List[str] = []
    graph = ""

    def flush() -> None:
        if not payload:
            return
        raw = "\n".join(payload).replace(RECORD_SEP, "").strip()
        payload.clear()
        commit = parse_commit_entry(raw)
        if commit is not None:
            entries.append(GraphEntry(graph=graph, commit=commit))

    for line in iter_records(out, "\n"):
        if not line:
            continue
        if payload and not payload[-1].endswith(RECORD_SEP):
            # The open record has a multi-line body; only its graph columns are drawing.
            payload.append(line[len(graph):])
            continue

        split = find_graph_end(line)
        prefix, content = line[:split], line[split:]

        if FIELD_SEP in content:
            flush()
            graph = prefix
            payload.append(content)
        else:
            flush()
            entries.append(GraphEntry(graph=prefix + content))

    flush()
    return entries


def find_graph_end(line: str) -> int:
    """Return the index where the graph drawing prefix of ``line`` ends."""
    for i, ch in enumerate(line):
        if ch not in _GRAPH_CHARS:
            return i
    return len(line)
