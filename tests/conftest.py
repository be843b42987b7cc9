"""
Shared fixtures and fakes for gitview tests.
"""

import os
import shutil
import subprocess
import threading
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pytest

from gitview.exceptions import ExecutionFailedException
from gitview.git.service import CLIGitService
from gitview.interfaces.runner import IProcessRunner
from gitview.process.runner import TimeoutClass

Response = Union[str, Exception, Callable[[List[str]], str]]

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


class FakeRunner(IProcessRunner):
    """
    Scripted IProcessRunner that records every invocation.

    Responses are keyed by an argument prefix; the longest matching prefix
    wins. A response may be output text, an exception to raise, or a callable
    receiving the argument list.
    """

    def __init__(self, responses: Optional[Dict[Tuple[str, ...], Response]] = None):
        self.responses: Dict[Tuple[str, ...], Response] = dict(responses or {})
        self.calls: List[Tuple[List[str], TimeoutClass]] = []

    async def run(
        self,
        args: Sequence[str],
        timeout_class: TimeoutClass = TimeoutClass.READ,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> str:
        args = list(args)
        self.calls.append((args, timeout_class))

        for prefix in sorted(self.responses, key=len, reverse=True):
            if tuple(args[:len(prefix)]) == prefix:
                response = self.responses[prefix]
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response(args)
                return response
        return ""

    def count(self, *prefix: str) -> int:
        """Number of invocations whose arguments start with ``prefix``."""
        return sum(1 for args, _ in self.calls if tuple(args[:len(prefix)]) == prefix)

    def timeout_class_of(self, *prefix: str) -> TimeoutClass:
        for args, timeout_class in self.calls:
            if tuple(args[:len(prefix)]) == prefix:
                return timeout_class
        raise AssertionError(f"no invocation starting with {prefix}")


def failure(*args: str, diagnostic: str = "fatal: boom", return_code: int = 128):
    return ExecutionFailedException(list(args), diagnostic, return_code)


@pytest.fixture
def fake_runner():
    """Scripted runner with no responses (every call returns empty output)."""
    return FakeRunner()


@pytest.fixture
def repo_dirs(tmp_path):
    """A resolved fake repository root with a control directory."""
    root = tmp_path.resolve() / "repo"
    git_dir = root / ".git"
    (git_dir / "refs" / "heads").mkdir(parents=True)
    (git_dir / "refs" / "tags").mkdir()
    return root, git_dir


@pytest.fixture
def service(fake_runner, repo_dirs):
    """CLIGitService bound to the fake runner."""
    root, git_dir = repo_dirs
    return CLIGitService(root=root, git_dir=git_dir, runner=fake_runner)


def git(cwd: Path, *args: str) -> str:
    """Run real git synchronously for test setup."""
    env = {**os.environ, **GIT_IDENTITY, "LC_ALL": "C"}
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


@pytest.fixture
def git_repo(tmp_path, monkeypatch):
    """A real repository with one commit on branch ``main``."""
    for key, value in GIT_IDENTITY.items():
        monkeypatch.setenv(key, value)

    root = tmp_path.resolve() / "work"
    root.mkdir()
    git(root, "init", "-q")
    git(root, "symbolic-ref", "HEAD", "refs/heads/main")
    git(root, "config", "user.name", GIT_IDENTITY["GIT_AUTHOR_NAME"])
    git(root, "config", "user.email", GIT_IDENTITY["GIT_AUTHOR_EMAIL"])
    git(root, "config", "commit.gpgsign", "false")
    (root / "README.md").write_text("# test\n")
    git(root, "add", "README.md")
    git(root, "commit", "-q", "-m", "Initial commit")
    return root


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEmitter:
    """watchdog emitter stand-in; ``crash()`` makes it look like its thread died."""

    def __init__(self, path: str):
        self.watch = SimpleNamespace(path=path)
        self.stopped_event = threading.Event()
        self.alive = False

    def is_alive(self) -> bool:
        return self.alive

    def crash(self) -> None:
        self.alive = False


class FakeObserver:
    """watchdog observer stand-in that records scheduled watches instead of touching the OS."""

    def __init__(self):
        self.scheduled = []
        self.unscheduled = []
        self.emitters = set()
        self.stopped_event = threading.Event()
        self.started = False
        self._by_watch = {}

    def schedule(self, handler, path, recursive=False):
        if not Path(path).is_dir():
            raise FileNotFoundError(path)
        self.scheduled.append((path, recursive))
        watch = object()
        emitter = FakeEmitter(path)
        emitter.alive = self.started
        self._by_watch[watch] = emitter
        self.emitters.add(emitter)
        return watch

    def unschedule(self, watch):
        emitter = self._by_watch.pop(watch)
        emitter.stopped_event.set()
        emitter.alive = False
        self.emitters.discard(emitter)
        self.unscheduled.append(emitter.watch.path)

    def start(self):
        self.started = True
        for emitter in self.emitters:
            emitter.alive = True

    def stop(self):
        self.stopped_event.set()
        for emitter in self.emitters:
            emitter.stopped_event.set()
            emitter.alive = False

    @property
    def stopped(self):
        return self.stopped_event.is_set()

    def is_alive(self):
        return self.started and not self.stopped

    def join(self, timeout=None):
        pass

    def emitter_for(self, path) -> FakeEmitter:
        return next(e for e in self.emitters if e.watch.path == str(path))
