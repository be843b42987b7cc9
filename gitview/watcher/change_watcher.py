"""
Change watcher for git-internal state.

Only a handful of directories inside the control directory are watched, never
the working tree, so the watcher stays cheap on repositories with hundreds of
thousands of files:

- .git               HEAD, index, MERGE_HEAD, REBASE_HEAD, FETCH_HEAD, packed-refs
- .git/refs          ref namespace changes
- .git/refs/heads    local branch updates
- .git/refs/tags     tag creation/deletion
- .git/refs/remotes  and one level below it, fetch/pull updates

Bursts of events are coalesced by a debounce timer with random jitter, so
several application instances watching the same repository do not all
re-query git at the same instant.
"""

import asyncio
import logging
import os
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from gitview.exceptions import WatcherException

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.5  # seconds
STOP_JOIN_TIMEOUT = 5.0  # seconds
HEALTH_CHECK_INTERVAL = 1.0  # seconds

# Event types that can reflect a state transition. Open/close-without-write
# events are produced by our own git reads and must never trigger a refresh.
RELEVANT_EVENT_TYPES = frozenset({"created", "modified", "deleted", "moved", "closed"})

IGNORED_NAMES = frozenset({"COMMIT_EDITMSG", "gc.log"})
IGNORED_SUFFIXES = (".lock", ".swp", ".swo", "~")
IGNORED_PREFIXES = (".#", "fsmonitor")


@dataclass(frozen=True)
class ChangeEvent:
    """Repository state may have changed; re-query."""


def should_ignore(path: str) -> bool:
    """Return True for paths whose changes never warrant a refresh."""
    base = os.path.basename(path)
    # Lock files are transient and held mid-operation by git itself.
    if base.endswith(IGNORED_SUFFIXES):
        return True
    if base.startswith(IGNORED_PREFIXES):
        return True
    return base in IGNORED_NAMES


def watch_targets(git_dir: Path) -> List[Path]:
    """
    Return the existing directories to watch for ``git_dir``, without duplicates.

    Remote subdirectories under refs/remotes are discovered here; ones created
    later are added while the watcher runs.
    """
    refs = git_dir / "refs"
    remotes = refs / "remotes"
    candidates = [git_dir, refs, refs / "heads", refs / "tags", remotes]

    if remotes.is_dir():
        candidates.extend(sorted(p for p in remotes.iterdir() if p.is_dir()))

    packed_refs = git_dir / "packed-refs"
    if packed_refs.exists():
        candidates.append(packed_refs.parent)

    targets: List[Path] = []
    seen = set()
    for candidate in candidates:
        if candidate in seen or not candidate.is_dir():
            continue
        seen.add(candidate)
        targets.append(candidate)
    return targets


class _WatchdogHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread to the watcher's loop."""

    def __init__(self, watcher: "ChangeWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._watcher._forward(event)


class ChangeWatcher:
    """
    Emits debounced, jittered ChangeEvents for git-internal state changes.

    Notifications are delivered through a capacity-1 queue: while one event is
    unconsumed, further events are dropped. Events carry no payload.

    Example:
        >>> watcher = ChangeWatcher(service.git_dir)
        >>> watcher.start()
        >>> try:
        ...     async for _ in watcher:
        ...         await refresh()
        ... finally:
        ...     await watcher.stop()
    """

    def __init__(
        self,
        git_dir: Path,
        debounce: float = DEFAULT_DEBOUNCE,
        rng: Optional[random.Random] = None,
        observer_factory: Callable[[], Observer] = Observer,
        health_interval: float = HEALTH_CHECK_INTERVAL,
    ):
        """
        Initialize the watcher.

        Args:
            git_dir: Absolute path of the control directory
            debounce: Quiet period in seconds before a notification fires
            rng: Random source for the jitter (injectable for tests)
            observer_factory: Builds the watchdog observer
            health_interval: Seconds between checks that the observer threads are alive
        """
        self.git_dir = Path(git_dir)
        self.debounce = debounce
        self._rng = rng or random.Random()
        self._observer_factory = observer_factory
        self.health_interval = health_interval

        self._events: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._observer: Optional[Observer] = None
        self._handler = _WatchdogHandler(self)
        self._timer: Optional[asyncio.TimerHandle] = None
        self._supervisor: Optional[asyncio.Task] = None
        self._watched: Dict[Path, object] = {}
        self._stopped = False
        self._terminated = False

        self._emitted = 0
        self._dropped = 0

    @property
    def events(self) -> asyncio.Queue:
        """Capacity-1 notification queue."""
        return self._events

    @property
    def watched_paths(self) -> List[Path]:
        return list(self._watched)

    @property
    def running(self) -> bool:
        return self._observer is not None and not self._closed.is_set()

    @property
    def terminated(self) -> bool:
        """True if the watcher shut itself down; callers fall back to manual refresh."""
        return self._terminated

    def next_delay(self) -> float:
        """Debounce plus a random jitter in [0, debounce / 2]."""
        return self.debounce + self._rng.uniform(0, self.debounce / 2)

    def start(self) -> None:
        """
        Start watching. Must be called from a running event loop.

        Raises:
            WatcherException: If the control directory cannot be watched
        """
        if self._observer is not None:
            raise WatcherException("watcher already started")

        self._loop = asyncio.get_running_loop()
        self._observer = self._observer_factory()

        for target in watch_targets(self.git_dir):
            try:
                self._schedule(target)
            except OSError as e:
                if target == self.git_dir:
                    raise WatcherException(
                        f"cannot watch {self.git_dir}: {e}",
                        details={"path": str(self.git_dir)},
                    ) from e
                logger.debug(f"Skipping watch on {target}: {e}")

        if self.git_dir not in self._watched:
            raise WatcherException(
                f"cannot watch {self.git_dir}: not a directory",
                details={"path": str(self.git_dir)},
            )

        try:
            self._observer.start()
        except OSError as e:
            raise WatcherException(f"cannot start watcher: {e}") from e

        self._supervisor = self._loop.create_task(self._supervise())
        logger.info(f"Watching {len(self._watched)} paths under {self.git_dir}")

    def _schedule(self, path: Path) -> None:
        if path in self._watched:
            return
        self._watched[path] = self._observer.schedule(self._handler, str(path), recursive=False)
        logger.debug(f"Watching {path}")

    def _unschedule(self, path: Path) -> None:
        watch = self._watched.pop(path)
        try:
            self._observer.unschedule(watch)
        except KeyError:
            logger.debug(f"Watch on {path} was already removed")
        logger.debug(f"Stopped watching {path}")

    async def _supervise(self) -> None:
        """Terminate when an observer thread dies, e.g. on an inotify read error."""
        while not self._stopped:
            await asyncio.sleep(self.health_interval)
            failed = self.failed_threads()
            if failed:
                self._terminate(f"watch backend failed ({', '.join(failed)})")
                return

    def failed_threads(self) -> List[str]:
        """Names of observer threads that exited without being stopped."""
        observer = self._observer
        if observer is None:
            return []
        threads = [(os.fsdecode(e.watch.path), e) for e in list(observer.emitters)]
        threads.append(("observer", observer))
        return [
            name for name, thread in threads
            if not thread.is_alive() and not thread.stopped_event.is_set()
        ]

    def _forward(self, event: FileSystemEvent) -> None:
        """Called on the observer thread; hands the event to the loop thread."""
        if self._stopped or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._on_event, event)
        except RuntimeError:
            # Loop already closed.
            pass

    def _on_event(self, event: FileSystemEvent) -> None:
        if self._stopped:
            return

        src = Path(os.fsdecode(event.src_path))

        if event.is_directory:
            if event.event_type == "deleted" and src == self.git_dir:
                self._terminate(f"{self.git_dir} was deleted")
                return
            if event.event_type == "deleted" and src in self._watched:
                # Dropped so the directory is watched again if it is recreated.
                self._unschedule(src)
            elif event.event_type == "created" and self._is_refs_dir(src):
                try:
                    self._schedule(src)
                except OSError as e:
                    logger.debug(f"Cannot watch new directory {src}: {e}")
            elif event.event_type == "modified":
                # Accompanies a child event that is evaluated on its own.
                return

        if event.event_type not in RELEVANT_EVENT_TYPES:
            return

        path = src
        if event.event_type == "moved":
            # Atomic updates rename <name>.lock onto <name>.
            path = Path(os.fsdecode(event.dest_path))
        self.notify(str(path))

    def _is_refs_dir(self, path: Path) -> bool:
        refs = self.git_dir / "refs"
        remotes = refs / "remotes"
        return path in (refs, refs / "heads", refs / "tags", remotes) or path.parent == remotes

    def notify(self, path: str) -> bool:
        """
        Register a filesystem change at ``path``. Must run on the loop thread.

        Returns:
            True if the change reset the debounce timer
        """
        if self._stopped or should_ignore(path):
            return False
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.next_delay(), self._fire)
        return True

    def _fire(self) -> None:
        self._timer = None
        if self._stopped:
            return
        try:
            self._events.put_nowait(ChangeEvent())
            self._emitted += 1
        except asyncio.QueueFull:
            self._dropped += 1
            logger.debug("Change notification dropped; previous one still pending")

    def _terminate(self, reason: str) -> None:
        logger.warning(f"Change watcher terminated: {reason}")
        self._terminated = True
        self._shutdown()
        if self._observer is not None:
            self._observer.stop()

    def _shutdown(self) -> None:
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None and supervisor is not asyncio.current_task():
            supervisor.cancel()
        while not self._events.empty():
            self._events.get_nowait()
        self._closed.set()

    async def stop(self) -> None:
        """Close the OS watches. No event is delivered after this returns."""
        self._shutdown()
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            if observer.is_alive():
                await asyncio.to_thread(observer.join, STOP_JOIN_TIMEOUT)
            logger.info(f"Stopped watching {self.git_dir}")
        self._watched.clear()

    async def wait(self) -> Optional[ChangeEvent]:
        """Wait for the next notification; None once the watcher is stopped or terminated."""
        if self._closed.is_set():
            return None

        get_task = asyncio.ensure_future(self._events.get())
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({get_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (get_task, closed_task):
                if not task.done():
                    task.cancel()

        if self._closed.is_set() or not get_task.done() or get_task.cancelled():
            return None
        return get_task.result()

    def __aiter__(self) -> "ChangeWatcher":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.wait()
        if event is None:
            raise StopAsyncIteration
        return event

    def stats(self) -> dict:
        return {
            "watched_paths": len(self._watched),
            "debounce": self.debounce,
            "emitted": self._emitted,
            "dropped": self._dropped,
            "terminated": self._terminated,
        }
