"""
Tests for the ChangeWatcher.

Most tests drive the watcher through a fake observer and feed it watchdog
events directly; one class exercises the real watchdog observer.
"""

import asyncio
import random
import threading
import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from gitview.exceptions import WatcherException
from gitview.watcher import ChangeEvent, ChangeWatcher, should_ignore, watch_targets

from conftest import FakeObserver

DEBOUNCE = 0.05


@pytest.fixture
def git_dir(tmp_path):
    git_dir = tmp_path.resolve() / ".git"
    (git_dir / "refs" / "heads").mkdir(parents=True)
    (git_dir / "refs" / "tags").mkdir()
    (git_dir / "HEAD").write_text("ref: refs/heads/main\n")
    return git_dir


def make_watcher(git_dir, debounce=DEBOUNCE, seed=0):
    return ChangeWatcher(
        git_dir,
        debounce=debounce,
        rng=random.Random(seed),
        observer_factory=FakeObserver,
        health_interval=0.01,
    )


class TestIgnoreFilter:
    """Tests for the path ignore list."""

    @pytest.mark.parametrize("path", [
        "/r/.git/index.lock",
        "/r/.git/refs/heads/main.lock",
        "/r/.git/.COMMIT_EDITMSG.swp",
        "/r/.git/x.swo",
        "/r/.git/HEAD~",
        "/r/.git/.#HEAD",
        "/r/.git/COMMIT_EDITMSG",
        "/r/.git/gc.log",
        "/r/.git/fsmonitor--daemon.ipc",
    ])
    def test_ignored(self, path):
        assert should_ignore(path)

    @pytest.mark.parametrize("path", [
        "/r/.git/HEAD",
        "/r/.git/index",
        "/r/.git/MERGE_HEAD",
        "/r/.git/packed-refs",
        "/r/.git/refs/heads/feature/lock-screen",
        "/r/.git/FETCH_HEAD",
    ])
    def test_not_ignored(self, path):
        assert not should_ignore(path)


class TestWatchTargets:
    """Tests for the watched directory set."""

    def test_minimal_set(self, git_dir):
        assert watch_targets(git_dir) == [
            git_dir,
            git_dir / "refs",
            git_dir / "refs" / "heads",
            git_dir / "refs" / "tags",
        ]

    def test_remote_subdirectories_and_packed_refs(self, git_dir):
        (git_dir / "refs" / "remotes" / "upstream").mkdir(parents=True)
        (git_dir / "refs" / "remotes" / "origin").mkdir()
        (git_dir / "packed-refs").write_text("")

        targets = watch_targets(git_dir)

        assert targets[-3:] == [
            git_dir / "refs" / "remotes",
            git_dir / "refs" / "remotes" / "origin",
            git_dir / "refs" / "remotes" / "upstream",
        ]
        # packed-refs lives in the control directory, which is already watched
        assert targets.count(git_dir) == 1

    def test_working_tree_never_watched(self, git_dir):
        (git_dir.parent / "src").mkdir()
        assert all(git_dir in [t, *t.parents] for t in watch_targets(git_dir))


class TestLifecycle:
    """Tests for start and stop."""

    @pytest.mark.asyncio
    async def test_start_schedules_non_recursive_watches(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            observer = watcher._observer
            assert observer.started
            assert all(recursive is False for _, recursive in observer.scheduled)
            assert set(watcher.watched_paths) == set(watch_targets(git_dir))
            assert watcher.running
        finally:
            await watcher.stop()

        assert not watcher.running
        assert watcher.watched_paths == []

    @pytest.mark.asyncio
    async def test_missing_control_directory(self, tmp_path):
        watcher = make_watcher(tmp_path / "nope" / ".git")

        with pytest.raises(WatcherException):
            watcher.start()

    @pytest.mark.asyncio
    async def test_start_twice(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            with pytest.raises(WatcherException):
                watcher.start()
        finally:
            await watcher.stop()

    def test_start_requires_running_loop(self, git_dir):
        watcher = make_watcher(git_dir)
        with pytest.raises(RuntimeError):
            watcher.start()

    @pytest.mark.asyncio
    async def test_no_event_after_stop(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()

        assert watcher.notify(str(git_dir / "HEAD"))
        await watcher.stop()
        await asyncio.sleep(DEBOUNCE * 3)

        assert watcher.events.empty()
        assert await watcher.wait() is None
        assert watcher.notify(str(git_dir / "HEAD")) is False

    @pytest.mark.asyncio
    async def test_stop_ends_iteration(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        received = []

        async def consume():
            async for event in watcher:
                received.append(event)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        await watcher.stop()
        await asyncio.wait_for(consumer, timeout=1.0)

        assert received == []

    @pytest.mark.asyncio
    async def test_stop_discards_pending_event(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        watcher.notify(str(git_dir / "HEAD"))
        await asyncio.sleep(DEBOUNCE * 3)
        assert watcher.events.qsize() == 1

        await watcher.stop()

        assert watcher.events.empty()


class TestDebounce:
    """Tests for coalescing and jitter."""

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_event(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            for i in range(10):
                watcher.notify(str(git_dir / "refs" / "heads" / f"b{i}"))
                await asyncio.sleep(DEBOUNCE / 10)

            event = await asyncio.wait_for(watcher.wait(), timeout=2.0)
            await asyncio.sleep(DEBOUNCE * 3)

            assert isinstance(event, ChangeEvent)
            assert watcher.events.empty()
            assert watcher.stats()["emitted"] == 1
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_event_not_delivered_before_debounce(self, git_dir):
        watcher = make_watcher(git_dir, debounce=0.2)
        watcher.start()
        try:
            watcher.notify(str(git_dir / "HEAD"))
            await asyncio.sleep(0.1)
            assert watcher.events.empty()

            assert await asyncio.wait_for(watcher.wait(), timeout=2.0) == ChangeEvent()
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_ignored_paths_do_not_trigger(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            assert watcher.notify(str(git_dir / "index.lock")) is False
            await asyncio.sleep(DEBOUNCE * 3)
            assert watcher.events.empty()
        finally:
            await watcher.stop()

    def test_delay_within_jitter_range(self, git_dir):
        watcher = make_watcher(git_dir, debounce=0.5)

        delays = [watcher.next_delay() for _ in range(1000)]

        assert all(0.5 <= d <= 0.75 for d in delays)

    def test_jitter_spreads_instances(self, git_dir):
        first = make_watcher(git_dir, debounce=0.5, seed=1)
        second = make_watcher(git_dir, debounce=0.5, seed=2)

        first_delays = [first.next_delay() for _ in range(100)]
        second_delays = [second.next_delay() for _ in range(100)]

        assert first_delays != second_delays
        assert max(first_delays) - min(first_delays) > 0.1

    @pytest.mark.asyncio
    async def test_same_burst_fires_at_different_times(self, git_dir):
        loop = asyncio.get_running_loop()
        first = make_watcher(git_dir, debounce=0.2, seed=1)
        second = make_watcher(git_dir, debounce=0.2, seed=2)
        first.start()
        second.start()

        async def fired_at(watcher):
            assert await watcher.wait() == ChangeEvent()
            return loop.time()

        spreads = []
        try:
            for _ in range(3):
                burst_at = loop.time()
                for watcher in (first, second):
                    watcher.notify(str(git_dir / "HEAD"))

                first_at, second_at = await asyncio.wait_for(
                    asyncio.gather(fired_at(first), fired_at(second)), timeout=2.0
                )

                assert first_at - burst_at >= 0.19
                assert second_at - burst_at >= 0.19
                spreads.append(abs(first_at - second_at))
        finally:
            await first.stop()
            await second.stop()

        assert max(spreads) > 0.04


class TestDelivery:
    """Tests for the capacity-1 notification queue."""

    @pytest.mark.asyncio
    async def test_second_event_dropped_while_first_pending(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            watcher.notify(str(git_dir / "HEAD"))
            await asyncio.sleep(DEBOUNCE * 3)
            watcher.notify(str(git_dir / "index"))
            await asyncio.sleep(DEBOUNCE * 3)

            assert watcher.events.qsize() == 1
            assert watcher.stats()["dropped"] == 1

            await watcher.wait()
            watcher.notify(str(git_dir / "HEAD"))
            assert await asyncio.wait_for(watcher.wait(), timeout=2.0) == ChangeEvent()
        finally:
            await watcher.stop()


class TestEventRouting:
    """Tests for translating watchdog events."""

    @pytest.mark.asyncio
    async def test_file_modification_triggers(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            watcher._on_event(FileModifiedEvent(str(git_dir / "HEAD")))
            assert await asyncio.wait_for(watcher.wait(), timeout=2.0) == ChangeEvent()
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_atomic_rename_uses_destination(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            watcher._on_event(FileCreatedEvent(str(git_dir / "index.lock")))
            watcher._on_event(DirModifiedEvent(str(git_dir)))
            await asyncio.sleep(DEBOUNCE * 3)
            assert watcher.events.empty()

            watcher._on_event(FileMovedEvent(str(git_dir / "index.lock"), str(git_dir / "index")))
            assert await asyncio.wait_for(watcher.wait(), timeout=2.0) == ChangeEvent()
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_new_remote_directory_is_watched(self, git_dir):
        remotes = git_dir / "refs" / "remotes"
        remotes.mkdir()
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            origin = remotes / "origin"
            origin.mkdir()
            watcher._on_event(DirCreatedEvent(str(origin)))

            assert origin in watcher.watched_paths
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_control_directory_deletion_terminates(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()

        watcher._on_event(DirDeletedEvent(str(git_dir)))

        assert watcher.terminated
        assert await watcher.wait() is None
        assert watcher.stats()["terminated"] is True
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_events_from_observer_thread(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            thread = threading.Thread(
                target=watcher._forward,
                args=(FileModifiedEvent(str(git_dir / "refs" / "heads" / "main")),),
            )
            thread.start()
            thread.join()

            assert await asyncio.wait_for(watcher.wait(), timeout=2.0) == ChangeEvent()
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_removed_remote_is_watched_again_when_recreated(self, git_dir):
        origin = git_dir / "refs" / "remotes" / "origin"
        origin.mkdir(parents=True)
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            origin.rmdir()
            watcher._on_event(DirDeletedEvent(str(origin)))

            assert origin not in watcher.watched_paths
            assert watcher._observer.unscheduled == [str(origin)]

            origin.mkdir()
            watcher._on_event(DirCreatedEvent(str(origin)))

            assert origin in watcher.watched_paths
            assert [p for p, _ in watcher._observer.scheduled].count(str(origin)) == 2
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_dead_emitter_terminates(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()

        watcher._observer.emitter_for(git_dir / "refs").crash()
        event = await asyncio.wait_for(watcher.wait(), timeout=2.0)

        assert event is None
        assert watcher.terminated
        assert not watcher.running
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_stopped_emitter_does_not_terminate(self, git_dir):
        watcher = make_watcher(git_dir)
        watcher.start()
        try:
            emitter = watcher._observer.emitter_for(git_dir / "refs" / "tags")
            emitter.stopped_event.set()
            emitter.crash()
            await asyncio.sleep(0.1)

            assert watcher.failed_threads() == []
            assert not watcher.terminated
            assert watcher.running
        finally:
            await watcher.stop()


class TestRealObserver:
    """Tests against the platform watchdog observer."""

    @pytest.mark.asyncio
    async def test_head_change_is_reported(self, git_dir):
        watcher = ChangeWatcher(git_dir, debounce=0.1)
        watcher.start()
        try:
            await asyncio.sleep(0.1)
            (git_dir / "HEAD").write_text("ref: refs/heads/feature\n")

            event = await asyncio.wait_for(watcher.wait(), timeout=5.0)

            assert event == ChangeEvent()
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_lock_files_are_ignored(self, git_dir):
        watcher = ChangeWatcher(git_dir, debounce=0.1)
        watcher.start()
        try:
            await asyncio.sleep(0.1)
            (git_dir / "index.lock").write_text("x")
            (git_dir / "index.lock").unlink()
            await asyncio.sleep(0.5)

            assert watcher.events.empty()
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    @pytest.mark.filterwarnings("ignore::pytest.PytestUnhandledThreadExceptionWarning")
    async def test_backend_read_error_terminates(self, git_dir):
        watcher = ChangeWatcher(git_dir, debounce=0.1, health_interval=0.1)
        watcher.start()

        def failing_read(timeout):
            raise OSError(5, "inotify read failed")

        for emitter in list(watcher._observer.emitters):
            emitter.queue_events = failing_read
        try:
            event = await asyncio.wait_for(watcher.wait(), timeout=5.0)

            assert event is None
            assert watcher.terminated
        finally:
            await watcher.stop()
