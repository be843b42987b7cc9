"""
Process runner for external git invocations.
Provides bounded-concurrency execution with per-operation-class timeouts.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from gitview.exceptions import ExecutionFailedException, ExecutionTimeoutException
from gitview.interfaces.runner import IProcessRunner

logger = logging.getLogger(__name__)

# Default limits
DEFAULT_READ_TIMEOUT = 10.0  # reads must be fast; a hang means lock contention
DEFAULT_WRITE_TIMEOUT = 30.0  # index mutation on large trees
DEFAULT_NETWORK_TIMEOUT = 120.0  # server dependent
DEFAULT_MAX_CONCURRENT = 4

# Read invocations never take optional locks, so they are not blocked by a writer.
READ_ENV = {"GIT_OPTIONAL_LOCKS": "0"}
BASE_ENV = {"LC_ALL": "C.UTF-8"}


class TimeoutClass(str, Enum):
    """Deadline tier of an invocation."""
    READ = "read"
    WRITE = "write"
    NETWORK = "network"


@dataclass
class ProcessOutput:
    """Captured output of a finished process."""
    stdout: str
    stderr: str
    return_code: int

    @property
    def success(self) -> bool:
        return self.return_code == 0

    @property
    def diagnostic(self) -> str:
        """Trimmed stderr, falling back to trimmed stdout when stderr is empty."""
        return self.stderr.strip() or self.stdout.strip()


class ProcessRunner(IProcessRunner):
    """
    Runs git as a subprocess.

    Features:
    - Counting limiter caps concurrently running processes; pass the same
      limiter to several runners to share the cap between them
    - One deadline per call, covering both the wait for a slot and the wait
      for the process to exit
    - Slot release on every exit path, including timeout and cancellation
    - stdout and stderr captured separately
    """

    def __init__(
        self,
        executable: str = "git",
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        network_timeout: float = DEFAULT_NETWORK_TIMEOUT,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        limiter: Optional[asyncio.Semaphore] = None,
    ):
        """
        Initialize the process runner.

        Args:
            executable: Program to run (default: git)
            read_timeout: Deadline in seconds for READ invocations
            write_timeout: Deadline in seconds for WRITE invocations
            network_timeout: Deadline in seconds for NETWORK invocations
            max_concurrent: Capacity of the limiter created when none is given
            limiter: Shared limiter; its capacity should equal max_concurrent
        """
        self.executable = executable
        self._timeouts: Dict[TimeoutClass, float] = {
            TimeoutClass.READ: read_timeout,
            TimeoutClass.WRITE: write_timeout,
            TimeoutClass.NETWORK: network_timeout,
        }
        self.max_concurrent = max_concurrent
        self._limiter = limiter if limiter is not None else asyncio.Semaphore(max_concurrent)

        self._in_flight = 0
        self._peak = 0
        self._invocations = 0

    @property
    def limiter(self) -> asyncio.Semaphore:
        return self._limiter

    def timeout_for(self, timeout_class: TimeoutClass) -> float:
        """Return the deadline in seconds for a timeout class."""
        return self._timeouts[timeout_class]

    def build_env(
        self,
        timeout_class: TimeoutClass,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        """Build the process environment for an invocation."""
        env = {**os.environ, **BASE_ENV}
        if timeout_class == TimeoutClass.READ:
            env.update(READ_ENV)
        if overrides:
            env.update(overrides)
        return env

    async def run(
        self,
        args: Sequence[str],
        timeout_class: TimeoutClass = TimeoutClass.READ,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Run git and return its stdout.

        Args:
            args: Arguments after the executable name
            timeout_class: Deadline tier of the invocation
            cwd: Working directory
            env: Environment overrides

        Returns:
            Decoded standard output

        Raises:
            ExecutionTimeoutException: If the deadline elapses first
            ExecutionFailedException: If git exits non-zero or cannot start
        """
        argv = [self.executable, *args]
        timeout = self.timeout_for(timeout_class)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        try:
            await asyncio.wait_for(self._limiter.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out waiting for a process slot: {' '.join(argv)}")
            raise ExecutionTimeoutException(argv, timeout, timeout_class.value) from None

        self._in_flight += 1
        self._invocations += 1
        self._peak = max(self._peak, self._in_flight)
        try:
            remaining = max(deadline - loop.time(), 0.0)
            try:
                output = await self._execute(
                    argv, cwd, self.build_env(timeout_class, env), remaining
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"Command timed out after {timeout:g}s ({timeout_class.value}): "
                    f"{' '.join(argv)}"
                )
                raise ExecutionTimeoutException(argv, timeout, timeout_class.value) from None
        finally:
            self._in_flight -= 1
            self._limiter.release()

        if not output.success:
            logger.debug(f"Command failed with code {output.return_code}: {' '.join(argv)}")
            raise ExecutionFailedException(argv, output.diagnostic, output.return_code)

        return output.stdout

    async def _execute(
        self,
        argv: List[str],
        cwd: Optional[Path],
        env: Mapping[str, str],
        timeout: float,
    ) -> ProcessOutput:
        """
        Spawn the process and wait for it to exit.

        Raises:
            asyncio.TimeoutError: If the process outlives ``timeout``; the
                process is killed and reaped first
            ExecutionFailedException: If the executable cannot be started
        """
        logger.debug(f"Executing: {' '.join(argv)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env),
            )
        except OSError as e:
            raise ExecutionFailedException(argv, f"cannot start {argv[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            await self._kill(process)
            raise

        return ProcessOutput(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            return_code=process.returncode if process.returncode is not None else -1,
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    def stats(self) -> dict:
        """
        Get runner statistics.

        Returns:
            Dictionary with capacity, in-flight count, peak concurrency and
            total invocations
        """
        return {
            "max_concurrent": self.max_concurrent,
            "in_flight": self._in_flight,
            "peak_concurrent": self._peak,
            "invocations": self._invocations,
            "timeouts": {cls.value: seconds for cls, seconds in self._timeouts.items()},
        }
