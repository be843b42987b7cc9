"""
Runner interface for external git invocations.

This module defines the IProcessRunner interface that abstracts process
execution, enabling a real subprocess-backed implementation in production and
counting or scripted fakes in tests.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Mapping, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from gitview.process.runner import TimeoutClass


class IProcessRunner(ABC):
    """
    Abstract interface for running the external git executable.

    Implementations:
        - ProcessRunner: asyncio subprocess execution with a shared counting
          limiter and per-class timeouts

    Example:
        ```python
        class CannedRunner(IProcessRunner):
            def __init__(self, outputs: dict):
                self.outputs = outputs

            async def run(self, args, timeout_class=TimeoutClass.READ, cwd=None, env=None):
                return self.outputs[tuple(args)]
        ```
    """

    @abstractmethod
    async def run(
        self,
        args: Sequence[str],
        timeout_class: "TimeoutClass",
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Run git with ``args`` and return its standard output.

        Args:
            args: Arguments after the executable name (e.g. ["status", "-z"])
            timeout_class: READ, WRITE or NETWORK; selects the deadline and,
                for READ, disables optional locks
            cwd: Working directory for the invocation
            env: Environment overrides merged over the inherited environment

        Returns:
            Decoded standard output

        Raises:
            ExecutionTimeoutException: Deadline exceeded waiting for a slot or
                for the process to exit
            ExecutionFailedException: git exited non-zero or could not be started
        """
        pass
