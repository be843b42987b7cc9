"""Process execution package for gitview."""

from gitview.process.runner import (
    ProcessRunner,
    ProcessOutput,
    TimeoutClass,
    READ_ENV,
)

__all__ = [
    "ProcessRunner",
    "ProcessOutput",
    "TimeoutClass",
    "READ_ENV",
]
