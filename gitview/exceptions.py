"""
Custom exception hierarchy for gitview.

Provides structured, self-describing errors with stable error codes so that
callers can decide whether a retry makes sense.
"""

from typing import Optional, Sequence


class GitViewException(Exception):
    """Base exception for all gitview errors"""
    error_code: str = "INTERNAL_ERROR"
    retryable: bool = False

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class NotARepositoryException(GitViewException):
    """Repository root or control directory could not be resolved"""
    error_code = "NOT_A_REPOSITORY"

    def __init__(self, path: str, diagnostic: str = ""):
        message = f"not a git repository: {path}"
        if diagnostic:
            message = f"{message}: {diagnostic}"
        super().__init__(message, details={"path": path, "diagnostic": diagnostic})
        self.path = path


class ExecutionException(GitViewException):
    """Command execution errors"""
    error_code = "EXECUTION_ERROR"


class ExecutionTimeoutException(ExecutionException):
    """Deadline exceeded waiting for a process slot or for the process to exit"""
    error_code = "COMMAND_TIMEOUT"
    retryable = True

    def __init__(self, args: Sequence[str], timeout: float, timeout_class: str = ""):
        self.args_list = list(args)
        self.timeout = timeout
        self.timeout_class = timeout_class
        label = f"{timeout_class} " if timeout_class else ""
        super().__init__(
            f"{' '.join(self.args_list)}: timed out after {timeout:g}s ({label}timeout)",
            details={
                "args": self.args_list,
                "timeout": timeout,
                "timeout_class": timeout_class,
            },
        )


class ExecutionFailedException(ExecutionException):
    """The external tool rejected the command (non-zero exit)"""
    error_code = "COMMAND_FAILED"

    def __init__(self, args: Sequence[str], diagnostic: str, return_code: int = -1):
        self.args_list = list(args)
        self.diagnostic = diagnostic
        self.return_code = return_code
        super().__init__(
            f"{' '.join(self.args_list)}: {diagnostic} (exit status {return_code})",
            details={
                "args": self.args_list,
                "diagnostic": diagnostic,
                "return_code": return_code,
            },
        )


class WatcherException(GitViewException):
    """Filesystem watcher errors"""
    error_code = "WATCHER_ERROR"


class ConfigurationException(GitViewException):
    """Invalid configuration values"""
    error_code = "CONFIGURATION_ERROR"
