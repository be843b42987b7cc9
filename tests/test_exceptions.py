"""
Tests for the gitview exception hierarchy.
"""

import pytest

from gitview.exceptions import (
    ConfigurationException,
    ExecutionException,
    ExecutionFailedException,
    ExecutionTimeoutException,
    GitViewException,
    NotARepositoryException,
    WatcherException,
)


class TestExceptionHierarchy:
    """Tests for exception inheritance."""

    @pytest.mark.parametrize("exc_class", [
        NotARepositoryException,
        ExecutionException,
        ExecutionTimeoutException,
        ExecutionFailedException,
        WatcherException,
        ConfigurationException,
    ])
    def test_all_derive_from_base(self, exc_class):
        assert issubclass(exc_class, GitViewException)

    def test_execution_errors_share_parent(self):
        assert issubclass(ExecutionTimeoutException, ExecutionException)
        assert issubclass(ExecutionFailedException, ExecutionException)

    def test_error_codes_are_unique(self):
        codes = [
            GitViewException.error_code,
            NotARepositoryException.error_code,
            ExecutionException.error_code,
            ExecutionTimeoutException.error_code,
            ExecutionFailedException.error_code,
            WatcherException.error_code,
            ConfigurationException.error_code,
        ]
        assert len(codes) == len(set(codes))


class TestExecutionFailedException:
    """Tests for non-zero exit errors."""

    def test_message_names_invocation_and_diagnostic(self):
        exc = ExecutionFailedException(
            ["git", "switch", "nope"], "fatal: invalid reference: nope", 128
        )
        assert "git switch nope" in exc.message
        assert "fatal: invalid reference: nope" in exc.message
        assert "exit status 128" in exc.message
        assert str(exc) == exc.message

    def test_attributes(self):
        exc = ExecutionFailedException(["git", "status"], "boom", 1)
        assert exc.args_list == ["git", "status"]
        assert exc.diagnostic == "boom"
        assert exc.return_code == 1
        assert not exc.retryable

    def test_to_dict(self):
        exc = ExecutionFailedException(["git", "status"], "boom", 1)
        data = exc.to_dict()
        assert data["error"] == "COMMAND_FAILED"
        assert data["retryable"] is False
        assert data["details"]["args"] == ["git", "status"]
        assert data["details"]["return_code"] == 1


class TestExecutionTimeoutException:
    """Tests for deadline errors."""

    def test_retryable(self):
        exc = ExecutionTimeoutException(["git", "fetch", "origin"], 120, "network")
        assert exc.retryable
        assert exc.to_dict()["retryable"] is True

    def test_message(self):
        exc = ExecutionTimeoutException(["git", "fetch", "origin"], 120, "network")
        assert "git fetch origin" in exc.message
        assert "120s" in exc.message
        assert "network" in exc.message
        assert exc.timeout_class == "network"
        assert exc.timeout == 120


class TestNotARepositoryException:
    """Tests for repository resolution errors."""

    def test_includes_path_and_diagnostic(self):
        exc = NotARepositoryException("/tmp/x", "fatal: not a git repository")
        assert "/tmp/x" in exc.message
        assert "fatal: not a git repository" in exc.message
        assert exc.path == "/tmp/x"
        assert exc.details["path"] == "/tmp/x"

    def test_without_diagnostic(self):
        exc = NotARepositoryException("/tmp/x")
        assert exc.message == "not a git repository: /tmp/x"


class TestBaseException:
    def test_default_details(self):
        exc = GitViewException("something")
        assert exc.details == {}
        assert exc.to_dict() == {
            "error": "INTERNAL_ERROR",
            "message": "something",
            "retryable": False,
            "details": {},
        }
