"""Custom exceptions for git-branch-autopilot"""

from typing import Optional


class GitBranchAutopilotError(Exception):
    """Base exception for all git-branch-autopilot errors."""
    pass


class ConfigError(GitBranchAutopilotError):
    """Exception raised when a configuration file cannot be loaded."""
    pass


class GitOperationError(GitBranchAutopilotError):
    """Exception raised for errors in Git operations."""

    def __init__(
        self,
        operation: str,
        branch: Optional[str] = None,
        message: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.operation = operation
        self.branch = branch
        self.message = message
        self.status = status  # Exit status of the git command, when known

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class GitTimeoutError(GitOperationError):
    """Exception raised when a Git command exceeds the configured timeout.

    A hung Git command leaves the shared checkout in an unknown state, so this
    error ends the run instead of being treated as a per-branch failure.
    """

    def __init__(self, operation: str, timeout: float):
        self.timeout = timeout
        super().__init__(operation, message=f"timed out after {timeout:g}s")


class MergeConflictError(GitOperationError):
    """Exception raised when a merge stops on conflicts."""

    def __init__(self, branch: str, message: Optional[str] = None):
        super().__init__("merge", branch, message or "Merge conflicts")


class DiscoveryError(GitBranchAutopilotError):
    """Exception raised when candidate branches cannot be enumerated."""
    pass


class IssueTrackerError(GitBranchAutopilotError):
    """Exception raised for errors in issue tracker operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"Issue tracker operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)
