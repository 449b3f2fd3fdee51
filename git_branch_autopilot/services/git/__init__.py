"""Git-related services for git-branch-autopilot."""

from .operations import GitOperations
from .github import GitHubService, IssueInfo, IssueSnapshot

__all__ = [
    "GitOperations",
    "GitHubService",
    "IssueInfo",
    "IssueSnapshot",
]
