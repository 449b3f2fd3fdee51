"""GitHub issue tracker integration service"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

from github import Auth, Github, GithubException, UnknownObjectException

from git_branch_autopilot.exceptions import IssueTrackerError
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from github.Issue import Issue
    from github.Repository import Repository
    from git_branch_autopilot.config import Config

logger = get_logger(__name__)


@dataclass(frozen=True)
class IssueInfo:
    """An issue as listed by the tracker."""
    number: int
    title: str
    labels: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class IssueSnapshot:
    """Open issues fetched once per run and shared read-only by all consumers."""
    issues: Mapping[int, IssueInfo] = field(default_factory=lambda: MappingProxyType({}))
    available: bool = False

    @classmethod
    def from_issues(cls, issues: Iterable[IssueInfo]) -> "IssueSnapshot":
        return cls(MappingProxyType({issue.number: issue for issue in issues}), True)

    @classmethod
    def empty(cls) -> "IssueSnapshot":
        return cls()

    def get(self, number: int) -> Optional[IssueInfo]:
        return self.issues.get(number)

    def __contains__(self, number: object) -> bool:
        return number in self.issues

    def __len__(self) -> int:
        return len(self.issues)


def _to_issue_info(issue: "Issue") -> IssueInfo:
    return IssueInfo(
        number=issue.number,
        title=issue.title,
        labels=tuple(label.name for label in issue.labels),
        created_at=issue.created_at,
    )


class GitHubService:
    """Issue tracker adapter backed by the GitHub API.

    When the remote is not on GitHub or no token is available the service stays
    disabled: listing returns nothing and closing raises ``IssueTrackerError``.
    """

    def __init__(self, repo_path: str, config: Union["Config", dict]):
        """Initialize the service."""
        self.repo_path = repo_path
        self.config = config
        self.verbose = config.get("verbose", False)
        self.debug_mode = config.get("debug", False)
        self.github_token = config.get("github_token") or os.environ.get("GITHUB_TOKEN")
        self.max_issues = config.get("max_issues_to_fetch", 500)
        self.github_repo: Optional[str] = None
        self.github_enabled = False
        self.github: Optional[Github] = None
        self.gh_repo: Optional["Repository"] = None

    def setup_github_api(self, remote_url: str) -> None:
        """Setup GitHub API access."""
        try:
            if "github.com" not in remote_url:
                logger.debug("[GitHub] Not a GitHub repository")
                return

            # Parse GitHub repository from remote URL
            if remote_url.startswith("git@"):
                # Handle SSH URL format (git@github.com:org/repo.git)
                path = remote_url.split("github.com:", 1)[1]
            else:
                # Handle HTTPS URL format (https://github.com/org/repo.git)
                parsed_url = urlparse(remote_url)
                path = parsed_url.path.strip("/")

            if path.endswith(".git"):
                path = path[:-4]

            self.github_repo = path

            if not self.github_token:
                logger.info("[GitHub] No GitHub token found. Issue references will not be verified")
                return

            self.github = Github(auth=Auth.Token(self.github_token))
            self.gh_repo = self.github.get_repo(self.github_repo)
            self.github_enabled = True

            logger.debug(f"[GitHub] Issue tracking enabled for: {path}")

        except GithubException as e:
            logger.warning(f"[GitHub] Failed to setup GitHub API: {e}")
            self.github_enabled = False

    def list_open_issues(self) -> List[IssueInfo]:
        """List open issues (pull requests excluded).

        Raises:
            IssueTrackerError: if the tracker could not be queried
        """
        if not self.github_enabled or self.gh_repo is None:
            return []

        try:
            issues = []
            for issue in self.gh_repo.get_issues(state="open"):
                if issue.pull_request is not None:
                    continue
                issues.append(_to_issue_info(issue))
                if len(issues) >= self.max_issues:
                    break
            logger.debug(f"[GitHub] Fetched {len(issues)} open issues")
            return issues
        except GithubException as e:
            raise IssueTrackerError("list_issues", str(e))

    def fetch_snapshot(self) -> IssueSnapshot:
        """Fetch the open issues once for the whole run.

        An unreachable tracker yields an empty, unavailable snapshot so every
        reference is treated as text-only.
        """
        if not self.github_enabled:
            return IssueSnapshot.empty()
        try:
            return IssueSnapshot.from_issues(self.list_open_issues())
        except IssueTrackerError as e:
            logger.warning(f"[GitHub] {e}. Issue references will not be verified")
            return IssueSnapshot.empty()

    def view_issue(self, number: int) -> Optional[IssueInfo]:
        """Get a single issue, or None if it does not exist."""
        if not self.github_enabled or self.gh_repo is None:
            return None

        try:
            return _to_issue_info(self.gh_repo.get_issue(number))
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise IssueTrackerError("view_issue", f"#{number}: {e}")

    def close_issue(self, number: int, comment: str) -> None:
        """Comment on an issue and close it.

        Raises:
            IssueTrackerError: if the tracker is disabled or the update failed
        """
        if not self.github_enabled or self.gh_repo is None:
            raise IssueTrackerError("close_issue", "GitHub integration is not enabled")

        try:
            issue = self.gh_repo.get_issue(number)
            issue.create_comment(comment)
            issue.edit(state="closed")
            logger.debug(f"[GitHub] Closed issue #{number}")
        except GithubException as e:
            raise IssueTrackerError("close_issue", f"#{number}: {e}")

    def close(self) -> None:
        """Close the GitHub API connection to clean up resources."""
        if self.github:
            try:
                self.github.close()
                logger.debug("[GitHub] Closed GitHub API connection")
            except Exception as e:
                logger.debug(f"[GitHub] Error closing GitHub API connection: {e}")
