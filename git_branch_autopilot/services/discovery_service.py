"""Service for discovering candidate branches"""

from typing import TYPE_CHECKING, Union

from git_branch_autopilot.exceptions import GitOperationError, GitTimeoutError
from git_branch_autopilot.models.branch import Branch, DiscoveryResult
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config
    from git_branch_autopilot.services.git import GitOperations

logger = get_logger(__name__)


class DiscoveryService:
    """Finds the branches under the naming prefix and measures them against the target."""

    def __init__(self, config: Union["Config", dict], git_service: "GitOperations"):
        """Initialize the service."""
        self.config = config
        self.git_service = git_service
        self.target_branch = config.get("target_branch", "main")
        self.branch_prefix = config.get("branch_prefix", "feature/")
        self.max_branches = config.get("max_branches", 50)
        self.protected_branches = config.get("protected_branches", ["main", "master"])

    def discover(self) -> DiscoveryResult:
        """List candidate branch names, newest first, bounded by max_branches.

        Never raises for listing problems: a failed listing comes back as a
        result with ``error`` set so the caller can tell it apart from an empty one.
        """
        try:
            self.git_service.fetch()
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.warning(f"Could not fetch from remote, using local refs: {e}")

        try:
            names = self.git_service.list_branches(self.branch_prefix)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.error(f"Could not list branches: {e}")
            return DiscoveryResult(error=str(e))

        candidates = [
            name for name in names
            if name != self.target_branch and name not in self.protected_branches
        ]

        if len(candidates) > self.max_branches:
            logger.info(
                f"Found {len(candidates)} candidate branches, limiting to {self.max_branches}"
            )
            candidates = candidates[:self.max_branches]

        logger.debug(f"Discovered {len(candidates)} candidate branches: {candidates}")
        return DiscoveryResult(branches=tuple(candidates))

    def load_branch(self, name: str) -> Branch:
        """Measure a branch against the target branch.

        Raises:
            GitOperationError: if the branch cannot be read
        """
        return Branch(
            name=name,
            commits_ahead=self.git_service.count_commits(self.target_branch, name),
            commits_behind=self.git_service.count_commits(name, self.target_branch),
            last_activity=self.git_service.last_commit_date(name),
            changed_files=self.git_service.changed_files(self.target_branch, name),
        )
