"""Service that carries out merge, cleanup and skip decisions"""

from typing import TYPE_CHECKING, List, Tuple, Union

from git_branch_autopilot.config import get_policy
from git_branch_autopilot.exceptions import (
    GitOperationError,
    GitTimeoutError,
    IssueTrackerError,
)
from git_branch_autopilot.formatters import (
    format_close_comment,
    format_issue_ids,
    format_merge_message,
)
from git_branch_autopilot.models.evaluation import (
    BranchEvaluation,
    DecisionAction,
    ExecutionOutcome,
    ExecutionStatus,
)
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config
    from git_branch_autopilot.services.git import GitHubService, GitOperations

logger = get_logger(__name__)


class MergeExecutor:
    """Applies decisions to the repository.

    In dry-run mode nothing is mutated; every decision is still reported with
    the action that would have been taken. Failures never propagate except for
    Git timeouts: the attempt is rolled back and reported as a failed outcome.
    """

    def __init__(
        self,
        config: Union["Config", dict],
        git_service: "GitOperations",
        github_service: "GitHubService",
    ):
        self.config = config
        self.git_service = git_service
        self.github_service = github_service
        self.dry_run = config.get("dry_run", False)
        self.target_branch = config.get("target_branch", "main")
        self.policy = get_policy(config)

    def execute(self, evaluation: BranchEvaluation) -> ExecutionOutcome:
        action = evaluation.decision.action
        if action == DecisionAction.CLEANUP:
            return self._cleanup(evaluation)
        if action == DecisionAction.MERGE:
            return self._merge(evaluation)
        return self._skip(evaluation)

    def _outcome(self, evaluation: BranchEvaluation, status: ExecutionStatus, message: str):
        return ExecutionOutcome(evaluation.branch.name, evaluation.decision, status, message)

    def _skip(self, evaluation: BranchEvaluation) -> ExecutionOutcome:
        logger.info(f"Skipping {evaluation.branch.name}: {evaluation.decision.reason}")
        return self._outcome(evaluation, ExecutionStatus.SKIPPED, evaluation.decision.reason)

    def _cleanup(self, evaluation: BranchEvaluation) -> ExecutionOutcome:
        name = evaluation.branch.name
        if self.dry_run:
            logger.info(f"Would delete {name} (fully merged)")
            return self._outcome(evaluation, ExecutionStatus.PLANNED, "would delete (fully merged)")

        try:
            if self.git_service.current_ref() == name:
                # Git refuses to delete the checked out branch
                self.git_service.checkout(self.target_branch)
            self.git_service.delete_branch(name)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.error(f"Could not delete {name}: {e}")
            return self._outcome(evaluation, ExecutionStatus.FAILED, f"delete failed: {e}")

        logger.info(f"Deleted {name} (fully merged)")
        return self._outcome(evaluation, ExecutionStatus.CLEANED, "deleted (fully merged)")

    def _merge(self, evaluation: BranchEvaluation) -> ExecutionOutcome:
        branch, decision = evaluation.branch, evaluation.decision
        target = self.target_branch
        verified = evaluation.vision.verified_issues

        if self.dry_run:
            would = f"would merge into {target}"
            if verified:
                would += f" and close {format_issue_ids(verified)}"
            logger.info(f"{branch.name}: {would}")
            return self._outcome(evaluation, ExecutionStatus.PLANNED, would)

        # (a) prepare the target
        try:
            self.git_service.checkout(target)
            self.git_service.pull(target)
            pre_merge = self.git_service.head_sha()
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.error(f"Could not prepare {target} for merging {branch.name}: {e}")
            return self._outcome(
                evaluation, ExecutionStatus.FAILED, f"could not prepare {target}: {e}"
            )

        # (b) merge, aborted by the adapter on failure
        message = format_merge_message(branch, target, decision, verified, self.policy)
        try:
            self.git_service.merge(branch.name, message)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.error(f"Merge of {branch.name} aborted, branch left intact: {e}")
            return self._outcome(evaluation, ExecutionStatus.FAILED, f"merge aborted: {e}")

        # (c) publish, then side effects
        try:
            self.git_service.push(target)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.error(f"Could not push {target}, rolling back merge of {branch.name}: {e}")
            self.git_service.reset_hard(pre_merge)
            return self._outcome(evaluation, ExecutionStatus.FAILED, f"push failed: {e}")

        outcome = self._outcome(evaluation, ExecutionStatus.MERGED, f"merged into {target}")
        outcome.closed_issues, outcome.tracker_failures = self._close_issues(evaluation)

        try:
            self.git_service.delete_branch(branch.name)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.warning(f"Merged {branch.name} but could not delete it: {e}")
            outcome.message += f" (branch not deleted: {e})"

        logger.info(f"Merged {branch.name} into {target}")
        return outcome

    def _close_issues(self, evaluation: BranchEvaluation) -> Tuple[List[int], List[str]]:
        """Close verified issues; failures are reported, the merge stands."""
        closed: List[int] = []
        failures: List[str] = []
        comment = format_close_comment(
            evaluation.branch.name, self.target_branch, evaluation.decision, self.policy
        )
        for ref in evaluation.vision.verified_issues:
            try:
                self.github_service.close_issue(ref.number, comment)
                closed.append(ref.number)
            except IssueTrackerError as e:
                logger.warning(
                    f"Merged {evaluation.branch.name} but issue #{ref.number} is still open: {e}"
                )
                failures.append(f"#{ref.number}: {e}")
        return closed, failures
