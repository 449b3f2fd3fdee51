"""Tests for MergeExecutor"""
from datetime import datetime, timezone
import pytest

from git_branch_autopilot.exceptions import GitTimeoutError, IssueTrackerError
from git_branch_autopilot.models.branch import Branch, FreshnessStatus
from git_branch_autopilot.models.evaluation import (
    BranchEvaluation,
    Decision,
    DecisionAction,
    ExecutionStatus,
    IssuePriority,
    IssueProvenance,
    ReadinessReport,
    ResolvedIssueRef,
    VisionScore,
)
from git_branch_autopilot.services.merge_executor import MergeExecutor


def _evaluation(name, action, issue_refs=(), ahead=3):
    branch = Branch(name, ahead, 0, datetime.now(timezone.utc), frozenset({'src/a.py'}))
    readiness = ReadinessReport(True, 0, True, FreshnessStatus.CURRENT, 9)
    vision = VisionScore(8, issue_refs=tuple(issue_refs))
    rule = {DecisionAction.CLEANUP: 1, DecisionAction.MERGE: 2, DecisionAction.SKIP: 6}[action]
    decision = Decision(action, rule, "test decision", 9, 8)
    return BranchEvaluation(branch, readiness, vision, decision)


def _verified(number):
    return ResolvedIssueRef(number, IssueProvenance.VERIFIED, priority=IssuePriority.HIGH)


@pytest.fixture
def executor(mock_config, fake_git, mock_github_service):
    return MergeExecutor(mock_config, fake_git, mock_github_service)


class TestMerge:
    """Test merge execution."""

    def test_merge_success(self, executor, fake_git, mock_github_service):
        """Test checkout, pull, merge, push, close issues and delete, in that order."""
        fake_git.add_branch('feature/a')
        evaluation = _evaluation('feature/a', DecisionAction.MERGE, [_verified(42)])

        outcome = executor.execute(evaluation)

        assert outcome.status == ExecutionStatus.MERGED
        assert outcome.removed
        assert outcome.closed_issues == [42]
        operations = [call[0] for call in fake_git.mutating_calls()]
        assert operations == ['checkout', 'pull', 'merge', 'push', 'delete_branch']
        mock_github_service.close_issue.assert_called_once()
        number, comment = mock_github_service.close_issue.call_args[0]
        assert number == 42
        assert 'feature/a' in comment

    def test_merge_message_references_issues(self, executor, fake_git):
        fake_git.add_branch('feature/a')
        executor.execute(_evaluation('feature/a', DecisionAction.MERGE, [_verified(42)]))

        merge_call = next(call for call in fake_git.calls if call[0] == 'merge')
        message = merge_call[2]
        assert message.startswith("Merge branch 'feature/a' into main")
        assert "Resolves #42" in message
        assert "Readiness score: 9/9" in message

    def test_unverified_issues_are_not_closed(self, executor, fake_git, mock_github_service):
        fake_git.add_branch('feature/a')
        refs = [ResolvedIssueRef(7, IssueProvenance.TEXT_ONLY)]
        outcome = executor.execute(_evaluation('feature/a', DecisionAction.MERGE, refs))

        assert outcome.status == ExecutionStatus.MERGED
        mock_github_service.close_issue.assert_not_called()

    def test_merge_conflict_aborts(self, executor, fake_git):
        """Test a failed merge leaves the branch and skips later steps."""
        fake_git.add_branch('feature/a', conflicts=True)
        outcome = executor.execute(_evaluation('feature/a', DecisionAction.MERGE))

        assert outcome.status == ExecutionStatus.FAILED
        assert 'merge aborted' in outcome.message
        operations = [call[0] for call in fake_git.mutating_calls()]
        assert 'push' not in operations
        assert 'delete_branch' not in operations
        assert 'feature/a' in fake_git.branches

    def test_push_failure_resets_target(self, executor, fake_git):
        """Test the target is reset to its pre-merge commit when push fails."""
        fake_git.add_branch('feature/a')
        fake_git.fail('push')
        outcome = executor.execute(_evaluation('feature/a', DecisionAction.MERGE))

        assert outcome.status == ExecutionStatus.FAILED
        assert ('reset_hard', 'sha-main-0') in fake_git.calls
        assert fake_git.shas['main'] == 'sha-main-0'
        assert 'feature/a' in fake_git.branches

    def test_prepare_failure(self, executor, fake_git):
        fake_git.add_branch('feature/a')
        fake_git.fail('pull')
        outcome = executor.execute(_evaluation('feature/a', DecisionAction.MERGE))

        assert outcome.status == ExecutionStatus.FAILED
        assert not any(call[0] == 'merge' for call in fake_git.calls)

    def test_tracker_failure_keeps_merge(self, executor, fake_git, mock_github_service):
        """Test a failure to close an issue is recorded but the merge stands."""
        fake_git.add_branch('feature/a')
        mock_github_service.close_issue.side_effect = IssueTrackerError("close_issue", "#42: 403")
        outcome = executor.execute(
            _evaluation('feature/a', DecisionAction.MERGE, [_verified(42), _verified(43)])
        )

        assert outcome.status == ExecutionStatus.MERGED
        assert outcome.closed_issues == []
        assert len(outcome.tracker_failures) == 2
        assert 'feature/a' in fake_git.deleted

    def test_delete_failure_after_merge(self, executor, fake_git):
        fake_git.add_branch('feature/a')
        fake_git.fail('delete_branch')
        outcome = executor.execute(_evaluation('feature/a', DecisionAction.MERGE))

        assert outcome.status == ExecutionStatus.MERGED
        assert 'branch not deleted' in outcome.message

    def test_timeout_propagates(self, executor, fake_git):
        fake_git.add_branch('feature/a')
        fake_git.fail('merge', error=GitTimeoutError('merge', 60))
        with pytest.raises(GitTimeoutError):
            executor.execute(_evaluation('feature/a', DecisionAction.MERGE))


class TestCleanupAndSkip:
    """Test cleanup and skip execution."""

    def test_cleanup_deletes_branch(self, executor, fake_git):
        fake_git.add_branch('feature/done', ahead=0)
        outcome = executor.execute(_evaluation('feature/done', DecisionAction.CLEANUP, ahead=0))

        assert outcome.status == ExecutionStatus.CLEANED
        assert fake_git.deleted == ['feature/done']

    def test_cleanup_of_checked_out_branch(self, executor, fake_git):
        """Test the target is checked out before deleting the current branch."""
        fake_git.add_branch('feature/done', ahead=0)
        fake_git.head = 'feature/done'

        outcome = executor.execute(_evaluation('feature/done', DecisionAction.CLEANUP, ahead=0))

        assert outcome.status == ExecutionStatus.CLEANED
        assert fake_git.head == 'main'
        operations = [call[0] for call in fake_git.mutating_calls()]
        assert operations == ['checkout', 'delete_branch']

    def test_cleanup_failure(self, executor, fake_git):
        fake_git.add_branch('feature/done', ahead=0)
        fake_git.fail('delete_branch')
        outcome = executor.execute(_evaluation('feature/done', DecisionAction.CLEANUP, ahead=0))

        assert outcome.status == ExecutionStatus.FAILED
        assert not outcome.removed

    def test_skip_does_nothing(self, executor, fake_git):
        fake_git.add_branch('feature/a')
        outcome = executor.execute(_evaluation('feature/a', DecisionAction.SKIP))

        assert outcome.status == ExecutionStatus.SKIPPED
        assert fake_git.mutating_calls() == []


class TestDryRun:
    """Test dry-run mode never mutates."""

    @pytest.mark.parametrize("action", list(DecisionAction))
    def test_no_mutating_calls(self, mock_config, fake_git, mock_github_service, action):
        mock_config['dry_run'] = True
        fake_git.add_branch('feature/a')
        executor = MergeExecutor(mock_config, fake_git, mock_github_service)

        outcome = executor.execute(_evaluation('feature/a', action, [_verified(42)]))

        assert fake_git.mutating_calls() == []
        mock_github_service.close_issue.assert_not_called()
        expected = ExecutionStatus.SKIPPED if action == DecisionAction.SKIP else ExecutionStatus.PLANNED
        assert outcome.status == expected

    def test_planned_merge_names_issues(self, mock_config, fake_git, mock_github_service):
        mock_config['dry_run'] = True
        executor = MergeExecutor(mock_config, fake_git, mock_github_service)
        outcome = executor.execute(_evaluation('feature/a', DecisionAction.MERGE, [_verified(42)]))

        assert outcome.message == "would merge into main and close #42"
        assert outcome.retired
