"""Tests for the decision engine"""
from datetime import datetime, timedelta, timezone
import pytest

from git_branch_autopilot.models.branch import Branch, FreshnessStatus
from git_branch_autopilot.models.evaluation import DecisionAction, ReadinessReport, VisionScore
from git_branch_autopilot.services.decision_service import DecisionEngine
from git_branch_autopilot.services.readiness_service import MERGE_CONFLICT_ISSUE, MISSING_TESTS_ISSUE

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _branch(ahead=3, age_hours=48.0):
    return Branch('feature/x', ahead, 0, NOW - timedelta(hours=age_hours), frozenset({'a.py'}))


def _readiness(score=9, issues=(), conflict_free=True):
    return ReadinessReport(
        merge_conflict_free=conflict_free,
        quality_issue_count=0,
        test_coverage_adequate=MISSING_TESTS_ISSUE not in issues,
        freshness=FreshnessStatus.CURRENT,
        score=score,
        issues=tuple(issues),
    )


def _decide(mock_config, branch, readiness, vision_score, aggressive=False):
    mock_config['aggressive'] = aggressive
    return DecisionEngine(mock_config).decide(branch, readiness, VisionScore(vision_score), NOW)


class TestDecisionRules:
    """Test each rule and the documented scenarios."""

    def test_fully_merged_is_cleanup(self, mock_config):
        """Test a branch with nothing ahead is cleaned up."""
        decision = _decide(mock_config, _branch(ahead=0), _readiness(), 10)
        assert decision.action == DecisionAction.CLEANUP
        assert decision.rule == 1

    def test_cleanup_takes_precedence_over_issues(self, mock_config):
        """Test rule 1 wins even for a branch with every issue."""
        readiness = _readiness(0, [MERGE_CONFLICT_ISSUE, MISSING_TESTS_ISSUE], conflict_free=False)
        decision = _decide(mock_config, _branch(ahead=0), readiness, 1, aggressive=True)
        assert decision.action == DecisionAction.CLEANUP

    def test_excellent_small_branch_merges(self, mock_config):
        """Test readiness 9, vision 8, three commits ahead merges by rule 2."""
        decision = _decide(mock_config, _branch(ahead=3), _readiness(9), 8)
        assert decision.action == DecisionAction.MERGE
        assert decision.rule == 2
        assert decision.total_score == 17

    def test_excellent_but_large_branch_needs_recency(self, mock_config):
        """Test a large old branch with high scores is not merged by rule 2."""
        decision = _decide(mock_config, _branch(ahead=6, age_hours=48), _readiness(9), 8)
        assert decision.action == DecisionAction.SKIP
        assert decision.rule == 6

    def test_recent_branch_merges(self, mock_config):
        """Test a good, very recent branch merges by rule 3."""
        decision = _decide(mock_config, _branch(ahead=8, age_hours=2), _readiness(7), 5)
        assert decision.action == DecisionAction.MERGE
        assert decision.rule == 3

    def test_recent_boundary(self, mock_config):
        """Test exactly 24 hours still counts as very recent."""
        decision = _decide(mock_config, _branch(ahead=8, age_hours=24), _readiness(7), 5)
        assert decision.rule == 3

    def test_missing_tests_skipped_in_normal_mode(self, mock_config):
        """Test readiness 7 with missing tests, vision 6, 48h old is skipped by rule 5."""
        readiness = _readiness(7, [MISSING_TESTS_ISSUE])
        decision = _decide(mock_config, _branch(age_hours=48), readiness, 6)
        assert decision.action == DecisionAction.SKIP
        assert decision.rule == 5
        assert MISSING_TESTS_ISSUE in decision.reason

    def test_missing_tests_merged_in_aggressive_mode(self, mock_config):
        """Test the same branch merges by rule 4 in aggressive mode."""
        readiness = _readiness(7, [MISSING_TESTS_ISSUE])
        decision = _decide(mock_config, _branch(age_hours=48), readiness, 6, aggressive=True)
        assert decision.action == DecisionAction.MERGE
        assert decision.rule == 4

    def test_aggressive_still_needs_score(self, mock_config):
        readiness = _readiness(4, [MISSING_TESTS_ISSUE])
        decision = _decide(mock_config, _branch(), readiness, 5, aggressive=True)
        assert decision.action == DecisionAction.SKIP

    def test_aggressive_two_issues_skipped(self, mock_config):
        readiness = _readiness(5, [MISSING_TESTS_ISSUE, "7 new TODO/FIXME markers (max 5)"])
        decision = _decide(mock_config, _branch(), readiness, 10, aggressive=True)
        assert decision.action == DecisionAction.SKIP
        assert decision.rule == 5

    def test_conflicts_never_merge(self, mock_config):
        """Test a conflicting branch is skipped in every mode."""
        readiness = _readiness(6, [MERGE_CONFLICT_ISSUE], conflict_free=False)
        for aggressive in (False, True):
            decision = _decide(mock_config, _branch(age_hours=1), readiness, 10, aggressive)
            assert decision.action == DecisionAction.SKIP

    def test_insufficient_score(self, mock_config):
        decision = _decide(mock_config, _branch(), _readiness(9), 2)
        assert decision.rule == 6
        assert "insufficient score (11" in decision.reason

    def test_thresholds_come_from_policy(self, mock_config):
        """Test rule thresholds are read from the configured policy."""
        mock_config['policy'] = {'excellent_score': 18}
        decision = _decide(mock_config, _branch(ahead=3), _readiness(9), 8)
        assert decision.action == DecisionAction.SKIP


class TestDecisionProperties:
    """Test properties that hold across inputs."""

    @pytest.mark.parametrize("ahead", [1, 3, 6, 20])
    @pytest.mark.parametrize("age_hours", [1, 30, 200])
    @pytest.mark.parametrize("readiness_score,issues", [
        (9, ()),
        (7, (MISSING_TESTS_ISSUE,)),
        (5, (MISSING_TESTS_ISSUE, "6 new TODO/FIXME markers (max 5)")),
        (3, ()),
    ])
    @pytest.mark.parametrize("vision_score", [1, 5, 8, 10])
    def test_aggressive_is_monotonic(
        self, mock_config, ahead, age_hours, readiness_score, issues, vision_score
    ):
        """Test a merge in normal mode is also a merge in aggressive mode."""
        branch = _branch(ahead, age_hours)
        readiness = _readiness(readiness_score, issues)
        normal = _decide(dict(mock_config), branch, readiness, vision_score)
        aggressive = _decide(dict(mock_config), branch, readiness, vision_score, aggressive=True)
        if normal.action == DecisionAction.MERGE:
            assert aggressive.action == DecisionAction.MERGE

    def test_decision_carries_scores_and_issues(self, mock_config):
        readiness = _readiness(7, [MISSING_TESTS_ISSUE])
        decision = _decide(mock_config, _branch(), readiness, 6)
        assert decision.readiness_score == 7
        assert decision.vision_score == 6
        assert decision.issues == (MISSING_TESTS_ISSUE,)
