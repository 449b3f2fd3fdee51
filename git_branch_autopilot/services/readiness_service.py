"""Readiness evaluation for candidate branches.

Four independent probes score the structural health of a branch:

- merge-conflict: does a trial merge into the target complete cleanly
- code-quality: how many TODO-style markers and failure-prone calls it adds
- test-coverage: whether new implementation files come with tests
- freshness: how far the branch trails the target

Each probe is a pure function returning a ``ProbeResult``; ``build_report``
sums them. The evaluator only gathers the evidence from Git and never lets a
probe failure escape: a probe that cannot run scores zero and records an issue.
"""

import re
from typing import TYPE_CHECKING, Callable, Sequence, Union

from git_branch_autopilot.config import ScoringPolicy, get_policy
from git_branch_autopilot.exceptions import GitOperationError, GitTimeoutError
from git_branch_autopilot.models.branch import Branch, FreshnessStatus
from git_branch_autopilot.models.evaluation import ProbeResult, ReadinessReport
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config
    from git_branch_autopilot.services.git import GitOperations

logger = get_logger(__name__)

MERGE_CONFLICT_PROBE = "merge-conflict"
CODE_QUALITY_PROBE = "code-quality"
TEST_COVERAGE_PROBE = "test-coverage"
FRESHNESS_PROBE = "freshness"

MERGE_CONFLICT_ISSUE = "merge conflicts"
MISSING_TESTS_ISSUE = "missing tests"


def probe_merge_conflicts(merge_clean: bool, policy: ScoringPolicy) -> ProbeResult:
    if merge_clean:
        return ProbeResult(MERGE_CONFLICT_PROBE, policy.merge_clean_points)
    return ProbeResult(MERGE_CONFLICT_PROBE, 0, (MERGE_CONFLICT_ISSUE,))


def probe_code_quality(added_lines: Sequence[str], policy: ScoringPolicy) -> ProbeResult:
    """Count markers and failure-prone calls in the lines a branch adds."""
    marker = re.compile(policy.todo_marker_pattern)
    risky = [re.compile(pattern) for pattern in policy.failure_prone_patterns]

    todo_count = sum(1 for line in added_lines if marker.search(line))
    risky_count = sum(len(pattern.findall(line)) for line in added_lines for pattern in risky)

    issues = []
    if todo_count > policy.max_todo_markers:
        issues.append(
            f"{todo_count} new TODO/FIXME markers (max {policy.max_todo_markers})"
        )
    if risky_count > policy.max_failure_prone_calls:
        issues.append(
            f"{risky_count} new failure-prone calls (max {policy.max_failure_prone_calls})"
        )

    points = 0 if issues else policy.quality_points
    return ProbeResult(CODE_QUALITY_PROBE, points, tuple(issues))


def is_test_path(path: str, policy: ScoringPolicy) -> bool:
    return any(re.search(pattern, path) for pattern in policy.test_path_patterns)


def is_implementation_path(path: str, policy: ScoringPolicy) -> bool:
    return path.endswith(tuple(policy.implementation_extensions)) and not is_test_path(path, policy)


def probe_test_coverage(added_files: Sequence[str], policy: ScoringPolicy) -> ProbeResult:
    """Small additions pass; larger ones need at least one accompanying test file."""
    impl_count = sum(1 for path in added_files if is_implementation_path(path, policy))
    test_count = sum(1 for path in added_files if is_test_path(path, policy))

    if impl_count <= policy.max_untested_impl_files or test_count > 0:
        return ProbeResult(TEST_COVERAGE_PROBE, policy.test_coverage_points)
    return ProbeResult(TEST_COVERAGE_PROBE, 0, (MISSING_TESTS_ISSUE,))


def freshness_status(commits_behind: int, policy: ScoringPolicy) -> FreshnessStatus:
    if commits_behind <= 0:
        return FreshnessStatus.CURRENT
    if commits_behind <= policy.max_behind_acceptable:
        return FreshnessStatus.BEHIND_ACCEPTABLE
    return FreshnessStatus.STALE_BLOCKING


def probe_freshness(commits_behind: int, policy: ScoringPolicy) -> ProbeResult:
    status = freshness_status(commits_behind, policy)
    if status == FreshnessStatus.CURRENT:
        return ProbeResult(FRESHNESS_PROBE, policy.fresh_current_points)
    if status == FreshnessStatus.BEHIND_ACCEPTABLE:
        # Informational only, no issue
        return ProbeResult(FRESHNESS_PROBE, policy.fresh_behind_points)
    return ProbeResult(
        FRESHNESS_PROBE, 0,
        (f"{commits_behind} commits behind target (max {policy.max_behind_acceptable})",),
    )


def failed_probe(name: str, error: Exception) -> ProbeResult:
    return ProbeResult(name, 0, (f"{name} check failed: {error}",))


def build_report(
    merge: ProbeResult,
    quality: ProbeResult,
    coverage: ProbeResult,
    freshness: ProbeResult,
    status: FreshnessStatus,
) -> ReadinessReport:
    """Combine the four probe results into a readiness report."""
    probes = (merge, quality, coverage, freshness)
    issues = tuple(issue for probe in probes for issue in probe.issues)
    return ReadinessReport(
        merge_conflict_free=merge.passed,
        quality_issue_count=len(quality.issues),
        test_coverage_adequate=coverage.passed,
        freshness=status,
        score=sum(probe.points for probe in probes),
        issues=issues,
        probes=probes,
    )


class ReadinessEvaluator:
    """Gathers probe evidence from Git and builds readiness reports."""

    def __init__(self, config: Union["Config", dict], git_service: "GitOperations"):
        self.config = config
        self.git_service = git_service
        self.target_branch = config.get("target_branch", "main")
        self.policy = get_policy(config)

    def _run_probe(self, name: str, probe: Callable[[], ProbeResult]) -> ProbeResult:
        try:
            return probe()
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.warning(f"{name} probe could not run: {e}")
            return failed_probe(name, e)

    def evaluate(self, branch: Branch) -> ReadinessReport:
        """Run all four probes against the target branch; none is skipped."""
        source, target, policy = branch.name, self.target_branch, self.policy

        merge = self._run_probe(
            MERGE_CONFLICT_PROBE,
            lambda: probe_merge_conflicts(self.git_service.trial_merge(source, target), policy),
        )
        quality = self._run_probe(
            CODE_QUALITY_PROBE,
            lambda: probe_code_quality(self.git_service.added_lines(target, source), policy),
        )
        coverage = self._run_probe(
            TEST_COVERAGE_PROBE,
            lambda: probe_test_coverage(self.git_service.added_files(target, source), policy),
        )
        freshness = probe_freshness(branch.commits_behind, policy)

        report = build_report(
            merge, quality, coverage, freshness,
            freshness_status(branch.commits_behind, policy),
        )
        logger.debug(
            f"Readiness for {source}: {report.score} "
            f"({', '.join(f'{p.name}={p.points}' for p in report.probes)})"
        )
        return report
