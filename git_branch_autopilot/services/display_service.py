"""Display and reporting service for autopilot runs"""
from typing import Dict, Iterable, List, Optional, Union, TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from git_branch_autopilot.config import ScoringPolicy, get_policy
from git_branch_autopilot.constants import (
    DECISION_COLUMNS,
    PRIORITY_COLORS,
    REMAINING_COLUMNS,
    STATUS_COLORS,
)
from git_branch_autopilot.formatters import format_age, format_decision_line
from git_branch_autopilot.models.evaluation import (
    BranchEvaluation,
    ExecutionOutcome,
    ExecutionStatus,
    IssuePriority,
    RemainingBranch,
    RunReport,
)
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config

console = Console()
logger = get_logger(__name__)

_PRIORITY_ORDER = {
    IssuePriority.HIGH.value: 0,
    IssuePriority.MEDIUM.value: 1,
    IssuePriority.LOW.value: 2,
}


def remaining_priority(total_score: int, issue_count: int, policy: ScoringPolicy) -> str:
    """Heuristic follow-up priority of a branch that was left in place."""
    if total_score >= policy.high_priority_score and issue_count <= 1:
        return IssuePriority.HIGH.value
    if total_score >= policy.medium_priority_score:
        return IssuePriority.MEDIUM.value
    return IssuePriority.LOW.value


def _rationale(evaluation: BranchEvaluation, outcome: Optional[ExecutionOutcome]) -> str:
    decision = evaluation.decision
    if outcome is not None and outcome.status == ExecutionStatus.FAILED:
        return f"{decision.action.value} failed: {outcome.message}"
    if decision.issues:
        return "fix: " + "; ".join(decision.issues)
    return f"total {decision.total_score} below merge threshold"


def prioritize_remaining(
    evaluations: Iterable[BranchEvaluation],
    outcomes: Iterable[ExecutionOutcome],
    absorbed: Iterable[str],
    policy: ScoringPolicy,
    unevaluated: Optional[Dict[str, str]] = None,
) -> List[RemainingBranch]:
    """Rank the branches still open after the run.

    Branches that were (or in a dry run would be) merged, cleaned up or folded
    into another branch are left out. Branches that could not be evaluated are ranked LOW.
    """
    by_branch = {outcome.branch: outcome for outcome in outcomes}
    gone = set(absorbed) | {name for name, o in by_branch.items() if o.retired}

    remaining = []
    for evaluation in evaluations:
        name = evaluation.branch.name
        if name in gone:
            continue
        decision = evaluation.decision
        remaining.append(RemainingBranch(
            name=name,
            priority=remaining_priority(decision.total_score, len(decision.issues), policy),
            total_score=decision.total_score,
            rationale=_rationale(evaluation, by_branch.get(name)),
        ))

    for name, error in (unevaluated or {}).items():
        remaining.append(
            RemainingBranch(name, IssuePriority.LOW.value, 0, f"could not be evaluated: {error}")
        )

    remaining.sort(key=lambda r: (_PRIORITY_ORDER[r.priority], -r.total_score, r.name))
    return remaining


class DisplayService:
    def __init__(self, config: Union["Config", dict], quiet: bool = False):
        self.config = config
        self.verbose = config.get("verbose", False)
        self.debug_mode = config.get("debug", False)
        self.dry_run = config.get("dry_run", False)
        self.policy = get_policy(config)
        self.quiet = quiet

    def _print(self, *args, **kwargs) -> None:
        if not self.quiet:
            console.print(*args, **kwargs)

    def show_decision(self, evaluation: BranchEvaluation, outcome: ExecutionOutcome) -> None:
        """Log and print one branch as soon as it has been handled."""
        line = format_decision_line(evaluation.branch, evaluation.decision, self.policy)
        logger.info(line)
        style = STATUS_COLORS.get(outcome.status.value, "")
        self._print(f"[{style}]{outcome.status.value:>8}[/{style}] {line}")
        if evaluation.vision.unverified_issues and self.verbose:
            refs = ", ".join(f"#{ref.number}" for ref in evaluation.vision.unverified_issues)
            self._print(f"         [dim]unverified issue references: {refs}[/dim]")

    def display_decision_table(self, report: RunReport) -> None:
        """Table of every evaluated branch and what happened to it."""
        table = Table(title="Branch decisions" + (" (dry run)" if report.dry_run else ""))
        for col in DECISION_COLUMNS:
            table.add_column(col.label)

        outcomes = {outcome.branch: outcome for outcome in report.outcomes}
        for evaluation in report.evaluations:
            branch, decision = evaluation.branch, evaluation.decision
            outcome = outcomes.get(branch.name)
            status = outcome.status.value if outcome else ""
            table.add_row(
                branch.name,
                decision.action.value,
                str(decision.rule),
                f"{decision.readiness_score}/{self.policy.readiness_ceiling}",
                f"{decision.vision_score}/{self.policy.vision_max}",
                str(branch.commits_ahead),
                str(branch.commits_behind),
                format_age(branch.age_hours()),
                outcome.message if outcome else "",
                style=STATUS_COLORS.get(status),
            )

        self._print(table)

    def display_consolidations(self, report: RunReport) -> None:
        if not report.consolidations:
            return
        self._print("\nConsolidation:")
        for outcome in report.consolidations:
            style = STATUS_COLORS.get(outcome.status.value, "green")
            self._print(f"  [{style}]{outcome.status.value}[/{style}] {outcome.message}")

    def display_summary(self, report: RunReport) -> None:
        """Final counts and resolved issues."""
        label = "Summary (dry run)" if report.dry_run else "Summary"
        merged = "Would merge" if report.dry_run else "Merged"
        self._print(f"\n{label}:")
        self._print(f"{merged}: {report.merged_count} (cleaned up: {report.cleaned_count})")
        self._print(f"Skipped: {report.skipped_count}")
        self._print(f"Failed: {report.failed_count}")
        self._print(f"Consolidated: {report.consolidated_count}")

        issues = report.issues_resolved
        if issues:
            self._print("Issues resolved: " + ", ".join(f"#{n}" for n in issues))
        if report.interrupted:
            self._print("[yellow]Run interrupted before all branches were handled[/yellow]")

        logger.info(
            f"Run finished: merged={report.merged_count} cleaned={report.cleaned_count} "
            f"skipped={report.skipped_count} failed={report.failed_count} "
            f"consolidated={report.consolidated_count} issues={issues}"
        )

    def display_remaining(self, remaining: List[RemainingBranch]) -> None:
        if not remaining:
            return
        table = Table(title="Remaining branches")
        for col in REMAINING_COLUMNS:
            table.add_column(col.label)
        for branch in remaining:
            table.add_row(
                branch.priority,
                branch.name,
                str(branch.total_score),
                branch.rationale,
                style=PRIORITY_COLORS.get(branch.priority),
            )
        self._print()
        self._print(table)

    def display_report(self, report: RunReport) -> None:
        if report.discovery_error:
            self._print(f"[red]Could not discover branches: {report.discovery_error}[/red]")
            return
        if not report.evaluations and not report.evaluation_errors:
            self._print("[green]No candidate branches found[/green]")
            return
        if self.verbose:
            self.display_decision_table(report)
        self.display_consolidations(report)
        self.display_summary(report)
        self.display_remaining(report.remaining)
