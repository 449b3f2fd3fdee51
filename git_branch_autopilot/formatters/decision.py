"""Commit message, tracker comment and decision formatting utilities."""

from typing import Optional, Sequence

from git_branch_autopilot.config import ScoringPolicy
from git_branch_autopilot.models.branch import Branch
from git_branch_autopilot.models.evaluation import Decision, OverlapPair, ResolvedIssueRef
from git_branch_autopilot.formatters.date import format_age


def format_scores(decision: Decision, policy: Optional[ScoringPolicy] = None) -> str:
    """
    Format the scores a decision was based on, out of the policy's maxima.

    Example:
        "readiness 9/9, vision 8/10, total 17"
    """
    policy = policy or ScoringPolicy()
    return (
        f"readiness {decision.readiness_score}/{policy.readiness_ceiling}, "
        f"vision {decision.vision_score}/{policy.vision_max}, "
        f"total {decision.total_score}"
    )


def format_issue_ids(refs: Sequence[ResolvedIssueRef]) -> str:
    """Format issue references as a comma separated list of #ids."""
    return ", ".join(f"#{ref.number}" for ref in refs)


def format_merge_message(
    branch: Branch,
    target: str,
    decision: Decision,
    verified_issues: Sequence[ResolvedIssueRef],
    policy: Optional[ScoringPolicy] = None,
) -> str:
    """
    Build the merge commit message for an autonomous merge.

    The subject names the branch; the body records the rationale, both scores,
    the branch metrics and the verified issues the merge resolves.
    """
    policy = policy or ScoringPolicy()
    lines = [
        f"Merge branch '{branch.name}' into {target}",
        "",
        f"Autopilot decision: {decision.reason} (rule {decision.rule})",
        f"Readiness score: {decision.readiness_score}/{policy.readiness_ceiling}",
        f"Vision score: {decision.vision_score}/{policy.vision_max}",
        f"Commits ahead: {branch.commits_ahead}, behind: {branch.commits_behind}",
        f"Files changed: {len(branch.changed_files)}",
    ]
    if verified_issues:
        lines.append("")
        lines.extend(f"Resolves #{ref.number}" for ref in verified_issues)
    return "\n".join(lines)


def format_close_comment(
    branch_name: str, target: str, decision: Decision, policy: Optional[ScoringPolicy] = None
) -> str:
    """Audit comment left on an issue closed by an autonomous merge."""
    return (
        f"Resolved by branch `{branch_name}`, merged into `{target}` by git-branch-autopilot.\n\n"
        f"- Decision: {decision.reason} (rule {decision.rule})\n"
        f"- Scores: {format_scores(decision, policy)}"
    )


def format_consolidation_message(pair: OverlapPair) -> str:
    """Merge commit message for folding a secondary branch into its primary."""
    shared = sorted(pair.shared_files)
    preview = ", ".join(shared[:5])
    if len(shared) > 5:
        preview += f", ... ({len(shared) - 5} more)"
    return (
        f"Consolidate '{pair.secondary.name}' into '{pair.primary.name}'\n\n"
        f"Both branches change {pair.shared_file_count} file(s): {preview}"
    )


def format_decision_line(
    branch: Branch, decision: Decision, policy: Optional[ScoringPolicy] = None
) -> str:
    """
    One-line summary of a decision for logs.

    Example:
        "feature/x: merge (rule 2) - excellent readiness... [readiness 9/9, ...] ahead 3, age 2h"
    """
    return (
        f"{branch.name}: {decision.action.value} (rule {decision.rule}) - {decision.reason} "
        f"[{format_scores(decision, policy)}] ahead {branch.commits_ahead}, "
        f"behind {branch.commits_behind}, age {format_age(branch.age_hours())}"
    )
