"""Merge decision engine"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional, Union

from git_branch_autopilot.config import get_policy
from git_branch_autopilot.models.branch import Branch
from git_branch_autopilot.models.evaluation import (
    Decision,
    DecisionAction,
    ReadinessReport,
    VisionScore,
)
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config

logger = get_logger(__name__)


class DecisionEngine:
    """Turns scores into a cleanup, merge or skip decision.

    Rules are checked in a fixed order and the first match wins:

    1. nothing ahead of the target: cleanup
    2. no issues, high total, small scope: merge
    3. no issues, good total, very recent: merge
    4. aggressive mode, acceptable total, at most one minor issue: merge
    5. any issues: skip
    6. otherwise: skip for insufficient score

    Aggressive mode only relaxes the issue floor of rule 4, never the score
    floor, and never admits a branch whose trial merge conflicted.
    """

    def __init__(self, config: Union["Config", dict]):
        self.config = config
        self.aggressive = config.get("aggressive", False)
        self.policy = get_policy(config)

    def decide(
        self,
        branch: Branch,
        readiness: ReadinessReport,
        vision: VisionScore,
        now: Optional[datetime] = None,
    ) -> Decision:
        policy = self.policy
        issues = readiness.issues
        total = readiness.score + vision.score

        def decision(action: DecisionAction, rule: int, reason: str) -> Decision:
            return Decision(action, rule, reason, readiness.score, vision.score, issues)

        if branch.commits_ahead == 0:
            return decision(DecisionAction.CLEANUP, 1, "fully merged")

        if (
            not issues
            and total >= policy.excellent_score
            and branch.commits_ahead <= policy.excellent_max_commits
        ):
            return decision(
                DecisionAction.MERGE, 2, "excellent readiness, high alignment, small scope"
            )

        if (
            not issues
            and total >= policy.recent_score
            and branch.age_hours(now) <= policy.recent_max_age_hours
        ):
            return decision(DecisionAction.MERGE, 3, "no issues, good scores, very recent")

        if (
            self.aggressive
            and readiness.merge_conflict_free
            and total >= policy.aggressive_score
            and len(issues) <= policy.aggressive_max_issues
        ):
            return decision(
                DecisionAction.MERGE, 4, "aggressive: acceptable scores, minor issues"
            )

        if issues:
            return decision(DecisionAction.SKIP, 5, f"readiness issues: {'; '.join(issues)}")

        return decision(
            DecisionAction.SKIP, 6,
            f"insufficient score ({total}, readiness {readiness.score} + vision {vision.score})",
        )
