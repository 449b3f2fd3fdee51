"""Evaluation, decision and outcome models"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from git_branch_autopilot.models.branch import Branch, FreshnessStatus


@dataclass(frozen=True)
class ProbeResult:
    """Points and issues produced by one readiness probe."""
    name: str
    points: int
    issues: Tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class ReadinessReport:
    """Structural health of a branch, aggregated from the four probes."""
    merge_conflict_free: bool
    quality_issue_count: int
    test_coverage_adequate: bool
    freshness: FreshnessStatus
    score: int
    issues: Tuple[str, ...] = ()
    probes: Tuple[ProbeResult, ...] = ()


class IssuePriority(Enum):
    """Priority of a tracker issue, derived from its labels."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IssueProvenance(Enum):
    """Whether an issue reference was confirmed against the tracker."""
    VERIFIED = "verified"
    TEXT_ONLY = "text-only"


@dataclass(frozen=True)
class ResolvedIssueRef:
    """An issue a branch claims to resolve."""
    number: int
    provenance: IssueProvenance
    priority: Optional[IssuePriority] = None
    title: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.provenance == IssueProvenance.VERIFIED


@dataclass(frozen=True)
class VisionScore:
    """Domain-relevance score of a branch, clamped to the policy range."""
    score: int
    categories: Tuple[str, ...] = ()
    issue_refs: Tuple[ResolvedIssueRef, ...] = ()
    adjustments: Tuple[str, ...] = ()

    @property
    def verified_issues(self) -> Tuple[ResolvedIssueRef, ...]:
        return tuple(ref for ref in self.issue_refs if ref.verified)

    @property
    def unverified_issues(self) -> Tuple[ResolvedIssueRef, ...]:
        return tuple(ref for ref in self.issue_refs if not ref.verified)


class DecisionAction(Enum):
    """What the autopilot does with a branch."""
    CLEANUP = "cleanup"
    MERGE = "merge"
    SKIP = "skip"


@dataclass(frozen=True)
class Decision:
    """Outcome of the decision rules for one branch, with the scores it used."""
    action: DecisionAction
    rule: int
    reason: str
    readiness_score: int
    vision_score: int
    issues: Tuple[str, ...] = ()

    @property
    def total_score(self) -> int:
        return self.readiness_score + self.vision_score


@dataclass(frozen=True)
class BranchEvaluation:
    """Everything computed for a branch before execution."""
    branch: Branch
    readiness: ReadinessReport
    vision: VisionScore
    decision: Decision


class ExecutionStatus(Enum):
    """Result of acting on a decision."""
    MERGED = "merged"
    CLEANED = "cleaned"
    SKIPPED = "skipped"
    FAILED = "failed"
    PLANNED = "planned"  # Dry-run


@dataclass
class ExecutionOutcome:
    """What the merge executor did for a branch."""
    branch: str
    decision: Decision
    status: ExecutionStatus
    message: str = ""
    closed_issues: List[int] = field(default_factory=list)
    tracker_failures: List[str] = field(default_factory=list)

    @property
    def removed(self) -> bool:
        """True when the branch no longer exists after execution."""
        return self.status in (ExecutionStatus.MERGED, ExecutionStatus.CLEANED)

    @property
    def retired(self) -> bool:
        """True when the branch is gone, or would be gone after a dry run."""
        if self.status == ExecutionStatus.PLANNED:
            return self.decision.action != DecisionAction.SKIP
        return self.removed


@dataclass(frozen=True)
class OverlapPair:
    """Two branches touching at least one common file."""
    primary: Branch
    secondary: Branch
    shared_files: FrozenSet[str] = frozenset()

    @property
    def shared_file_count(self) -> int:
        return len(self.shared_files)


class ConsolidationStatus(Enum):
    """Result of folding a secondary branch into its primary."""
    CONSOLIDATED = "consolidated"
    PLANNED = "planned"  # Dry-run
    FAILED = "failed"


@dataclass
class ConsolidationOutcome:
    """What the consolidation analyzer did for one overlapping pair."""
    pair: OverlapPair
    status: ConsolidationStatus
    message: str = ""


@dataclass(frozen=True)
class RemainingBranch:
    """A branch left in place after the run, with a heuristic priority."""
    name: str
    priority: str
    total_score: int
    rationale: str


@dataclass
class RunReport:
    """Everything one autopilot run found and did."""
    dry_run: bool = False
    discovery_error: Optional[str] = None
    evaluations: List[BranchEvaluation] = field(default_factory=list)
    outcomes: List[ExecutionOutcome] = field(default_factory=list)
    consolidations: List[ConsolidationOutcome] = field(default_factory=list)
    evaluation_errors: Dict[str, str] = field(default_factory=dict)
    remaining: List[RemainingBranch] = field(default_factory=list)
    interrupted: bool = False

    def _planned(self, action: DecisionAction) -> int:
        return sum(
            1 for o in self.outcomes
            if o.status == ExecutionStatus.PLANNED and o.decision.action == action
        )

    def _count(self, status: ExecutionStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def cleaned_count(self) -> int:
        return self._count(ExecutionStatus.CLEANED) + self._planned(DecisionAction.CLEANUP)

    @property
    def merged_count(self) -> int:
        """Branches merged or cleaned up (cleanups are branches already merged)."""
        return (
            self._count(ExecutionStatus.MERGED)
            + self._planned(DecisionAction.MERGE)
            + self.cleaned_count
        )

    @property
    def skipped_count(self) -> int:
        return self._count(ExecutionStatus.SKIPPED)

    @property
    def failed_count(self) -> int:
        return self._count(ExecutionStatus.FAILED)

    @property
    def consolidated_count(self) -> int:
        return sum(
            1 for c in self.consolidations
            if c.status in (ConsolidationStatus.CONSOLIDATED, ConsolidationStatus.PLANNED)
        )

    @property
    def absorbed_branches(self) -> List[str]:
        return [
            c.pair.secondary.name for c in self.consolidations
            if c.status in (ConsolidationStatus.CONSOLIDATED, ConsolidationStatus.PLANNED)
        ]

    @property
    def issues_resolved(self) -> List[int]:
        """Issues closed by merges, or that would be closed in a dry run."""
        resolved = set()
        for outcome in self.outcomes:
            resolved.update(outcome.closed_issues)
        if self.dry_run:
            planned = {
                o.branch for o in self.outcomes
                if o.status == ExecutionStatus.PLANNED and o.decision.action == DecisionAction.MERGE
            }
            for evaluation in self.evaluations:
                if evaluation.branch.name in planned:
                    resolved.update(ref.number for ref in evaluation.vision.verified_issues)
        return sorted(resolved)
