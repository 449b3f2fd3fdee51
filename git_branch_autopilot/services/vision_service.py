"""Vision alignment scoring for candidate branches"""

import re
from typing import TYPE_CHECKING, Iterable, Sequence, Tuple, Union

from git_branch_autopilot.config import ScoringPolicy, get_policy
from git_branch_autopilot.exceptions import GitOperationError, GitTimeoutError
from git_branch_autopilot.models.branch import Branch
from git_branch_autopilot.models.evaluation import (
    IssuePriority,
    IssueProvenance,
    ResolvedIssueRef,
    VisionScore,
)
from git_branch_autopilot.services.git.github import IssueSnapshot
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config
    from git_branch_autopilot.services.git import GitOperations

logger = get_logger(__name__)

SERVICE_LAYER = "service-layer"
UI_COMPONENT = "ui-component"
DOMAIN_INTEGRATION = "domain-integration"
STYLING = "styling"
BUILD_CONFIGURATION = "build-configuration"

MESSAGE_ISSUE_PATTERN = re.compile(r"(?<![\w&])#(\d+)\b")
BRANCH_ISSUE_PATTERNS = (
    re.compile(r"(?:^|[/_-])(?:issue|gh)[-_]?(\d+)(?=$|[/_-])", re.IGNORECASE),
    re.compile(r"/(\d+)-"),
)
HIGH_PRIORITY_PATTERN = re.compile(r"\b(p0|p1|critical|urgent)\b")
MEDIUM_PRIORITY_PATTERN = re.compile(r"\bp2\b")


def extract_issue_numbers(branch_name: str, messages: Iterable[str]) -> Tuple[int, ...]:
    """Issue numbers referenced by the branch name or its commit messages, sorted."""
    numbers = set()
    for pattern in BRANCH_ISSUE_PATTERNS:
        numbers.update(int(n) for n in pattern.findall(branch_name))
    for message in messages:
        numbers.update(int(n) for n in MESSAGE_ISSUE_PATTERN.findall(message))
    numbers.discard(0)
    return tuple(sorted(numbers))


def priority_from_labels(labels: Iterable[str]) -> IssuePriority:
    """Map tracker labels to a priority; unlabelled issues are LOW."""
    normalized = [label.lower() for label in labels]
    for label in normalized:
        if HIGH_PRIORITY_PATTERN.search(label) or ("priority" in label and "high" in label):
            return IssuePriority.HIGH
    for label in normalized:
        if MEDIUM_PRIORITY_PATTERN.search(label) or ("priority" in label and "medium" in label):
            return IssuePriority.MEDIUM
    return IssuePriority.LOW


def resolve_issue_refs(numbers: Iterable[int], snapshot: IssueSnapshot) -> Tuple[ResolvedIssueRef, ...]:
    """Mark each referenced number as verified (open in the tracker) or text-only."""
    refs = []
    for number in numbers:
        issue = snapshot.get(number)
        if issue is None:
            refs.append(ResolvedIssueRef(number, IssueProvenance.TEXT_ONLY))
        else:
            refs.append(ResolvedIssueRef(
                number,
                IssueProvenance.VERIFIED,
                priority=priority_from_labels(issue.labels),
                title=issue.title,
            ))
    return tuple(refs)


def _matches_any(paths: Iterable[str], patterns: Sequence[str]) -> bool:
    compiled = [re.compile(pattern) for pattern in patterns]
    return any(p.search(path) for path in paths for p in compiled)


def match_categories(paths: Iterable[str], policy: ScoringPolicy) -> Tuple[str, ...]:
    """Change categories touched by a set of paths, in a fixed order."""
    paths = list(paths)
    lowered = [path.lower() for path in paths]
    categories = []
    if _matches_any(paths, policy.service_layer_patterns):
        categories.append(SERVICE_LAYER)
    if _matches_any(paths, policy.ui_component_patterns):
        categories.append(UI_COMPONENT)
    if any(keyword.lower() in path for path in lowered for keyword in policy.domain_keywords):
        categories.append(DOMAIN_INTEGRATION)
    if _matches_any(paths, policy.styling_patterns):
        categories.append(STYLING)
    if _matches_any(paths, policy.build_config_patterns):
        categories.append(BUILD_CONFIGURATION)
    return tuple(categories)


def score_vision(
    branch: Branch, issue_refs: Sequence[ResolvedIssueRef], policy: ScoringPolicy
) -> VisionScore:
    """Base score plus issue and category bonuses, minus penalties, clamped."""
    issue_points = {
        IssuePriority.HIGH: policy.high_priority_points,
        IssuePriority.MEDIUM: policy.medium_priority_points,
        IssuePriority.LOW: policy.low_priority_points,
    }
    category_points = {
        SERVICE_LAYER: policy.service_layer_points,
        UI_COMPONENT: policy.ui_component_points,
        DOMAIN_INTEGRATION: policy.domain_keyword_points,
        STYLING: policy.styling_points,
        BUILD_CONFIGURATION: policy.build_config_points,
    }

    score = policy.vision_base
    adjustments = []

    for ref in issue_refs:
        if ref.verified and ref.priority is not None:
            points = issue_points[ref.priority]
            score += points
            adjustments.append(f"+{points} issue #{ref.number} ({ref.priority.value})")

    categories = match_categories(branch.changed_files, policy)
    for category in categories:
        score += category_points[category]
        adjustments.append(f"+{category_points[category]} {category}")

    if (
        BUILD_CONFIGURATION in categories
        and branch.commits_ahead > policy.build_config_penalty_commits
    ):
        score -= policy.build_config_penalty
        adjustments.append(
            f"-{policy.build_config_penalty} build configuration changed over "
            f"{policy.build_config_penalty_commits} commits"
        )

    clamped = max(policy.vision_min, min(policy.vision_max, score))
    return VisionScore(
        score=clamped,
        categories=categories,
        issue_refs=tuple(issue_refs),
        adjustments=tuple(adjustments),
    )


class VisionScorer:
    """Scores how well a branch lines up with the project's direction."""

    def __init__(
        self,
        config: Union["Config", dict],
        git_service: "GitOperations",
        snapshot: IssueSnapshot,
    ):
        self.config = config
        self.git_service = git_service
        self.snapshot = snapshot
        self.target_branch = config.get("target_branch", "main")
        self.policy = get_policy(config)

    def issue_refs(self, branch: Branch) -> Tuple[ResolvedIssueRef, ...]:
        try:
            messages = self.git_service.commit_messages(self.target_branch, branch.name)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.warning(f"Could not read commit messages of {branch.name}: {e}")
            messages = []
        numbers = extract_issue_numbers(branch.name, messages)
        return resolve_issue_refs(numbers, self.snapshot)

    def score(self, branch: Branch) -> VisionScore:
        vision = score_vision(branch, self.issue_refs(branch), self.policy)
        if vision.unverified_issues:
            logger.info(
                f"{branch.name} references unverified issues: "
                f"{', '.join(f'#{ref.number}' for ref in vision.unverified_issues)}"
            )
        logger.debug(f"Vision for {branch.name}: {vision.score} ({'; '.join(vision.adjustments)})")
        return vision
