"""Consolidation of branches that change the same files"""

from dataclasses import replace
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple, Union

from git_branch_autopilot.exceptions import GitOperationError, GitTimeoutError
from git_branch_autopilot.formatters import format_consolidation_message
from git_branch_autopilot.models.branch import Branch
from git_branch_autopilot.models.evaluation import (
    ConsolidationOutcome,
    ConsolidationStatus,
    OverlapPair,
)
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config
    from git_branch_autopilot.services.discovery_service import DiscoveryService
    from git_branch_autopilot.services.git import GitOperations

logger = get_logger(__name__)

TRANSIENT_BRANCH = "autopilot/consolidation"


def choose_direction(first: Branch, second: Branch) -> Tuple[Branch, Branch]:
    """Return (primary, secondary); the branch further ahead wins, ties go to first."""
    if second.commits_ahead > first.commits_ahead:
        return second, first
    return first, second


def find_overlap(first: Branch, second: Branch) -> Optional[OverlapPair]:
    shared = first.changed_files & second.changed_files
    if not shared:
        return None
    primary, secondary = choose_direction(first, second)
    return OverlapPair(primary, secondary, frozenset(shared))


class ConsolidationAnalyzer:
    """Folds overlapping branches into one another, one pair at a time.

    Pairs are scanned in input order. A secondary that has been folded away is
    dropped from the candidate set at once, and its files are credited to the
    primary, so no later pair refers to a branch that no longer exists.
    """

    def __init__(
        self,
        config: Union["Config", dict],
        git_service: "GitOperations",
        discovery_service: "DiscoveryService",
    ):
        self.config = config
        self.git_service = git_service
        self.discovery_service = discovery_service
        self.dry_run = config.get("dry_run", False)
        self.target_branch = config.get("target_branch", "main")

    def _load(self, names: Sequence[str]) -> List[Branch]:
        branches = []
        for name in names:
            try:
                branches.append(self.discovery_service.load_branch(name))
            except GitTimeoutError:
                raise
            except GitOperationError as e:
                logger.warning(f"Leaving {name} out of consolidation: {e}")
        return branches

    def run(self, branch_names: Sequence[str]) -> List[ConsolidationOutcome]:
        """Consolidate every overlapping pair among the surviving branches."""
        active = self._load(branch_names)
        consumed = set()
        outcomes: List[ConsolidationOutcome] = []

        for i in range(len(active)):
            for j in range(i + 1, len(active)):
                first, second = active[i], active[j]
                if first.name in consumed:
                    break
                if second.name in consumed:
                    continue

                pair = find_overlap(first, second)
                if pair is None:
                    continue

                outcome = self.consolidate(pair)
                outcomes.append(outcome)
                if outcome.status == ConsolidationStatus.FAILED:
                    continue

                consumed.add(pair.secondary.name)
                index = i if pair.primary is first else j
                active[index] = self._absorbed(pair)

        return outcomes

    def _absorbed(self, pair: OverlapPair) -> Branch:
        """The primary as it looks after taking in the secondary."""
        if not self.dry_run:
            try:
                return self.discovery_service.load_branch(pair.primary.name)
            except GitTimeoutError:
                raise
            except GitOperationError as e:
                logger.debug(f"Could not reload {pair.primary.name}: {e}")
        return replace(
            pair.primary,
            changed_files=pair.primary.changed_files | pair.secondary.changed_files,
        )

    def consolidate(self, pair: OverlapPair) -> ConsolidationOutcome:
        """Merge the secondary into the primary and delete the secondary.

        Any failure restores the primary and leaves the secondary in place.
        """
        primary, secondary = pair.primary.name, pair.secondary.name
        if self.dry_run:
            message = (
                f"would fold {secondary} into {primary} "
                f"({pair.shared_file_count} shared files)"
            )
            logger.info(message)
            return ConsolidationOutcome(pair, ConsolidationStatus.PLANNED, message)

        original = self.git_service.current_ref()
        primary_sha = None
        try:
            primary_sha = self.git_service.rev_parse(self.git_service.ref_for(primary))
            self.git_service.create_branch(TRANSIENT_BRANCH, primary)
            self.git_service.merge(secondary, format_consolidation_message(pair))
            self.git_service.update_branch(primary, TRANSIENT_BRANCH)
            self.git_service.delete_branch(secondary)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.error(f"Could not fold {secondary} into {primary}: {e}")
            self._restore_primary(primary, primary_sha)
            return ConsolidationOutcome(pair, ConsolidationStatus.FAILED, str(e))
        finally:
            if not self.git_service.ref_exists(original):
                original = self.target_branch
            self.git_service.restore_checkout(original)
            self.git_service.delete_local_branch(TRANSIENT_BRANCH)

        message = f"folded {secondary} into {primary} ({pair.shared_file_count} shared files)"
        logger.info(message)
        return ConsolidationOutcome(pair, ConsolidationStatus.CONSOLIDATED, message)

    def _restore_primary(self, primary: str, primary_sha: Optional[str]) -> None:
        if primary_sha is None:
            return
        try:
            if self.git_service.rev_parse(self.git_service.ref_for(primary)) != primary_sha:
                self.git_service.update_branch(primary, primary_sha)
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            logger.error(f"Could not restore {primary} to {primary_sha[:7]}: {e}")
