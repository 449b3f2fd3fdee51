"""Branch model and related enums"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, Optional


class FreshnessStatus(Enum):
    """How far a branch trails the target branch."""
    CURRENT = "current"
    BEHIND_ACCEPTABLE = "behind-acceptable"
    STALE_BLOCKING = "stale-blocking"


@dataclass(frozen=True)
class Branch:
    """A candidate branch measured against the target branch."""
    name: str
    commits_ahead: int
    commits_behind: int
    last_activity: datetime
    changed_files: FrozenSet[str] = field(default_factory=frozenset)

    def age_hours(self, now: Optional[datetime] = None) -> float:
        """Hours since the last commit on the branch."""
        now = now or datetime.now(timezone.utc)
        return (now - self.last_activity).total_seconds() / 3600


@dataclass(frozen=True)
class DiscoveryResult:
    """Candidate branches found by discovery.

    An empty ``branches`` tuple with ``error`` unset means there is nothing to do;
    with ``error`` set it means the branches could not be listed.
    """
    branches: tuple = ()
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def succeeded(self) -> bool:
        return self.error is None
