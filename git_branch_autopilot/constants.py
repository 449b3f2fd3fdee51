"""Shared constants for git-branch-autopilot."""

from dataclasses import dataclass
from typing import Dict, List


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


# Per-branch decision table
DECISION_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("decision", "Decision", 10),
    ColumnDefinition("rule", "Rule", 4),
    ColumnDefinition("readiness", "Readiness", 9),
    ColumnDefinition("vision", "Vision", 6),
    ColumnDefinition("ahead", "Ahead", 5),
    ColumnDefinition("behind", "Behind", 6),
    ColumnDefinition("age", "Age", 5),
    ColumnDefinition("outcome", "Outcome", 40),
]

# Remaining branches table
REMAINING_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("priority", "Priority", 8),
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("score", "Score", 5),
    ColumnDefinition("rationale", "Rationale", 50),
]


# Outcome status -> rich style
STATUS_COLORS: Dict[str, str] = {
    "merged": "green",
    "cleaned": "green",
    "planned": "cyan",
    "skipped": "yellow",
    "failed": "red",
}

PRIORITY_COLORS: Dict[str, str] = {
    "HIGH": "bold green",
    "MEDIUM": "yellow",
    "LOW": "dim",
}
