"""Formatting utilities for git-branch-autopilot.

This package provides formatting functions for logs, commit messages and reports,
organized into logical modules:
- date: Age formatting
- decision: Decision, commit message and tracker comment formatting
"""

# Age formatters
from .date import format_age

# Decision formatters
from .decision import (
    format_scores,
    format_issue_ids,
    format_merge_message,
    format_close_comment,
    format_consolidation_message,
    format_decision_line,
)

__all__ = [
    # Age
    "format_age",
    # Decision
    "format_scores",
    "format_issue_ids",
    "format_merge_message",
    "format_close_comment",
    "format_consolidation_message",
    "format_decision_line",
]
