"""Core orchestration for git-branch-autopilot."""

from .autopilot import BranchAutopilot

__all__ = ["BranchAutopilot"]
