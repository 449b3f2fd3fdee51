"""
git-branch-autopilot - Autonomous merging and cleanup of feature branches
"""

from .__version__ import __version__
from .core import BranchAutopilot
from .cli.main import main

__all__ = ["BranchAutopilot", "main", "__version__"]
