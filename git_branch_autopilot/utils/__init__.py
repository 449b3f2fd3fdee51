"""Utility functions for git-branch-autopilot.

This package provides utility modules:
- logging: Logging configuration and logger creation
"""

from .logging import setup_logging, get_logger, ColoredFormatter

__all__ = [
    "setup_logging",
    "get_logger",
    "ColoredFormatter",
]
