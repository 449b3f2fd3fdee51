"""Command-line argument parsing for git-branch-autopilot."""

import argparse
from typing import Optional, Sequence

from git_branch_autopilot.__version__ import __version__


def parse_args(argv: Optional[Sequence[str]] = None):
    """Parse command-line arguments.

    Options left unset are None so that values from --config are not overridden.
    """
    parser = argparse.ArgumentParser(
        description="Autonomous merge, cleanup and consolidation of feature branches",
        epilog="Issue verification and closing requires the GITHUB_TOKEN environment variable "
        "or 'github_token' in the config file. Without it, issue references are reported "
        "but never closed.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"git-branch-autopilot {__version__}")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Preview mode - compute every decision without changing anything",
    )
    parser.add_argument(
        "--aggressive",
        action="store_true",
        default=None,
        help="Also merge branches with acceptable scores and at most one minor issue",
    )
    parser.add_argument("--target-branch", help="Branch to merge into (default: main)")
    parser.add_argument("--prefix", dest="branch_prefix", help="Candidate branch prefix (default: feature/)")
    parser.add_argument(
        "--max-branches", type=int, metavar="N", help="Maximum branches to evaluate (default: 50)"
    )
    parser.add_argument("--remote", dest="remote_name", help="Remote name (default: origin)")
    parser.add_argument("--config", metavar="FILE", help="JSON configuration file")
    parser.add_argument(
        "--git-timeout",
        type=float,
        metavar="SECONDS",
        help="Timeout for each Git command (default: 300)",
    )
    parser.add_argument(
        "--no-consolidate",
        dest="consolidate",
        action="store_false",
        default=None,
        help="Do not fold overlapping branches into one another",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )

    return parser.parse_args(argv)
