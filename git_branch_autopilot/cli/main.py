"""Command-line interface for git-branch-autopilot"""

import os
import sys
from typing import Optional, Sequence

from rich.console import Console

from git_branch_autopilot.cli.args import parse_args
from git_branch_autopilot.config import Config
from git_branch_autopilot.core import BranchAutopilot
from git_branch_autopilot.utils.logging import setup_logging

console = Console()

# Options that map one-to-one onto Config fields
CONFIG_OPTIONS = (
    "dry_run",
    "aggressive",
    "target_branch",
    "branch_prefix",
    "max_branches",
    "remote_name",
    "git_timeout",
    "consolidate",
)


def build_config(parsed_args) -> Config:
    """Build a Config from a config file (if given) and the command line."""
    overrides = {key: getattr(parsed_args, key) for key in CONFIG_OPTIONS}
    overrides["verbose"] = parsed_args.verbose or None
    overrides["debug"] = parsed_args.debug or None

    if parsed_args.config:
        return Config.from_file(parsed_args.config, overrides)
    return Config.from_dict({k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = parse_args(argv)
    debug = parsed_args.debug
    try:
        config = build_config(parsed_args)
        debug = config.debug

        # Setup logging before creating BranchAutopilot; the config file may enable it
        setup_logging(verbose=config.verbose, debug=config.debug)

        if config.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                if key == "github_token" and value:
                    value = "***"
                console.print(f"  {key}: {value}")

        if config.dry_run:
            console.print("[cyan]Dry run - no branches will be merged, deleted or pushed[/cyan]")

        autopilot = BranchAutopilot(os.getcwd(), config)
        report = autopilot.run()

        if report.interrupted:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            return 1
        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
