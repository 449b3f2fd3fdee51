"""Core orchestration for git-branch-autopilot"""

import signal
import threading
from datetime import datetime, timezone
from typing import Optional, Union

import git
from rich.console import Console

from git_branch_autopilot.config import Config, get_policy
from git_branch_autopilot.exceptions import (
    DiscoveryError,
    GitBranchAutopilotError,
    GitOperationError,
    GitTimeoutError,
)
from git_branch_autopilot.models.evaluation import BranchEvaluation, RunReport
from git_branch_autopilot.services.consolidation_service import ConsolidationAnalyzer
from git_branch_autopilot.services.decision_service import DecisionEngine
from git_branch_autopilot.services.discovery_service import DiscoveryService
from git_branch_autopilot.services.display_service import DisplayService, prioritize_remaining
from git_branch_autopilot.services.git import GitHubService, GitOperations, IssueSnapshot
from git_branch_autopilot.services.merge_executor import MergeExecutor
from git_branch_autopilot.services.readiness_service import ReadinessEvaluator
from git_branch_autopilot.services.vision_service import VisionScorer
from git_branch_autopilot.utils.logging import get_logger

console = Console()
logger = get_logger(__name__)


class BranchAutopilot:
    """Evaluates, merges, cleans up and consolidates feature branches.

    One run handles the candidate branches one at a time, in discovery order:
    readiness and vision are scored, a decision is made and executed, and once
    every branch has been handled the surviving branches are consolidated.
    """

    def __init__(self, repo_path: str, config: Union[Config, dict], quiet: bool = False):
        """Initialize BranchAutopilot.

        Args:
            repo_path: Path to git repository
            config: Configuration dict or Config object
            quiet: If True, suppresses Rich console output
        """
        self.repo_path = repo_path
        self.quiet = quiet
        if isinstance(config, dict):
            self.config = Config.from_dict(config)
        else:
            self.config = config
        self.verbose = self.config.verbose
        self.debug_mode = self.config.debug
        self.dry_run = self.config.dry_run
        self.target_branch = self.config.target_branch
        self.policy = get_policy(self.config)

        try:
            self.repo = git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise GitBranchAutopilotError(f"Error initializing repository: {e}")

        self.git_service = GitOperations(self.repo_path, self.config)
        self.github_service = GitHubService(self.repo_path, self.config)
        self.discovery_service = DiscoveryService(self.config, self.git_service)
        self.decision_engine = DecisionEngine(self.config)
        self.display_service = DisplayService(self.config, quiet=quiet)

        self._setup_github()
        self._interrupted = False

    def _console_print(self, *args, **kwargs) -> None:
        if not self.quiet:
            console.print(*args, **kwargs)

    def _setup_github(self) -> None:
        """Enable issue verification when the remote is on GitHub."""
        remote_name = self.config.remote_name
        remotes = {remote.name: remote for remote in self.repo.remotes}
        if remote_name not in remotes:
            logger.info(f"No {remote_name} remote found. Issue references will not be verified.")
            return

        remote_url = remotes[remote_name].url
        if "github.com" not in remote_url:
            logger.info(
                f"Non-GitHub repository detected ({remote_url}). Issue references will not be verified."
            )
            return

        self.github_service.setup_github_api(remote_url)
        if self.github_service.github_enabled:
            logger.info("[GitHub] Integration enabled - issue verification active")
        else:
            self._console_print(
                "[yellow]ℹ GitHub token not found - issue references will not be verified[/yellow]"
            )

    def _handle_interrupt(self, signum, frame):
        """Stop after the branch in progress instead of in the middle of it."""
        if self._interrupted:
            raise KeyboardInterrupt
        self._interrupted = True
        if self.git_service.in_git_operation:
            self._console_print(
                "\n[yellow]Interrupted! Waiting for current Git operation to complete...[/yellow]"
            )
        else:
            self._console_print("\n[yellow]Interrupted! Finishing current branch...[/yellow]")

    def _discover(self):
        result = self.discovery_service.discover()
        if result.failed:
            raise DiscoveryError(result.error)
        return result.branches

    def evaluate(
        self,
        name: str,
        readiness: ReadinessEvaluator,
        vision: VisionScorer,
        now: Optional[datetime] = None,
    ) -> BranchEvaluation:
        """Score one branch and decide what to do with it.

        Raises:
            GitOperationError: if the branch itself cannot be read
        """
        branch = self.discovery_service.load_branch(name)
        readiness_report = readiness.evaluate(branch)
        vision_score = vision.score(branch)
        decision = self.decision_engine.decide(branch, readiness_report, vision_score, now)
        return BranchEvaluation(branch, readiness_report, vision_score, decision)

    def run(self) -> RunReport:
        """Run the autopilot once over all candidate branches.

        Raises:
            GitTimeoutError: if a Git command hangs; the run stops
            GitOperationError: if the working tree is dirty in live mode
        """
        report = RunReport(dry_run=self.dry_run)

        if not self.dry_run:
            self.git_service.ensure_clean_worktree()

        try:
            names = self._discover()
        except DiscoveryError as e:
            report.discovery_error = str(e)
            self.display_service.display_report(report)
            return report

        if not names:
            logger.info("No candidate branches found")
            self.display_service.display_report(report)
            return report

        snapshot = self._fetch_snapshot()
        readiness = ReadinessEvaluator(self.config, self.git_service)
        vision = VisionScorer(self.config, self.git_service, snapshot)
        executor = MergeExecutor(self.config, self.git_service, self.github_service)
        now = datetime.now(timezone.utc)

        original = self.git_service.current_ref()
        previous_handler = self._install_interrupt_handler()
        try:
            for name in names:
                if self._interrupted:
                    report.interrupted = True
                    break
                try:
                    evaluation = self.evaluate(name, readiness, vision, now)
                except GitTimeoutError:
                    raise
                except GitOperationError as e:
                    logger.error(f"Could not evaluate {name}: {e}")
                    report.evaluation_errors[name] = str(e)
                    continue

                outcome = executor.execute(evaluation)
                report.evaluations.append(evaluation)
                report.outcomes.append(outcome)
                self.display_service.show_decision(evaluation, outcome)

            if self._interrupted:
                report.interrupted = True
            elif self.config.consolidate:
                survivors = [o.branch for o in report.outcomes if not o.retired]
                analyzer = ConsolidationAnalyzer(
                    self.config, self.git_service, self.discovery_service
                )
                report.consolidations = analyzer.run(survivors)
        finally:
            self._restore_interrupt_handler(previous_handler)
            self._restore_checkout(original)
            self.github_service.close()

        report.remaining = prioritize_remaining(
            report.evaluations,
            report.outcomes,
            report.absorbed_branches,
            self.policy,
            report.evaluation_errors,
        )
        self.display_service.display_report(report)
        return report

    def _fetch_snapshot(self) -> IssueSnapshot:
        snapshot = self.github_service.fetch_snapshot()
        if snapshot.available:
            logger.info(f"Loaded {len(snapshot)} open issues")
        return snapshot

    def _install_interrupt_handler(self):
        # Signal handlers can only be installed from the main thread
        if threading.current_thread() is not threading.main_thread():
            return None
        return signal.signal(signal.SIGINT, self._handle_interrupt)

    def _restore_interrupt_handler(self, previous_handler) -> None:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    def _restore_checkout(self, original: str) -> None:
        """Return to the branch the run started on, or to the target if it is gone."""
        if self.dry_run:
            return
        try:
            if not self.git_service.ref_exists(original):
                original = self.target_branch
            if self.git_service.current_ref() != original:
                self.git_service.restore_checkout(original)
        except GitOperationError as e:
            logger.warning(f"Could not return to {original}: {e}")
