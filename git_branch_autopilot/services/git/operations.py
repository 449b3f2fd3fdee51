"""Git operations service"""

import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, FrozenSet, List, Union

import git

from git_branch_autopilot.exceptions import (
    GitOperationError,
    GitTimeoutError,
    MergeConflictError,
)
from git_branch_autopilot.utils.logging import get_logger

if TYPE_CHECKING:
    from git_branch_autopilot.config import Config

logger = get_logger(__name__)


class GitOperations:
    """Service for Git operations.

    Every command goes through ``_run`` so that it is bounded by the configured
    timeout and so that failures surface as ``GitOperationError``. Branch names
    are resolved to the remote-tracking ref when one exists, otherwise to the
    local head.
    """

    def __init__(self, repo_path: str, config: Union["Config", dict]):
        """Initialize the service.

        Args:
            repo_path: Path to the git repository (string path, not repo object)
            config: Configuration dictionary or Config object
        """
        self.repo_path = repo_path
        self.config = config
        self.verbose = config.get("verbose", False)
        self.debug_mode = config.get("debug", False)
        self.remote_name = config.get("remote_name", "origin")
        self.timeout = config.get("git_timeout", 300.0)
        self.in_git_operation = False  # Track if a mutating operation is in progress

        logger.info("Git operations initialized")

    def _get_repo(self):
        """Get a git.Repo instance.

        GitPython repos are lightweight - they don't clone, just open the existing repo.

        Returns:
            git.Repo: A fresh repository instance
        """
        return git.Repo(self.repo_path)

    @contextmanager
    def _git_operation(self):
        """Context manager to track mutating git operations."""
        self.in_git_operation = True
        try:
            yield
        finally:
            self.in_git_operation = False

    def _run(self, *args: str) -> str:
        """Run a git command bounded by the configured timeout."""
        operation = args[0]
        repo = self._get_repo()
        started = time.monotonic()
        try:
            logger.debug(f"git {' '.join(args)}")
            return repo.git.execute(["git", *args], kill_after_timeout=self.timeout)
        except git.exc.GitCommandError as e:
            if time.monotonic() - started >= self.timeout:
                raise GitTimeoutError(operation, self.timeout) from e
            status = e.status if isinstance(e.status, int) else None
            raise GitOperationError(operation, message=str(e).strip(), status=status) from e
        finally:
            repo.close()

    def ref_exists(self, ref: str) -> bool:
        try:
            self._run("rev-parse", "--verify", "--quiet", ref)
            return True
        except GitTimeoutError:
            raise
        except GitOperationError:
            return False

    def _merge_in_progress(self) -> bool:
        repo = self._get_repo()
        try:
            return os.path.exists(os.path.join(repo.git_dir, "MERGE_HEAD"))
        finally:
            repo.close()

    def has_remote(self) -> bool:
        """Check if the configured remote exists."""
        repo = self._get_repo()
        try:
            return self.remote_name in [remote.name for remote in repo.remotes]
        finally:
            repo.close()

    def has_remote_branch(self, branch_name: str) -> bool:
        """Check if the branch has a remote tracking ref."""
        return self.has_remote() and self.ref_exists(
            f"refs/remotes/{self.remote_name}/{branch_name}"
        )

    def has_local_branch(self, branch_name: str) -> bool:
        """Check if the branch exists locally."""
        return self.ref_exists(f"refs/heads/{branch_name}")

    def ref_for(self, branch_name: str) -> str:
        """Resolve a branch name to the ref commands should use."""
        if self.has_remote_branch(branch_name):
            return f"{self.remote_name}/{branch_name}"
        return branch_name

    def ensure_clean_worktree(self) -> None:
        """Raise if the working tree has uncommitted changes."""
        repo = self._get_repo()
        try:
            dirty = repo.is_dirty(untracked_files=False)
        finally:
            repo.close()
        if dirty:
            raise GitOperationError(
                "check_worktree", message="Working tree has uncommitted changes"
            )

    def fetch(self) -> None:
        """Fetch and prune the remote."""
        if self.has_remote():
            logger.debug(f"Fetching from {self.remote_name}...")
            self._run("fetch", "--prune", self.remote_name)

    def list_branches(self, prefix: str) -> List[str]:
        """List local and remote branch names starting with prefix, newest first."""
        output = self._run(
            "for-each-ref",
            "--sort=-committerdate",
            "--format=%(refname)",
            "refs/heads",
            f"refs/remotes/{self.remote_name}",
        )
        local_prefix = "refs/heads/"
        remote_prefix = f"refs/remotes/{self.remote_name}/"

        names: List[str] = []
        seen = set()
        for refname in output.splitlines():
            refname = refname.strip()
            if refname.startswith(local_prefix):
                name = refname[len(local_prefix):]
            elif refname.startswith(remote_prefix):
                name = refname[len(remote_prefix):]
            else:
                continue
            if name == "HEAD" or not name.startswith(prefix) or name in seen:
                continue
            seen.add(name)
            names.append(name)
        return names

    def count_commits(self, base: str, head: str) -> int:
        """Count commits reachable from head but not from base."""
        result = self._run("rev-list", "--count", f"{self.ref_for(base)}..{self.ref_for(head)}")
        return int(result.strip() or 0)

    def changed_files(self, base: str, head: str) -> FrozenSet[str]:
        """Files changed on head since it diverged from base."""
        output = self._run("diff", "--name-only", f"{self.ref_for(base)}...{self.ref_for(head)}")
        return frozenset(line.strip() for line in output.splitlines() if line.strip())

    def added_files(self, base: str, head: str) -> List[str]:
        """Files created on head since it diverged from base."""
        output = self._run(
            "diff", "--name-only", "--diff-filter=A", f"{self.ref_for(base)}...{self.ref_for(head)}"
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def added_lines(self, base: str, head: str) -> List[str]:
        """Lines introduced on head since it diverged from base."""
        output = self._run(
            "diff", "--no-color", "--unified=0", f"{self.ref_for(base)}...{self.ref_for(head)}"
        )
        return [
            line[1:]
            for line in output.splitlines()
            if line.startswith("+") and not line.startswith("+++")
        ]

    def commit_messages(self, base: str, head: str) -> List[str]:
        """Messages of commits on head that are not on base."""
        output = self._run(
            "log", "--format=%B%x00", f"{self.ref_for(base)}..{self.ref_for(head)}"
        )
        return [message.strip() for message in output.split("\x00") if message.strip()]

    def last_commit_date(self, branch_name: str) -> datetime:
        """Commit time of the branch tip."""
        output = self._run("log", "-1", "--format=%ct", self.ref_for(branch_name))
        return datetime.fromtimestamp(int(output.strip()), tz=timezone.utc)

    def rev_parse(self, ref: str) -> str:
        return self._run("rev-parse", ref).strip()

    def head_sha(self) -> str:
        return self.rev_parse("HEAD")

    def current_ref(self) -> str:
        """Name of the checked out branch, or the commit sha when detached."""
        repo = self._get_repo()
        try:
            return repo.active_branch.name
        except TypeError:
            # Detached HEAD
            return repo.head.commit.hexsha
        finally:
            repo.close()

    def trial_merge(self, source: str, target: str) -> bool:
        """Check whether source merges cleanly into target.

        Uses ``git merge-tree --write-tree`` (Git 2.38+), which computes the
        merge in the object database only. The checkout, the index and HEAD are
        never touched, so uncommitted changes do not get in the way and nothing
        needs rolling back.

        Returns:
            True if the merge completed without conflicts

        Raises:
            GitOperationError: if the merge could not be computed at all
        """
        try:
            self._run(
                "merge-tree", "--write-tree", "--no-messages",
                self.ref_for(target), self.ref_for(source),
            )
            return True
        except GitTimeoutError:
            raise
        except GitOperationError as e:
            # Exit status 1 means conflicts; anything else is a real failure
            if e.status != 1:
                raise
            logger.debug(f"Trial merge of {source} into {target} has conflicts")
            return False

    def abort_merge(self) -> None:
        """Abort any merge in progress and discard its changes."""
        if self._merge_in_progress():
            self._run("merge", "--abort")
        self._run("reset", "--hard", "HEAD")

    def checkout(self, branch_name: str) -> None:
        """Check out a branch, creating a tracking branch from the remote if needed."""
        with self._git_operation():
            if self.has_local_branch(branch_name):
                self._run("checkout", branch_name)
            elif self.has_remote_branch(branch_name):
                self._run(
                    "checkout", "-b", branch_name, "--track", f"{self.remote_name}/{branch_name}"
                )
            else:
                raise GitOperationError("checkout", branch_name, "Branch not found")

    def restore_checkout(self, ref: str) -> None:
        """Return to a previously recorded branch or commit."""
        self._run("checkout", ref)

    def pull(self, branch_name: str) -> None:
        """Fast-forward the checked out branch from the remote."""
        if not self.has_remote_branch(branch_name):
            logger.debug(f"No remote branch for {branch_name}, skipping pull")
            return
        with self._git_operation():
            self._run("pull", "--ff-only", self.remote_name, branch_name)

    def merge(self, source: str, message: str) -> None:
        """Merge source into the checked out branch with a merge commit.

        Raises:
            MergeConflictError: if the merge failed; it has already been aborted
        """
        with self._git_operation():
            try:
                self._run("merge", "--no-ff", "-m", message, self.ref_for(source))
            except GitTimeoutError:
                raise
            except GitOperationError as e:
                self.abort_merge()
                raise MergeConflictError(source, e.message)

    def reset_hard(self, ref: str) -> None:
        with self._git_operation():
            self._run("reset", "--hard", ref)

    def push(self, branch_name: str) -> None:
        """Push a local branch to the remote, if there is one."""
        if not self.has_remote():
            logger.debug(f"No remote configured, not pushing {branch_name}")
            return
        with self._git_operation():
            self._run("push", self.remote_name, f"{branch_name}:refs/heads/{branch_name}")

    def delete_branch(self, branch_name: str) -> bool:
        """Delete a branch locally and remotely.

        Deleting a branch that no longer exists counts as success.

        Returns:
            True once neither the local nor the remote branch exists
        """
        with self._git_operation():
            if self.has_remote_branch(branch_name):
                try:
                    self._run("push", self.remote_name, "--delete", branch_name)
                except GitTimeoutError:
                    raise
                except GitOperationError as e:
                    if "remote ref does not exist" not in str(e):
                        raise
                    logger.debug(f"Remote branch {branch_name} was already deleted")
            if self.has_local_branch(branch_name):
                self._run("branch", "-D", branch_name)
        logger.debug(f"Deleted branch {branch_name}")
        return True

    def create_branch(self, branch_name: str, start: str) -> None:
        """Create (or reset) a local branch at start and check it out."""
        with self._git_operation():
            self._run("checkout", "-B", branch_name, self.ref_for(start))

    def update_branch(self, branch_name: str, new_ref: str) -> None:
        """Force the branch (local and remote) to point at new_ref."""
        with self._git_operation():
            sha = self.rev_parse(new_ref)
            if self.has_local_branch(branch_name):
                self._run("branch", "-f", branch_name, sha)
            if self.has_remote_branch(branch_name):
                self._run("push", "--force", self.remote_name, f"{sha}:refs/heads/{branch_name}")

    def delete_local_branch(self, branch_name: str) -> None:
        if self.has_local_branch(branch_name):
            self._run("branch", "-D", branch_name)
