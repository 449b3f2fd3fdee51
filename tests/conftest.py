"""Pytest fixtures for git-branch-autopilot tests"""
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock
import pytest
import git

from git_branch_autopilot.exceptions import GitOperationError, MergeConflictError
from git_branch_autopilot.services.git import IssueSnapshot


MUTATING_OPERATIONS = {
    "checkout",
    "pull",
    "merge",
    "push",
    "reset_hard",
    "delete_branch",
    "create_branch",
    "update_branch",
    "delete_local_branch",
    "restore_checkout",
}


class FakeGitOperations:
    """In-memory stand-in for GitOperations.

    Branches are plain records; every call is recorded in ``calls`` and any
    operation can be made to fail with ``fail``.
    """

    def __init__(self, target_branch="main"):
        self.target_branch = target_branch
        self.remote_name = "origin"
        self.in_git_operation = False
        self.branches = {}
        self.shas = {target_branch: "sha-main-0"}
        self.head = target_branch
        self.transients = {}
        self.deleted = []
        self.calls = []
        self.failures = {}
        self._counter = 0

    def add_branch(
        self,
        name,
        ahead=1,
        behind=0,
        files=(),
        added_files=None,
        added_lines=(),
        messages=(),
        conflicts=False,
        age_hours=1.0,
    ):
        self.branches[name] = SimpleNamespace(
            ahead=ahead,
            behind=behind,
            files=frozenset(files),
            added_files=list(files if added_files is None else added_files),
            added_lines=list(added_lines),
            messages=list(messages),
            conflicts=conflicts,
            last_activity=datetime.now(timezone.utc) - timedelta(hours=age_hours),
        )
        self.shas[name] = f"sha-{name}-0"
        return self

    def fail(self, operation, branch=None, error=None):
        key = (operation, branch) if branch else operation
        self.failures[key] = error or GitOperationError(operation, branch, "simulated failure")

    def _record(self, operation, *args):
        self.calls.append((operation,) + args)
        if args and (operation, args[0]) in self.failures:
            raise self.failures[(operation, args[0])]
        if operation in self.failures:
            raise self.failures[operation]

    def _new_sha(self, name):
        self._counter += 1
        return f"sha-{name}-{self._counter}"

    def mutating_calls(self):
        return [call for call in self.calls if call[0] in MUTATING_OPERATIONS]

    # Queries

    def fetch(self):
        self._record("fetch")

    def list_branches(self, prefix):
        self._record("list_branches", prefix)
        return [name for name in self.branches if name.startswith(prefix)]

    def count_commits(self, base, head):
        self._record("count_commits", base, head)
        if head in self.branches and base == self.target_branch:
            return self.branches[head].ahead
        if base in self.branches and head == self.target_branch:
            return self.branches[base].behind
        if head not in self.branches and head not in self.shas:
            raise GitOperationError("rev-list", head, "unknown revision")
        return 0

    def changed_files(self, base, head):
        self._record("changed_files", base, head)
        return self.branches[head].files

    def added_files(self, base, head):
        self._record("added_files", base, head)
        return list(self.branches[head].added_files)

    def added_lines(self, base, head):
        self._record("added_lines", base, head)
        return list(self.branches[head].added_lines)

    def commit_messages(self, base, head):
        self._record("commit_messages", base, head)
        return list(self.branches[head].messages)

    def last_commit_date(self, branch_name):
        self._record("last_commit_date", branch_name)
        return self.branches[branch_name].last_activity

    def trial_merge(self, source, target):
        self._record("trial_merge", source, target)
        return not self.branches[source].conflicts

    def ref_for(self, branch_name):
        return branch_name

    def rev_parse(self, ref):
        self._record("rev_parse", ref)
        return self.shas.get(ref, ref)

    def ref_exists(self, ref):
        return ref in self.shas or ref in self.shas.values()

    def head_sha(self):
        return self.shas[self.head]

    def current_ref(self):
        return self.head

    def ensure_clean_worktree(self):
        self._record("ensure_clean_worktree")

    # Mutations

    def checkout(self, branch_name):
        self._record("checkout", branch_name)
        self.head = branch_name

    def restore_checkout(self, ref):
        self._record("restore_checkout", ref)
        self.head = ref

    def pull(self, branch_name):
        self._record("pull", branch_name)

    def merge(self, source, message):
        self._record("merge", source, message)
        if source in self.branches and self.branches[source].conflicts:
            raise MergeConflictError(source)
        if self.head in self.transients:
            self.transients[self.head].append(source)
        self.shas[self.head] = self._new_sha(self.head)

    def reset_hard(self, ref):
        self._record("reset_hard", ref)
        self.shas[self.head] = ref

    def push(self, branch_name):
        self._record("push", branch_name)

    def delete_branch(self, branch_name):
        self._record("delete_branch", branch_name)
        if self.head == branch_name:
            raise GitOperationError(
                "branch", branch_name, f"Cannot delete branch '{branch_name}' checked out"
            )
        self.branches.pop(branch_name, None)
        self.shas.pop(branch_name, None)
        self.deleted.append(branch_name)
        return True

    def create_branch(self, branch_name, start):
        self._record("create_branch", branch_name, start)
        self.transients[branch_name] = []
        self.shas[branch_name] = self.shas[start]
        self.head = branch_name

    def update_branch(self, branch_name, new_ref):
        self._record("update_branch", branch_name, new_ref)
        if new_ref in self.transients:
            data = self.branches[branch_name]
            for merged in self.transients[new_ref]:
                data.files = data.files | self.branches[merged].files
                data.ahead += self.branches[merged].ahead
            self.shas[branch_name] = self.shas[new_ref]
        else:
            self.shas[branch_name] = new_ref

    def delete_local_branch(self, branch_name):
        self._record("delete_local_branch", branch_name)
        self.transients.pop(branch_name, None)
        self.shas.pop(branch_name, None)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_config():
    """Create a mock configuration dictionary."""
    return {
        'verbose': False,
        'debug': False,
        'target_branch': 'main',
        'branch_prefix': 'feature/',
        'remote_name': 'origin',
        'max_branches': 50,
        'protected_branches': ['main', 'master'],
        'dry_run': False,
        'aggressive': False,
        'consolidate': True,
        'git_timeout': 60,
        'github_token': None,
        'max_issues_to_fetch': 500,
    }


def _commit_files(repo, files, message):
    """Write files (path -> content) into the work tree and commit them."""
    repo_path = Path(repo.working_dir)
    for path, content in files.items():
        target = repo_path / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    repo.index.add(list(files))
    return repo.index.commit(message)


@pytest.fixture
def commit_files():
    """Return the helper that writes and commits files."""
    return _commit_files


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with a bare origin remote."""
    origin_path = temp_dir / "origin.git"
    git.Repo.init(origin_path, bare=True).close()

    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    # Create initial commit on main branch
    _commit_files(repo, {"README.md": "# Test Repository\n"}, "Initial commit")
    repo.git.branch('-M', 'main')

    repo.create_remote('origin', str(origin_path))
    repo.git.push('-u', 'origin', 'main')

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def make_branch(git_repo):
    """Return a helper that creates and pushes a branch off main."""
    def _make_branch(name, files, message=None, base='main', push=True):
        git_repo.git.checkout('-b', name, base)
        _commit_files(git_repo, files, message or f"Work on {name}")
        if push:
            git_repo.git.push('origin', name)
        git_repo.git.checkout('main')
        return name

    return _make_branch


@pytest.fixture
def fake_git():
    """Create an in-memory Git adapter."""
    return FakeGitOperations()


@pytest.fixture
def mock_github_service():
    """Create a mock GitHubService with the tracker unavailable."""
    service = Mock()
    service.github_enabled = False
    service.fetch_snapshot = Mock(return_value=IssueSnapshot.empty())
    service.close_issue = Mock()
    service.close = Mock()
    return service
