"""Configuration handling for git-branch-autopilot"""

import json
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import List, Optional, Tuple, Union

from git_branch_autopilot.exceptions import ConfigError


@dataclass(frozen=True)
class ScoringPolicy:
    """Thresholds, weights and path heuristics used to score and decide on branches.

    Every number the readiness evaluator, the vision scorer and the decision
    engine compare against lives here. Rule precedence is fixed in code; only the
    constants are tunable.
    """

    # Readiness probe points
    merge_clean_points: int = 3
    quality_points: int = 2
    test_coverage_points: int = 2
    fresh_current_points: int = 2
    fresh_behind_points: int = 1
    max_behind_acceptable: int = 10

    # Code-quality probe
    max_todo_markers: int = 5
    max_failure_prone_calls: int = 10
    todo_marker_pattern: str = r"\b(TODO|FIXME|XXX|HACK)\b"
    failure_prone_patterns: Tuple[str, ...] = (r"\.unwrap\(\)", r"\.expect\(")

    # Test-coverage probe
    max_untested_impl_files: int = 2
    implementation_extensions: Tuple[str, ...] = (
        ".py", ".rs", ".go", ".js", ".jsx", ".ts", ".tsx",
        ".java", ".kt", ".rb", ".c", ".cc", ".cpp", ".h", ".swift",
    )
    test_path_patterns: Tuple[str, ...] = (
        r"(^|/)(tests?|__tests__|spec)/",
        r"(^|/)test_[^/]+$",
        r"_test\.[^/]+$",
        r"\.(test|spec)\.[^/]+$",
    )

    # Vision alignment
    vision_base: int = 5
    vision_min: int = 1
    vision_max: int = 10
    high_priority_points: int = 3
    medium_priority_points: int = 2
    low_priority_points: int = 1
    service_layer_points: int = 2
    ui_component_points: int = 1
    domain_keyword_points: int = 2
    styling_points: int = 1
    build_config_points: int = 1
    build_config_penalty: int = 1
    build_config_penalty_commits: int = 10
    service_layer_patterns: Tuple[str, ...] = (r"(^|/)services?/", r"_service\.[^/]+$")
    ui_component_patterns: Tuple[str, ...] = (r"(^|/)(components|widgets|views|ui)/",)
    domain_keywords: Tuple[str, ...] = ("integration", "wallet", "arweave")
    styling_patterns: Tuple[str, ...] = (r"\.(css|scss|sass|less|styl)$", r"(^|/)styles?/")
    build_config_patterns: Tuple[str, ...] = (
        r"(^|/)(Cargo\.toml|Cargo\.lock|build\.rs|Trunk\.toml)$",
        r"(^|/)(package\.json|package-lock\.json|tsconfig\.json)$",
        r"(^|/)(pyproject\.toml|setup\.cfg|setup\.py|requirements[^/]*\.txt)$",
        r"(^|/)(Makefile|Dockerfile)$",
    )

    # Decision rules
    excellent_score: int = 15
    excellent_max_commits: int = 5
    recent_score: int = 12
    recent_max_age_hours: float = 24.0
    aggressive_score: int = 10
    aggressive_max_issues: int = 1

    # Remaining-branch priority labels
    high_priority_score: int = 12
    medium_priority_score: int = 9

    def __post_init__(self):
        """Validate the policy after initialization."""
        self._validate_points()
        self._validate_vision_range()
        self._validate_patterns()

    def _validate_points(self):
        """Validate weights and thresholds are not negative."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0:
                raise ValueError(f"{f.name} must not be negative, got {value}")

    def _validate_vision_range(self):
        """Validate vision_min <= vision_base <= vision_max."""
        if not self.vision_min <= self.vision_base <= self.vision_max:
            raise ValueError(
                f"vision_base must lie within [{self.vision_min}, {self.vision_max}], "
                f"got {self.vision_base}"
            )

    def _validate_patterns(self):
        """Validate every regular expression compiles."""
        patterns = [self.todo_marker_pattern]
        patterns.extend(self.failure_prone_patterns)
        patterns.extend(self.test_path_patterns)
        patterns.extend(self.service_layer_patterns)
        patterns.extend(self.ui_component_patterns)
        patterns.extend(self.styling_patterns)
        patterns.extend(self.build_config_patterns)
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid pattern {pattern!r}: {e}")

    @property
    def readiness_ceiling(self) -> int:
        """Highest readiness score the probes can award."""
        return (
            self.merge_clean_points
            + self.quality_points
            + self.test_coverage_points
            + max(self.fresh_current_points, self.fresh_behind_points)
        )

    @classmethod
    def from_dict(cls, policy_dict: dict) -> "ScoringPolicy":
        """Create a policy from a dictionary, ignoring unknown keys."""
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in policy_dict.items():
            if key not in known:
                continue
            if isinstance(value, list):
                value = tuple(value)
            values[key] = value
        return cls(**values)


@dataclass
class Config:
    """Configuration for git-branch-autopilot with validation."""

    # Branch selection
    target_branch: str = "main"
    branch_prefix: str = "feature/"
    remote_name: str = "origin"
    max_branches: int = 50
    protected_branches: List[str] = field(default_factory=lambda: ["main", "master"])

    # Execution modes
    dry_run: bool = False
    aggressive: bool = False
    consolidate: bool = True
    verbose: bool = False
    debug: bool = False
    git_timeout: float = 300.0  # Seconds before a Git command is considered hung

    # GitHub integration
    github_token: Optional[str] = None
    max_issues_to_fetch: int = 500

    policy: ScoringPolicy = field(default_factory=ScoringPolicy)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_target_branch()
        self._validate_branch_prefix()
        self._validate_max_branches()
        self._validate_protected_branches()
        self._validate_git_timeout()
        self._validate_max_issues()

    def _validate_target_branch(self):
        """Validate target_branch is not empty."""
        if not self.target_branch or not self.target_branch.strip():
            raise ValueError("target_branch cannot be empty")
        self.target_branch = self.target_branch.strip()

    def _validate_branch_prefix(self):
        """Validate branch_prefix is not empty."""
        if not self.branch_prefix or not self.branch_prefix.strip():
            raise ValueError("branch_prefix cannot be empty")
        self.branch_prefix = self.branch_prefix.strip()

    def _validate_max_branches(self):
        """Validate max_branches is positive."""
        if self.max_branches <= 0:
            raise ValueError(f"max_branches must be positive, got {self.max_branches}")

    def _validate_protected_branches(self):
        """Validate protected_branches list."""
        if not isinstance(self.protected_branches, list):
            raise ValueError("protected_branches must be a list")

        # Own the list; the target branch is never a candidate
        self.protected_branches = list(self.protected_branches)
        if self.target_branch not in self.protected_branches:
            self.protected_branches.append(self.target_branch)

    def _validate_git_timeout(self):
        """Validate git_timeout is positive."""
        if self.git_timeout <= 0:
            raise ValueError(f"git_timeout must be positive, got {self.git_timeout}")

    def _validate_max_issues(self):
        """Validate max_issues_to_fetch is positive."""
        if self.max_issues_to_fetch <= 0:
            raise ValueError(
                f"max_issues_to_fetch must be positive, got {self.max_issues_to_fetch}"
            )

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        data = asdict(self)
        data["policy"] = {k: list(v) if isinstance(v, tuple) else v for k, v in data["policy"].items()}
        return data

    def get(self, key: str, default=None):
        """Get config value by key, for services that accept dict configs."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}

        policy = filtered.get("policy")
        if isinstance(policy, dict):
            filtered["policy"] = ScoringPolicy.from_dict(policy)
        elif policy is None:
            filtered.pop("policy", None)

        return cls(**filtered)

    @classmethod
    def from_file(cls, path: Union[str, Path], overrides: Optional[dict] = None) -> "Config":
        """Load Config from a JSON file, applying non-None overrides on top."""
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")

        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        return cls.from_dict(data)


def get_policy(config: Union[Config, dict]) -> ScoringPolicy:
    """Return the scoring policy of a Config or of a plain config dictionary."""
    policy = config.get("policy")
    if policy is None:
        return ScoringPolicy()
    if isinstance(policy, dict):
        return ScoringPolicy.from_dict(policy)
    return policy
