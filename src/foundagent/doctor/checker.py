"""Side-effect free health checks for a workspace."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..core.config import load_config
from ..errors import FoundagentError
from ..workspace.folders import worktree_key
from ..workspace.git_backend import GitBackend
from ..workspace.layout import GIT_MARKER, Workspace
from ..workspace.state import State

logger = logging.getLogger(__name__)

CHECK_GIT_INSTALLED = "Git installed"
CHECK_GIT_VERSION = "Git version"
CHECK_STRUCTURE = "Workspace structure"
CHECK_CONFIG_VALID = "Config file valid"
CHECK_STATE_VALID = "State file valid"
CHECK_REPOSITORIES = "Repository integrity"
CHECK_ORPHANED_REPOSITORIES = "Orphaned repositories"
CHECK_WORKTREES = "Worktree integrity"
CHECK_ORPHANED_WORKTREES = "Orphaned worktrees"
CHECK_CONFIG_STATE = "Config/state consistency"
CHECK_WORKSPACE_FILE = "Workspace file consistency"

REGENERATE_STATE_HINT = "Run 'fa doctor --fix' to regenerate state file"


class CheckStatus(str, Enum):
    """Doctor check verdict."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass
class CheckResult:
    """Result of a doctor check."""
    name: str
    status: CheckStatus
    message: str
    remediation: Optional[str] = None
    fixable: bool = False
    details: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASS

    def to_dict(self) -> Dict:
        data = {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "fixable": self.fixable,
        }
        if self.remediation:
            data["remediation"] = self.remediation
        if self.details:
            data["details"] = list(self.details)
        return data


@dataclass
class DoctorSummary:
    total: int = 0
    passed: int = 0
    warnings: int = 0
    failed: int = 0

    @classmethod
    def from_results(cls, results: List[CheckResult]) -> "DoctorSummary":
        summary = cls(total=len(results))
        for result in results:
            if result.status == CheckStatus.PASS:
                summary.passed += 1
            elif result.status == CheckStatus.WARN:
                summary.warnings += 1
            else:
                summary.failed += 1
        return summary

    @property
    def healthy(self) -> bool:
        return self.failed == 0


def _state_unavailable(name: str) -> CheckResult:
    return CheckResult(
        name=name,
        status=CheckStatus.FAIL,
        message="Could not load state file",
        remediation=REGENERATE_STATE_HINT,
        fixable=True,
    )


class DoctorChecker:
    """Validate that config, state and the filesystem agree."""

    def __init__(self, workspace: Workspace, backend: Optional[GitBackend] = None):
        self.workspace = workspace
        self.backend = backend or GitBackend()
        self._checks: List[Tuple[str, Callable[[], CheckResult]]] = [
            (CHECK_GIT_INSTALLED, self.check_git_installed),
            (CHECK_GIT_VERSION, self.check_git_version),
            (CHECK_STRUCTURE, self.check_structure),
            (CHECK_CONFIG_VALID, self.check_config_valid),
            (CHECK_STATE_VALID, self.check_state_valid),
            (CHECK_REPOSITORIES, self.check_repositories),
            (CHECK_ORPHANED_REPOSITORIES, self.check_orphaned_repositories),
            (CHECK_WORKTREES, self.check_worktrees),
            (CHECK_ORPHANED_WORKTREES, self.check_orphaned_worktrees),
            (CHECK_CONFIG_STATE, self.check_config_state_consistency),
            (CHECK_WORKSPACE_FILE, self.check_workspace_file),
        ]

    @property
    def check_names(self) -> List[str]:
        return [name for name, _ in self._checks]

    def run_all_checks(self) -> List[CheckResult]:
        """Run every check in order."""
        return [check() for _, check in self._checks]

    def run_check(self, name: str) -> CheckResult:
        """Run a single check by name.

        Raises:
            KeyError: If no check has that name
        """
        for check_name, check in self._checks:
            if check_name == name:
                return check()
        raise KeyError(name)

    def _load_state(self) -> Optional[State]:
        try:
            return self.workspace.state_store.load()
        except FoundagentError as e:
            logger.debug(f"State unavailable for doctor: {e}")
            return None

    # Git

    def check_git_installed(self) -> CheckResult:
        if not self.backend.is_installed():
            return CheckResult(
                name=CHECK_GIT_INSTALLED,
                status=CheckStatus.FAIL,
                message="Git is not installed or not in PATH",
                remediation="Install Git from https://git-scm.com/downloads",
            )
        return CheckResult(name=CHECK_GIT_INSTALLED, status=CheckStatus.PASS, message="Git is installed")

    def check_git_version(self) -> CheckResult:
        try:
            version = self.backend.version()
        except FoundagentError:
            return CheckResult(
                name=CHECK_GIT_VERSION,
                status=CheckStatus.FAIL,
                message="Failed to get Git version",
                remediation="Ensure Git is properly installed",
            )
        return CheckResult(name=CHECK_GIT_VERSION, status=CheckStatus.PASS, message=version)

    # Structure and documents

    def check_structure(self) -> CheckResult:
        ws = self.workspace
        required = [
            (ws.config_path, CheckStatus.FAIL, False, ".foundagent.yaml not found",
             "Run 'fa init' to initialize the workspace"),
            (ws.foundagent_dir, CheckStatus.FAIL, False, ".foundagent/ directory not found",
             "Run 'fa init --force' to reinitialize the workspace"),
            (ws.state_path, CheckStatus.FAIL, True, "state.json not found", REGENERATE_STATE_HINT),
            (ws.repos_dir, CheckStatus.FAIL, False, "repos/ directory not found",
             "Run 'fa init --force' to reinitialize the workspace"),
            (ws.bare_dir, CheckStatus.WARN, True, "repos/.bare/ directory not found",
             "Run 'fa doctor --fix' to create it"),
            (ws.worktrees_dir, CheckStatus.WARN, True, "repos/worktrees/ directory not found",
             "Run 'fa doctor --fix' to create it"),
        ]
        for path, status, fixable, message, remediation in required:
            if not path.exists():
                return CheckResult(
                    name=CHECK_STRUCTURE,
                    status=status,
                    message=message,
                    remediation=remediation,
                    fixable=fixable,
                )
        return CheckResult(name=CHECK_STRUCTURE, status=CheckStatus.PASS, message="All required directories present")

    def check_config_valid(self) -> CheckResult:
        try:
            load_config(self.workspace.root)
        except FoundagentError as e:
            return CheckResult(
                name=CHECK_CONFIG_VALID,
                status=CheckStatus.FAIL,
                message="Config file is invalid or corrupted",
                remediation="Check .foundagent.yaml syntax or run 'fa init --force'",
                details=[str(e)],
            )
        return CheckResult(name=CHECK_CONFIG_VALID, status=CheckStatus.PASS, message="Config file is valid")

    def check_state_valid(self) -> CheckResult:
        try:
            self.workspace.state_store.load()
        except FoundagentError as e:
            return CheckResult(
                name=CHECK_STATE_VALID,
                status=CheckStatus.FAIL,
                message="State file is invalid or corrupted",
                remediation=REGENERATE_STATE_HINT,
                fixable=True,
                details=[str(e)],
            )
        return CheckResult(name=CHECK_STATE_VALID, status=CheckStatus.PASS, message="State file is valid")

    # Repositories

    def check_repositories(self) -> CheckResult:
        state = self._load_state()
        if state is None:
            return _state_unavailable(CHECK_REPOSITORIES)

        issues = []
        for repo in state.sorted_repositories():
            bare_path = self.workspace.bare_repo_path(repo.name)
            if not bare_path.is_dir():
                issues.append(f"{repo.name}: bare clone missing at {bare_path}")
            elif not (bare_path / "objects").is_dir():
                issues.append(f"{repo.name}: bare clone is corrupted (no objects directory)")

        if issues:
            return CheckResult(
                name=CHECK_REPOSITORIES,
                status=CheckStatus.FAIL,
                message=f"Found {len(issues)} repository issue(s)",
                remediation="Run 'fa remove <repo>' and re-add the affected repositories",
                details=issues,
            )
        return CheckResult(
            name=CHECK_REPOSITORIES,
            status=CheckStatus.PASS,
            message=f"All {len(state.repositories)} repositories valid",
        )

    def find_orphaned_repositories(self, state: State) -> List[Path]:
        bare_dir = self.workspace.bare_dir
        if not bare_dir.is_dir():
            return []
        expected = {f"{name}.git" for name in state.repositories}
        return [entry for entry in sorted(bare_dir.iterdir()) if entry.is_dir() and entry.name not in expected]

    def check_orphaned_repositories(self) -> CheckResult:
        state = self._load_state()
        if state is None:
            return _state_unavailable(CHECK_ORPHANED_REPOSITORIES)

        if not self.workspace.bare_dir.is_dir():
            return CheckResult(
                name=CHECK_ORPHANED_REPOSITORIES, status=CheckStatus.PASS, message="No repositories found"
            )

        orphaned = self.find_orphaned_repositories(state)
        if orphaned:
            return CheckResult(
                name=CHECK_ORPHANED_REPOSITORIES,
                status=CheckStatus.WARN,
                message=f"Found {len(orphaned)} orphaned repository directories",
                remediation="Run 'fa doctor --fix' to remove orphaned directories",
                fixable=True,
                details=[entry.name for entry in orphaned],
            )
        return CheckResult(
            name=CHECK_ORPHANED_REPOSITORIES, status=CheckStatus.PASS, message="No orphaned repositories"
        )

    # Worktrees

    def check_worktrees(self) -> CheckResult:
        state = self._load_state()
        if state is None:
            return _state_unavailable(CHECK_WORKTREES)

        issues = []
        total = 0
        for repo in state.sorted_repositories():
            for branch in repo.worktrees:
                total += 1
                path = self.workspace.worktree_path(repo.name, branch)
                if not path.is_dir():
                    issues.append(f"{repo.name}/{branch}: worktree directory missing")
                elif not (path / GIT_MARKER).exists():
                    issues.append(f"{repo.name}/{branch}: not a git worktree (no .git)")

        if issues:
            return CheckResult(
                name=CHECK_WORKTREES,
                status=CheckStatus.FAIL,
                message=f"Found {len(issues)} worktree issue(s)",
                remediation="Run 'fa remove' to clean up, or recreate the worktree",
                details=issues,
            )
        return CheckResult(name=CHECK_WORKTREES, status=CheckStatus.PASS, message=f"All {total} worktrees valid")

    def find_orphaned_worktrees(self, state: State) -> List[Path]:
        """Worktree directories on disk with no matching state entry."""
        worktrees_dir = self.workspace.worktrees_dir
        if not worktrees_dir.is_dir():
            return []

        orphaned = []
        for entry in sorted(worktrees_dir.iterdir()):
            if not entry.is_dir():
                continue
            repo = state.repositories.get(entry.name)
            if repo is None:
                orphaned.append(entry)
                continue
            for branch in self.workspace.discover_worktrees(repo.name):
                if branch not in repo.worktrees:
                    orphaned.append(self.workspace.worktree_path(repo.name, branch))
        return orphaned

    def check_orphaned_worktrees(self) -> CheckResult:
        state = self._load_state()
        if state is None:
            return _state_unavailable(CHECK_ORPHANED_WORKTREES)

        if not self.workspace.worktrees_dir.is_dir():
            return CheckResult(name=CHECK_ORPHANED_WORKTREES, status=CheckStatus.PASS, message="No worktrees found")

        orphaned = self.find_orphaned_worktrees(state)
        if orphaned:
            return CheckResult(
                name=CHECK_ORPHANED_WORKTREES,
                status=CheckStatus.WARN,
                message=f"Found {len(orphaned)} orphaned worktree directories",
                remediation="Run 'fa doctor --fix' to remove orphaned entries",
                fixable=True,
                details=[path.relative_to(self.workspace.worktrees_dir).as_posix() for path in orphaned],
            )
        return CheckResult(name=CHECK_ORPHANED_WORKTREES, status=CheckStatus.PASS, message="No orphaned worktrees")

    # Cross-document consistency

    def check_config_state_consistency(self) -> CheckResult:
        try:
            config = load_config(self.workspace.root)
        except FoundagentError:
            return CheckResult(
                name=CHECK_CONFIG_STATE,
                status=CheckStatus.FAIL,
                message="Could not load config file",
                remediation="Check .foundagent.yaml syntax",
            )
        state = self._load_state()
        if state is None:
            return _state_unavailable(CHECK_CONFIG_STATE)

        config_urls = {repo.url for repo in config.repos}
        state_urls = state.urls()

        missing = sorted(url for url in config_urls if url not in state_urls)
        if missing:
            return CheckResult(
                name=CHECK_CONFIG_STATE,
                status=CheckStatus.FAIL,
                message=f"{len(missing)} repositories in config but not in state",
                remediation="Run 'fa add' to clone missing repositories",
                details=missing,
            )

        stale = sorted(url for url in state_urls if url not in config_urls)
        if stale:
            return CheckResult(
                name=CHECK_CONFIG_STATE,
                status=CheckStatus.WARN,
                message=f"{len(stale)} repositories in state but not in config",
                remediation="Run 'fa doctor --fix' to clean up state file",
                fixable=True,
                details=[state_urls[url] for url in stale],
            )
        return CheckResult(name=CHECK_CONFIG_STATE, status=CheckStatus.PASS, message="Config and state are in sync")

    def check_workspace_file(self) -> CheckResult:
        state = self._load_state()
        if state is None:
            return _state_unavailable(CHECK_WORKSPACE_FILE)

        try:
            document = self.workspace.folders.load()
        except FoundagentError:
            return CheckResult(
                name=CHECK_WORKSPACE_FILE,
                status=CheckStatus.WARN,
                message="Could not load workspace file",
                remediation="Run 'fa doctor --fix' to regenerate workspace file",
                fixable=True,
            )

        expected = {
            f"{repo.name}/{branch}" for repo in state.repositories.values() for branch in repo.worktrees
        }
        listed = {key for key in map(worktree_key, document.paths()) if key}

        missing = sorted(expected - listed)
        extra = sorted(listed - expected)
        if missing or extra:
            return CheckResult(
                name=CHECK_WORKSPACE_FILE,
                status=CheckStatus.WARN,
                message=f"Workspace file out of sync ({len(missing)} missing, {len(extra)} extra)",
                remediation="Run 'fa doctor --fix' to sync workspace file",
                fixable=True,
                details=[f"missing: {p}" for p in missing] + [f"extra: {p}" for p in extra],
            )
        return CheckResult(
            name=CHECK_WORKSPACE_FILE, status=CheckStatus.PASS, message="Workspace file is in sync with state"
        )
