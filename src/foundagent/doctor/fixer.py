"""Automatic remediation for fixable doctor checks.

Each routine is idempotent. After a routine runs, the originating check is
re-run and its fresh result is returned, so a successful fix reads as pass.
"""

import logging
import shutil
from typing import Callable, Dict, List, Optional

from ..core.config import load_config
from ..errors import FoundagentError
from ..workspace.folders import CodeWorkspace, Folder, ROOT_FOLDER, is_worktree_folder, worktree_folder_path
from ..workspace.git_backend import GitBackend
from ..workspace.state import Repository, State
from .checker import (
    CHECK_CONFIG_STATE,
    CHECK_ORPHANED_REPOSITORIES,
    CHECK_ORPHANED_WORKTREES,
    CHECK_STATE_VALID,
    CHECK_STRUCTURE,
    CHECK_WORKSPACE_FILE,
    CheckResult,
    CheckStatus,
    DoctorChecker,
)

logger = logging.getLogger(__name__)


class Fixer:
    """Dispatch fixable check results to their remediation routine."""

    def __init__(self, checker: DoctorChecker, backend: Optional[GitBackend] = None):
        self.checker = checker
        self.workspace = checker.workspace
        self.backend = backend or checker.backend
        self._fixes: Dict[str, Callable[[], None]] = {
            CHECK_STATE_VALID: self.regenerate_state,
            CHECK_STRUCTURE: self.fix_structure,
            CHECK_ORPHANED_REPOSITORIES: self.remove_orphaned_repositories,
            CHECK_ORPHANED_WORKTREES: self.remove_orphaned_worktrees,
            CHECK_CONFIG_STATE: self.prune_state,
            CHECK_WORKSPACE_FILE: self.rebuild_workspace_file,
        }

    def _needs_fix(self, result: CheckResult) -> bool:
        return result.status != CheckStatus.PASS and result.fixable and result.name in self._fixes

    def _apply(self, result: CheckResult) -> Optional[CheckResult]:
        """Run the routine for ``result``. Returns a failure result if it raised."""
        try:
            self._fixes[result.name]()
        except (FoundagentError, OSError) as e:
            logger.error(f"Fix for '{result.name}' failed: {e}")
            return CheckResult(
                name=result.name,
                status=CheckStatus.FAIL,
                message=f"Automatic fix failed: {e}",
                remediation=result.remediation,
                fixable=False,
            )
        logger.info(f"Applied fix for '{result.name}'")
        return None

    def fix(self, result: CheckResult) -> CheckResult:
        """Apply the fix for ``result`` and return the re-run check.

        Passing results, unfixable results and checks without a registered
        routine are returned unchanged.
        """
        if not self._needs_fix(result):
            return result
        failure = self._apply(result)
        return failure or self.checker.run_check(result.name)

    def fix_all(self, results: List[CheckResult]) -> List[CheckResult]:
        """
        Fix every fixable result in order, then re-run all checks.

        Once one fix has run, later results may describe a workspace that no
        longer exists (a regenerated state clears every "could not load state"
        failure), so each is re-checked before its own fix is attempted. A
        check whose fix raised reports the failure instead of its re-run.
        """
        applied = False
        failures: Dict[str, CheckResult] = {}
        for result in results:
            if applied:
                result = self.checker.run_check(result.name)
            if not self._needs_fix(result):
                continue
            failure = self._apply(result)
            applied = True
            if failure is not None:
                failures[result.name] = failure

        if not applied:
            return results
        return [failures.get(r.name, r) for r in self.checker.run_all_checks()]

    # Routines

    def regenerate_state(self) -> None:
        """Rebuild state from the config plus whatever is cloned on disk."""
        config = load_config(self.workspace.root)
        store = self.workspace.state_store
        try:
            previous = store.load()
        except FoundagentError:
            previous = State()

        state = State(current_branch=previous.current_branch)
        for declared in config.repos:
            if not self.workspace.bare_repo_path(declared.name).is_dir():
                continue
            known = previous.repositories.get(declared.name)
            repo = Repository(
                name=declared.name,
                url=declared.url,
                default_branch=declared.default_branch or (known.default_branch if known else None),
                worktrees=self.workspace.discover_worktrees(declared.name),
            )
            if known is not None:
                repo.added_at = known.added_at
            state.repositories[declared.name] = repo

        store.save(state)
        logger.info(f"Regenerated state with {len(state.repositories)} repositories")

    def fix_structure(self) -> None:
        if not self.workspace.state_store.exists():
            self.regenerate_state()
        self.workspace.bare_dir.mkdir(parents=True, exist_ok=True)
        self.workspace.worktrees_dir.mkdir(parents=True, exist_ok=True)

    def remove_orphaned_repositories(self) -> None:
        state = self.workspace.state_store.load()
        for path in self.checker.find_orphaned_repositories(state):
            logger.info(f"Removing orphaned bare clone {path.name}")
            shutil.rmtree(path)

    def remove_orphaned_worktrees(self) -> None:
        state = self.workspace.state_store.load()
        for path in self.checker.find_orphaned_worktrees(state):
            logger.info(f"Removing orphaned worktree {path}")
            shutil.rmtree(path)

        # Let each bare clone forget the worktrees that just disappeared
        for repo in state.sorted_repositories():
            bare_path = self.workspace.bare_repo_path(repo.name)
            if not bare_path.is_dir():
                continue
            try:
                self.backend.worktree_prune(bare_path)
            except FoundagentError as e:
                logger.warning(f"git worktree prune failed: {e}", extra={"repo": repo.name})

    def prune_state(self) -> None:
        config_urls = {repo.url for repo in load_config(self.workspace.root).repos}
        with self.workspace.state_store.transaction() as state:
            for name in [n for n, repo in state.repositories.items() if repo.url not in config_urls]:
                logger.info(f"Dropping {name} from state (not in config)")
                del state.repositories[name]

    def rebuild_workspace_file(self) -> None:
        """Regenerate worktree folders from state, keeping every other entry."""
        state = self.workspace.state_store.load()
        folders = self.workspace.folders

        try:
            previous = folders.load()
            keep_root = previous.has_root()
        except FoundagentError:
            previous = CodeWorkspace()
            keep_root = True

        kept = [f for f in previous.folders if not is_worktree_folder(f.path)]
        if keep_root and not any(f.path == ROOT_FOLDER for f in kept):
            kept.insert(0, Folder(path=ROOT_FOLDER))

        rebuilt = [
            Folder(path=worktree_folder_path(repo.name, branch))
            for repo in state.sorted_repositories()
            for branch in repo.worktrees
        ]
        previous.folders = kept + rebuilt
        folders.save(previous)
