"""Remove a repository from the workspace: config, worktrees, bare clone and state."""

import logging
import os
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..core.config import load_config, save_config
from ..errors import ErrorCode, FoundagentError, GuardViolationError
from .git_backend import GitBackend
from .layout import Workspace
from .state import Repository

logger = logging.getLogger(__name__)


@dataclass
class RemovalResult:
    """What a removal actually did. Each step is recorded independently."""
    repo_name: str
    removed_from_config: bool = False
    bare_clone_deleted: bool = False
    worktrees_deleted: int = 0
    config_only: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


class RemovalEngine:
    """Guarded, step-by-step repository removal."""

    def __init__(self, workspace: Workspace, backend: Optional[GitBackend] = None):
        self.workspace = workspace
        self.backend = backend or GitBackend()

    def remove_repo(
        self,
        name: str,
        force: bool = False,
        config_only: bool = False,
        cwd: Optional[Path] = None,
    ) -> RemovalResult:
        """
        Remove ``name`` from the workspace.

        Guards run before anything is touched: the repository must be in
        state, ``cwd`` must not be inside one of its worktrees, and unless
        ``force`` (or ``config_only``) no worktree may have uncommitted changes.

        With ``config_only`` only the config entry and editor folders are
        removed; state, bare clone and worktrees stay on disk.

        Args:
            name: Repository name
            force: Remove even when worktrees have uncommitted changes
            config_only: Only edit the config and the editor folder list
            cwd: Caller's working directory (defaults to the process cwd)

        Returns:
            RemovalResult; a failure after the guards is reported in ``error``
            with the steps already completed left set

        Raises:
            FoundagentError: If the state cannot be loaded or the repository is unknown
            GuardViolationError: If the cwd or dirty-worktree guard refuses
        """
        state = self.workspace.state_store.load()
        repo = state.repositories.get(name)
        if repo is None:
            raise FoundagentError(
                ErrorCode.INVALID_INPUT,
                f"Repository '{name}' not found in workspace",
                "Run 'fa status' to list repositories",
            )

        self._guard_cwd(name, Path(cwd or os.getcwd()))
        worktrees = self._worktree_branches(repo)
        if not force and not config_only:
            self._guard_clean(name, worktrees)

        result = RemovalResult(repo_name=name, config_only=config_only)

        try:
            config = load_config(self.workspace.root)
            result.removed_from_config = config.remove_repo(name)
            save_config(self.workspace.root, config)
        except (FoundagentError, OSError) as e:
            return self._partial(result, f"failed to remove from config: {e}")

        if config_only:
            try:
                self.workspace.folders.remove_repo_folders(name)
            except FoundagentError as e:
                return self._partial(result, f"failed to update workspace file: {e}")
            return result

        try:
            self._remove_worktrees(result, worktrees)
        except (FoundagentError, OSError) as e:
            return self._partial(result, f"failed to remove worktrees: {e}")

        bare_path = self.workspace.bare_repo_path(name)
        try:
            if bare_path.exists():
                shutil.rmtree(bare_path)
            result.bare_clone_deleted = True
        except OSError as e:
            return self._partial(result, f"failed to delete bare clone: {e}")

        try:
            self.workspace.folders.remove_repo_folders(name)
        except FoundagentError as e:
            return self._partial(result, f"failed to update workspace file: {e}")

        try:
            with self.workspace.state_store.transaction() as current:
                current.repositories.pop(name, None)
        except FoundagentError as e:
            return self._partial(result, f"failed to update state: {e}")

        logger.info(f"Removed repository {name}")
        return result

    def _worktree_branches(self, repo: Repository) -> List[str]:
        """Worktrees recorded in state plus any found on disk."""
        branches = list(repo.worktrees)
        for branch in self.workspace.discover_worktrees(repo.name):
            if branch not in branches:
                branches.append(branch)
        return branches

    def _guard_cwd(self, name: str, cwd: Path) -> None:
        base = self.workspace.worktree_base_path(name).resolve()
        try:
            cwd.resolve().relative_to(base)
        except ValueError:
            return
        raise GuardViolationError(
            ErrorCode.INVALID_OPERATION,
            f"Cannot remove '{name}' while inside its worktree",
            "Change to a directory outside repos/worktrees/" + name + " first",
        )

    def _guard_clean(self, name: str, branches: List[str]) -> None:
        dirty = []
        for branch in branches:
            worktree = self.workspace.worktree_path(name, branch)
            if not worktree.is_dir():
                continue
            try:
                if self.backend.has_uncommitted_changes(worktree):
                    dirty.append(branch)
            except FoundagentError as e:
                logger.debug(f"Could not check {worktree} for changes: {e}", extra={"repo": name})
        if dirty:
            raise GuardViolationError(
                ErrorCode.DIRTY_WORKTREE,
                f"Uncommitted changes in worktrees: {', '.join(dirty)}",
                "Commit or stash your changes, or use --force to remove anyway",
            )

    def _remove_worktrees(self, result: RemovalResult, branches: List[str]) -> None:
        name = result.repo_name
        bare_path = self.workspace.bare_repo_path(name)
        for branch in branches:
            worktree = self.workspace.worktree_path(name, branch)
            if not worktree.exists():
                continue
            self.backend.worktree_remove(bare_path, worktree)
            result.worktrees_deleted += 1

        base = self.workspace.worktree_base_path(name)
        if base.exists():
            shutil.rmtree(base)

    def _partial(self, result: RemovalResult, message: str) -> RemovalResult:
        logger.error(message, extra={"repo": result.repo_name})
        result.error = message
        return result
