"""Clone declared repositories into the workspace and create their default worktree."""

import logging
import shutil
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..core.config import RepoConfig, WorkspaceConfig, infer_repo_name, load_config, save_config
from ..errors import ErrorCode, FoundagentError
from .engine import RepositoryEngine
from .folders import worktree_folder_path
from .parallel import execute_parallel
from .reconcile import ReconcileResult, reconcile
from .state import Repository

logger = logging.getLogger(__name__)


class AddStatus(str, Enum):
    ADDED = "added"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AddResult:
    """Outcome of cloning one repository."""
    name: str
    url: str
    status: AddStatus
    default_branch: Optional[str] = None
    worktree: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["status"] = self.status.value
        return {k: v for k, v in data.items() if v is not None}


class RepositoryManager(RepositoryEngine):
    """Bring the workspace in line with its declared repositories."""

    def plan(self) -> ReconcileResult:
        """Reconcile the declared configuration against state without changing anything."""
        return reconcile(load_config(self.workspace.root).repos, self.load_state())

    def declare(self, url: str, name: Optional[str] = None, default_branch: Optional[str] = None) -> RepoConfig:
        """Add a repository entry to the config file.

        Raises:
            FoundagentError: E002 if the URL or name is unusable or the name
                is already declared; the config file is left untouched
        """
        config = load_config(self.workspace.root)
        existing = config.get_repo(name) if name else None
        if existing is None:
            try:
                existing = config.get_repo(infer_repo_name(url))
            except ValueError:
                existing = None
        if existing is not None:
            raise FoundagentError(
                ErrorCode.INVALID_NAME,
                f"Repository '{existing.name}' is already declared ({existing.url})",
                f"Choose another name with 'fa add {url} <name>', or run 'fa remove {existing.name}' first",
            )
        try:
            repo = config.add_repo(url, name=name, default_branch=default_branch)
        except ValueError as e:
            raise FoundagentError(
                ErrorCode.INVALID_NAME,
                f"Cannot add repository {url}",
                "Use an ssh, https or file:// URL, and a name made of letters, digits, '.', '-' and '_'",
                e,
            ) from e
        save_config(self.workspace.root, config)
        return repo

    def clone_missing(self, names: Optional[Sequence[str]] = None) -> List[AddResult]:
        """
        Clone every declared repository that is not in state yet.

        Clones run in parallel. State and the editor folder list are updated
        once, after all clones finish, for the repositories that succeeded.

        Args:
            names: Restrict to these declared names

        Returns:
            One result per repository considered, in declaration order
        """
        config = load_config(self.workspace.root)
        plan = reconcile(config.repos, self.load_state())

        pending = plan.to_clone
        if names:
            pending = [repo for repo in pending if repo.name in names]

        results = {
            repo.name: AddResult(name=repo.name, url=repo.url, status=AddStatus.SKIPPED, error="already cloned")
            for repo in plan.up_to_date
            if not names or repo.name in names
        }
        if not pending:
            return list(results.values())

        outcomes = execute_parallel(
            pending,
            lambda repo: self._clone_one(repo, config, results),
            max_workers=self.max_workers,
        )

        added: List[Repository] = []
        for outcome in outcomes:
            repo = outcome.item
            if outcome.ok:
                result = results[repo.name]
                added.append(Repository(
                    name=repo.name,
                    url=repo.url,
                    default_branch=result.default_branch,
                    worktrees=[result.worktree] if result.worktree else [],
                ))
            else:
                logger.error(f"Clone failed: {outcome.error}", extra={"repo": repo.name})
                results[repo.name] = AddResult(
                    name=repo.name, url=repo.url, status=AddStatus.FAILED, error=str(outcome.error)
                )

        self._record(added)
        ordered = [results[repo.name] for repo in config.repos if repo.name in results]
        return ordered

    def _clone_one(self, repo: RepoConfig, config: WorkspaceConfig, results: Dict[str, AddResult]) -> None:
        bare_path = self.workspace.bare_repo_path(repo.name)
        if bare_path.exists():
            raise FoundagentError(
                ErrorCode.DIRECTORY_NOT_EMPTY,
                f"Bare clone already exists: {bare_path}",
                "Run 'fa doctor --fix' to rebuild state, or delete the directory",
            )

        worktree_path = None
        try:
            self.backend.clone_bare(repo.url, bare_path)
            branch = repo.default_branch or self.backend.default_branch(bare_path)
            result = AddResult(name=repo.name, url=repo.url, status=AddStatus.ADDED, default_branch=branch)
            if config.settings.auto_create_worktree:
                worktree_path = self.workspace.worktree_path(repo.name, branch)
                self.backend.worktree_add(bare_path, worktree_path, branch)
                result.worktree = branch
        except (FoundagentError, OSError):
            self._discard_clone(repo.name, bare_path, worktree_path)
            raise

        results[repo.name] = result

    def _discard_clone(self, name: str, bare_path: Path, worktree_path: Optional[Path]) -> None:
        """Delete what a failed clone left behind so the next attempt starts clean."""
        for path in (worktree_path, bare_path):
            if path is None or not path.exists():
                continue
            logger.debug(f"Removing partial clone artifact {path}", extra={"repo": name})
            try:
                shutil.rmtree(path)
            except OSError as e:
                logger.warning(f"Could not remove {path}: {e}", extra={"repo": name})

        if worktree_path is not None:
            self.workspace.prune_empty_dirs(name, worktree_path, keep_base=False)

    def _record(self, added: List[Repository]) -> None:
        if not added:
            return
        with self.workspace.state_store.transaction() as state:
            for repo in added:
                state.repositories[repo.name] = repo

        folders = [worktree_folder_path(repo.name, branch) for repo in added for branch in repo.worktrees]
        if folders:
            try:
                self.workspace.folders.add_folders(folders)
            except FoundagentError as e:
                logger.warning(f"Could not update workspace file: {e}")
