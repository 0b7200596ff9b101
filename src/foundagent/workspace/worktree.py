"""Branch-wide worktree management: create, list, switch and remove one branch's
worktrees across every repository in the workspace.

Creation and removal fan out in parallel. State and the editor folder list
are updated once, after every repository has finished.
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import ErrorCode, FoundagentError, GuardViolationError
from .engine import DEFAULT_BRANCH, RepositoryEngine, resolve_branch
from .folders import worktree_folder_path
from .parallel import execute_parallel
from .state import Repository, State

logger = logging.getLogger(__name__)


class WorktreeStatus(str, Enum):
    CREATED = "created"
    REMOVED = "removed"
    FAILED = "failed"


@dataclass
class WorktreeResult:
    """Outcome of creating or removing one repository's worktree."""
    name: str
    branch: str
    status: WorktreeStatus
    path: Optional[str] = None
    source_branch: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["status"] = self.status.value
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class WorktreeInfo:
    """One worktree on disk, as shown by ``fa wt list``."""
    name: str
    branch: str
    path: str
    status: str = "clean"
    is_current: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class SwitchResult:
    branch: str
    previous_branch: Optional[str] = None
    already_on: bool = False
    created: List[WorktreeResult] = field(default_factory=list)
    # Repositories that still have no worktree for the branch
    missing: List[str] = field(default_factory=list)
    # Repositories with uncommitted changes left behind on the previous branch
    dirty: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "switched_to": self.branch,
            "previous_branch": self.previous_branch,
            "already_on": self.already_on,
            "created": [r.to_dict() for r in self.created],
            "missing": self.missing,
            "dirty": self.dirty,
        }


@dataclass
class BranchRemovalResult:
    branch: str
    results: List[WorktreeResult] = field(default_factory=list)
    branches_deleted: List[str] = field(default_factory=list)
    # repo name -> why its branch was kept
    branch_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == WorktreeStatus.FAILED)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.branch_errors

    def to_dict(self) -> Dict:
        return {
            "branch": self.branch,
            "total_removed": sum(1 for r in self.results if r.status == WorktreeStatus.REMOVED),
            "total_failed": self.failed,
            "branches_deleted": self.branches_deleted,
            "branch_errors": self.branch_errors,
            "results": [r.to_dict() for r in self.results],
        }


class WorktreeManager(RepositoryEngine):
    """Keep one worktree per repository for each branch being worked on."""

    def _repositories(self, state: State, names: Optional[Sequence[str]] = None) -> List[Repository]:
        repos = state.sorted_repositories()
        if not repos:
            raise FoundagentError(
                ErrorCode.INVALID_CONFIG,
                "No repositories in workspace",
                "Add one with 'fa add <url>'",
            )
        if names is not None:
            repos = [repo for repo in repos if repo.name in names]
        return repos

    def _source_branch(self, repo: Repository, source: Optional[str]) -> str:
        if source:
            return source
        if repo.default_branch:
            return repo.default_branch
        return self.backend.default_branch(self.workspace.bare_repo_path(repo.name))

    # Create

    def create(
        self,
        branch: str,
        source: Optional[str] = None,
        force: bool = False,
        repos: Optional[Sequence[str]] = None,
        checkout_existing: bool = False,
    ) -> List[WorktreeResult]:
        """
        Create a worktree for a new ``branch`` in every repository.

        Every repository is checked before anything is created. Unless
        ``force`` is set, an existing worktree or branch refuses the whole
        operation; a missing source branch always does.

        Args:
            branch: New branch name
            source: Branch to start from; defaults to each repository's
                default branch
            force: Replace existing worktrees and branches
            repos: Limit to these repository names
            checkout_existing: Check out ``branch`` where it already exists
                instead of refusing

        Returns:
            One result per repository, in name order

        Raises:
            FoundagentError: E006 for a malformed branch name, E004 if the
                workspace has no repositories, E301/E303/E304 if validation
                fails
        """
        state = self.load_state()
        branch = resolve_branch(state, branch)
        selected = self._repositories(state, repos)
        sources = {repo.name: self._source_branch(repo, source) for repo in selected}
        self._validate_create(selected, branch, sources, force, checkout_existing)

        def create_one(repo: Repository) -> None:
            self._create_one(repo.name, branch, sources[repo.name], force)

        outcomes = execute_parallel(selected, create_one, max_workers=self.max_workers)

        results = []
        created = []
        for outcome in outcomes:
            name = outcome.item.name
            result = WorktreeResult(
                name=name,
                branch=branch,
                status=WorktreeStatus.CREATED,
                path=str(self.workspace.worktree_path(name, branch)),
                source_branch=sources[name],
            )
            if outcome.ok:
                created.append(name)
            else:
                logger.error(f"Worktree creation failed: {outcome.error}", extra={"repo": name})
                result.status = WorktreeStatus.FAILED
                result.error = str(outcome.error)
            results.append(result)

        self._record_created(branch, created)
        return results

    def _validate_create(
        self,
        repos: List[Repository],
        branch: str,
        sources: Dict[str, str],
        force: bool,
        checkout_existing: bool,
    ) -> None:
        exists, branch_taken, no_source = [], [], []
        for repo in repos:
            bare_path = self.workspace.bare_repo_path(repo.name)
            if self.workspace.worktree_path(repo.name, branch).exists():
                if not force:
                    exists.append(repo.name)
                continue
            if self.backend.branch_exists(bare_path, branch):
                if not force and not checkout_existing:
                    branch_taken.append(repo.name)
                continue
            if not self.backend.branch_exists(bare_path, sources[repo.name]):
                no_source.append(f"{repo.name} ({sources[repo.name]})")

        if exists:
            raise FoundagentError(
                ErrorCode.WORKTREE_EXISTS,
                f"Worktree for '{branch}' already exists in: {', '.join(exists)}",
                "Use --force to recreate it, or choose another branch name",
            )
        if branch_taken:
            raise FoundagentError(
                ErrorCode.BRANCH_EXISTS,
                f"Branch '{branch}' already exists in: {', '.join(branch_taken)}",
                "Use --force to recreate it, or choose another branch name",
            )
        if no_source:
            raise FoundagentError(
                ErrorCode.BRANCH_NOT_FOUND,
                f"Source branch not found in: {', '.join(no_source)}",
                "Pass an existing branch with --from, or run 'fa sync' first",
            )

    def _create_one(self, name: str, branch: str, source: str, force: bool) -> None:
        bare_path = self.workspace.bare_repo_path(name)
        worktree_path = self.workspace.worktree_path(name, branch)

        if force and worktree_path.exists():
            logger.info(f"Replacing existing worktree for {branch}", extra={"repo": name})
            self.backend.worktree_remove(bare_path, worktree_path)
            self.backend.worktree_prune(bare_path)

        if self.backend.branch_exists(bare_path, branch):
            if not force:
                self.backend.worktree_add(bare_path, worktree_path, branch)
                return
            self.backend.delete_branch(bare_path, branch, force=True)

        self.backend.worktree_add_new(bare_path, worktree_path, branch, source)
        logger.debug(f"Created worktree {branch} from {source}", extra={"repo": name})

    def _record_created(self, branch: str, names: List[str]) -> None:
        if not names:
            return
        with self.workspace.state_store.transaction() as state:
            for name in names:
                state.repositories[name].add_worktree(branch)
        try:
            self.workspace.folders.add_folders([worktree_folder_path(name, branch) for name in names])
        except FoundagentError as e:
            logger.warning(f"Could not update workspace file: {e}")

    # List

    def available_branches(self) -> List[str]:
        """Every branch that has a worktree in at least one repository."""
        state = self.load_state()
        branches = set()
        for repo in state.sorted_repositories():
            branches.update(self.workspace.discover_worktrees(repo.name))
        return sorted(branches)

    def list_worktrees(self, branch: Optional[str] = None, cwd: Optional[Path] = None) -> List[WorktreeInfo]:
        """
        Worktrees on disk with their working-tree status, sorted by branch then repository.

        Status is one of ``clean``, ``modified``, ``untracked``, ``conflict``
        or ``error``; a conflict outranks modifications, which outrank
        untracked files.
        """
        state = self.load_state()
        if branch:
            branch = resolve_branch(state, branch)

        infos = []
        for repo in state.sorted_repositories():
            for found in self.workspace.discover_worktrees(repo.name):
                if branch and found != branch:
                    continue
                path = self.workspace.worktree_path(repo.name, found)
                infos.append(WorktreeInfo(name=repo.name, branch=found, path=str(path)))
        infos.sort(key=lambda info: (info.branch, info.name))

        outcomes = execute_parallel(infos, self._inspect, max_workers=self.max_workers)
        for outcome in outcomes:
            if not outcome.ok:
                outcome.item.status = "error"
                outcome.item.error = str(outcome.error)

        current = Path(cwd or os.getcwd()).resolve()
        for info in infos:
            root = Path(info.path).resolve()
            info.is_current = current == root or root in current.parents
        return infos

    def _inspect(self, info: WorktreeInfo) -> None:
        flags = self.backend.status_flags(Path(info.path))
        for status in ("conflict", "modified", "untracked"):
            if status in flags:
                info.status = status
                return
        info.status = "clean"

    # Switch

    def switch(self, branch: str, create: bool = False, source: Optional[str] = None) -> SwitchResult:
        """
        Make ``branch`` the workspace's current branch.

        The editor folder list is rewritten to show that branch's worktrees;
        non-worktree folders are kept. With ``create`` the missing worktrees
        are created first, checking out the branch where it already exists.

        Raises:
            FoundagentError: E006 for a malformed branch or ``source`` without
                ``create``, E004 if the workspace has no repositories, E302 if
                no repository has the branch and ``create`` is not set
        """
        if source and not create:
            raise FoundagentError(
                ErrorCode.INVALID_INPUT,
                "--from can only be used with --create",
                f"Run 'fa wt switch {branch} --create --from {source}'",
            )

        state = self.load_state()
        target = resolve_branch(state, branch)
        repos = self._repositories(state)
        result = SwitchResult(branch=target, previous_branch=state.current_branch)
        if state.current_branch == target:
            result.already_on = True
            return result

        missing = [repo.name for repo in repos if not self.workspace.is_worktree(repo.name, target)]
        if len(missing) == len(repos) and not create:
            raise FoundagentError(
                ErrorCode.WORKTREE_NOT_FOUND,
                f"No worktrees found for branch '{target}'",
                f"Create them with 'fa wt switch {target} --create'",
            )
        if create and missing:
            result.created = self.create(target, source=source, repos=missing, checkout_existing=True)
        result.missing = [name for name in missing if not self.workspace.is_worktree(name, target)]

        if result.previous_branch:
            result.dirty = self._dirty_repositories(repos, result.previous_branch)

        present = [repo.name for repo in repos if repo.name not in result.missing]
        self.workspace.folders.replace_worktree_folders(
            [worktree_folder_path(name, target) for name in present]
        )
        with self.workspace.state_store.transaction() as current:
            current.current_branch = target
        logger.info(f"Switched workspace to branch {target}")
        return result

    def _dirty_repositories(self, repos: List[Repository], branch: str) -> List[str]:
        dirty = []
        for repo in repos:
            worktree = self.workspace.worktree_path(repo.name, branch)
            if not worktree.is_dir():
                continue
            try:
                if self.backend.has_uncommitted_changes(worktree):
                    dirty.append(repo.name)
            except FoundagentError as e:
                logger.debug(f"Could not check {worktree} for changes: {e}", extra={"repo": repo.name})
        return dirty

    # Remove

    def remove(
        self,
        branch: str,
        force: bool = False,
        delete_branch: bool = False,
        cwd: Optional[Path] = None,
    ) -> BranchRemovalResult:
        """
        Remove ``branch``'s worktree from every repository that has one.

        Guards run before anything is touched: ``cwd`` must not be inside
        one of the worktrees, and unless ``force`` the branch must not be a
        repository's default branch and no worktree may have uncommitted
        or untracked changes.

        With ``delete_branch`` the branch itself is deleted once every
        worktree is gone. Unless ``force`` a branch not merged into the
        repository's default branch is kept and reported in ``branch_errors``.

        Raises:
            FoundagentError: E006 for a malformed branch, E302 if no
                repository has the worktree
            GuardViolationError: E305 or E306 when a guard refuses
        """
        state = self.load_state()
        branch = resolve_branch(state, branch)
        repos = [
            repo for repo in state.sorted_repositories()
            if self.workspace.worktree_path(repo.name, branch).is_dir()
        ]
        if not repos:
            raise FoundagentError(
                ErrorCode.WORKTREE_NOT_FOUND,
                f"No worktrees found for branch '{branch}'",
                "Run 'fa wt list' to see existing worktrees",
            )

        self._guard_cwd(repos, branch, Path(cwd or os.getcwd()))
        if not force:
            self._guard_default_branch(repos, branch)
            self._guard_clean(repos, branch)

        outcomes = execute_parallel(
            repos,
            lambda repo: self._remove_one(repo.name, branch),
            max_workers=self.max_workers,
        )

        result = BranchRemovalResult(branch=branch)
        removed = []
        for outcome in outcomes:
            name = outcome.item.name
            item = WorktreeResult(
                name=name,
                branch=branch,
                status=WorktreeStatus.REMOVED,
                path=str(self.workspace.worktree_path(name, branch)),
            )
            if outcome.ok:
                removed.append(outcome.item)
            else:
                logger.error(f"Worktree removal failed: {outcome.error}", extra={"repo": name})
                item.status = WorktreeStatus.FAILED
                item.error = str(outcome.error)
            result.results.append(item)

        if delete_branch and result.failed == 0:
            for repo in removed:
                self._delete_branch(result, repo, force)

        self._record_removed(branch, [repo.name for repo in removed])
        return result

    def _guard_cwd(self, repos: List[Repository], branch: str, cwd: Path) -> None:
        current = cwd.resolve()
        for repo in repos:
            root = self.workspace.worktree_path(repo.name, branch).resolve()
            if current == root or root in current.parents:
                raise GuardViolationError(
                    ErrorCode.INVALID_OPERATION,
                    f"Cannot remove '{branch}' while inside its worktree ({repo.name})",
                    "Change to a directory outside the worktree, or switch branches first",
                )

    def _guard_default_branch(self, repos: List[Repository], branch: str) -> None:
        defaults = [repo.name for repo in repos if (repo.default_branch or DEFAULT_BRANCH) == branch]
        if defaults:
            raise GuardViolationError(
                ErrorCode.INVALID_OPERATION,
                f"'{branch}' is the default branch of: {', '.join(defaults)}",
                "Use --force to remove the default branch worktree anyway",
            )

    def _guard_clean(self, repos: List[Repository], branch: str) -> None:
        dirty = []
        for repo in repos:
            worktree = self.workspace.worktree_path(repo.name, branch)
            if self.backend.has_uncommitted_changes(worktree):
                dirty.append(repo.name)
        if dirty:
            raise GuardViolationError(
                ErrorCode.DIRTY_WORKTREE,
                f"Uncommitted or untracked changes in '{branch}' worktrees: {', '.join(dirty)}",
                "Commit or stash your changes, or use --force to remove anyway",
            )

    def _remove_one(self, name: str, branch: str) -> None:
        bare_path = self.workspace.bare_repo_path(name)
        worktree_path = self.workspace.worktree_path(name, branch)
        self.backend.worktree_remove(bare_path, worktree_path)
        self.backend.worktree_prune(bare_path)
        self.workspace.prune_empty_dirs(name, worktree_path)

    def _delete_branch(self, result: BranchRemovalResult, repo: Repository, force: bool) -> None:
        bare_path = self.workspace.bare_repo_path(repo.name)
        try:
            if not force:
                base = repo.default_branch or self.backend.default_branch(bare_path)
                if not self.backend.is_branch_merged(bare_path, result.branch, base):
                    result.branch_errors[repo.name] = (
                        f"branch '{result.branch}' is not merged into {base} (use --force to delete anyway)"
                    )
                    return
            self.backend.delete_branch(bare_path, result.branch, force=True)
        except FoundagentError as e:
            logger.warning(f"Could not delete branch {result.branch}: {e}", extra={"repo": repo.name})
            result.branch_errors[repo.name] = str(e)
            return
        result.branches_deleted.append(repo.name)

    def _record_removed(self, branch: str, names: List[str]) -> None:
        if not names:
            return
        with self.workspace.state_store.transaction() as state:
            for name in names:
                state.repositories[name].remove_worktree(branch)
            still_present = any(repo.has_worktree(branch) for repo in state.repositories.values())
            if state.current_branch == branch and not still_present:
                state.current_branch = None
        try:
            self.workspace.folders.remove_folders([worktree_folder_path(name, branch) for name in names])
        except FoundagentError as e:
            logger.warning(f"Could not update workspace file: {e}")
