"""Shared plumbing for the cross-repository commit, push and sync engines."""

from typing import List, Optional, Sequence

from ..errors import ErrorCode, FoundagentError
from ..utils.validators import validate_branch_name
from .git_backend import GitBackend
from .layout import Workspace
from .state import Repository, State

DEFAULT_BRANCH = "main"


def select_repositories(state: State, requested: Optional[Sequence[str]] = None) -> List[Repository]:
    """Repositories to operate on, in name order.

    Raises:
        FoundagentError: E006 if a requested name is not in the workspace
    """
    requested = list(requested or [])
    unknown = [name for name in requested if name not in state.repositories]
    if unknown:
        raise FoundagentError(
            ErrorCode.INVALID_INPUT,
            f"Repository '{unknown[0]}' not found in workspace",
            "Run 'fa status' to list repositories",
        )

    repos = state.sorted_repositories()
    if requested:
        repos = [repo for repo in repos if repo.name in requested]
    return repos


def resolve_branch(state: State, explicit: Optional[str] = None, repo: Optional[Repository] = None) -> str:
    """Branch whose worktree the engines act on for ``repo``.

    An explicit branch wins, then the workspace's current branch, then the
    repository's own default branch, then ``main``.

    Raises:
        FoundagentError: E006 if an explicit branch name is malformed
    """
    if explicit:
        try:
            return validate_branch_name(explicit)
        except ValueError as e:
            raise FoundagentError(ErrorCode.INVALID_INPUT, str(e), "Check the --branch value", e) from e
    if state.current_branch:
        return state.current_branch
    if repo is not None and repo.default_branch:
        return repo.default_branch
    return DEFAULT_BRANCH


class RepositoryEngine:
    """Base for engines that fan one operation out across repositories."""

    def __init__(
        self,
        workspace: Workspace,
        backend: Optional[GitBackend] = None,
        max_workers: Optional[int] = None,
    ):
        self.workspace = workspace
        self.backend = backend or GitBackend()
        self.max_workers = max_workers

    def load_state(self) -> State:
        return self.workspace.state_store.load()
