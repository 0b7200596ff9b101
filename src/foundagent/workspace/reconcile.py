"""Compare declared repositories against persisted state."""

from dataclasses import dataclass, field
from typing import List, Sequence

from ..core.config import RepoConfig
from .state import Repository, State


@dataclass
class ReconcileResult:
    """Three disjoint sets describing what the workspace still needs to do."""
    to_clone: List[RepoConfig] = field(default_factory=list)
    up_to_date: List[RepoConfig] = field(default_factory=list)
    stale: List[Repository] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not self.to_clone and not self.stale


def reconcile(declared_repos: Sequence[RepoConfig], state: State) -> ReconcileResult:
    """Split declared repositories into to-clone and up-to-date, and find stale state entries.

    Declarations without a name are left out entirely. Membership is by name.
    """
    result = ReconcileResult()
    declared_names = set()

    for repo in declared_repos:
        if not repo.name:
            continue
        declared_names.add(repo.name)
        if repo.name in state.repositories:
            result.up_to_date.append(repo)
        else:
            result.to_clone.append(repo)

    for name in sorted(state.repositories):
        if name not in declared_names:
            result.stale.append(state.repositories[name])

    return result
