"""Fetch every bare clone and fast-forward worktrees, optionally stashing local changes.

Fetching runs in parallel because each bare clone is independent. Pulling
touches working trees and the stash, so it runs one repository at a time.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..errors import FoundagentError
from .engine import RepositoryEngine, resolve_branch, select_repositories
from .parallel import execute_parallel

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    SYNCED = "synced"
    UPDATED = "updated"
    UP_TO_DATE = "up-to-date"
    SKIPPED = "skipped"
    FAILED = "failed"


class SyncFailure(str, Enum):
    """Which step of a sync failed."""
    FETCH = "fetch-failed"
    STASH = "stash-failed"
    PULL = "pull-failed"
    STASH_POP = "stash-pop-failed"


@dataclass
class SyncResult:
    """Outcome of a fetch or pull for one repository."""
    name: str
    status: SyncStatus
    error: Optional[str] = None
    failure: Optional[SyncFailure] = None
    # True when local changes are still sitting in the stash after a failure
    stash_retained: bool = False
    # Set on a pull result when the fetch before it failed
    fetch_error: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["failure"] = self.failure.value if self.failure else None
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class SyncSummary:
    total: int = 0
    synced: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    fetch_failed: int = 0

    @classmethod
    def from_results(cls, results: List[SyncResult]) -> "SyncSummary":
        summary = cls(total=len(results))
        for result in results:
            if result.fetch_error:
                summary.fetch_failed += 1
            if result.status in (SyncStatus.SYNCED, SyncStatus.UP_TO_DATE):
                summary.synced += 1
            elif result.status == SyncStatus.UPDATED:
                summary.updated += 1
            elif result.status == SyncStatus.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1
        return summary


class SyncEngine(RepositoryEngine):
    """Fetch all bare clones, then pull worktrees for one branch."""

    def fetch_all(self, repos: Optional[Sequence[str]] = None) -> List[SyncResult]:
        """Fetch every selected repository's bare clone concurrently."""
        state = self.load_state()
        selected = select_repositories(state, repos)
        if not selected:
            return []

        outcomes = execute_parallel(
            [repo.name for repo in selected],
            lambda name: self.backend.fetch(self.workspace.bare_repo_path(name)),
            max_workers=self.max_workers,
        )

        results = []
        for outcome in outcomes:
            if outcome.ok:
                results.append(SyncResult(name=outcome.item, status=SyncStatus.SYNCED))
            else:
                logger.warning(f"Fetch failed: {outcome.error}", extra={"repo": outcome.item})
                results.append(SyncResult(
                    name=outcome.item,
                    status=SyncStatus.FAILED,
                    error=str(outcome.error),
                    failure=SyncFailure.FETCH,
                ))
        return results

    def pull_all(
        self,
        branch: Optional[str] = None,
        stash: bool = False,
        repos: Optional[Sequence[str]] = None,
    ) -> List[SyncResult]:
        """
        Fetch, then fast-forward each repository's worktree for ``branch``.

        Args:
            branch: Branch whose worktrees are pulled; defaults to the
                workspace's current branch, then ``main``
            stash: Stash uncommitted changes around the pull instead of
                skipping dirty worktrees
            repos: Limit to these repository names

        Returns:
            One result per selected repository, in name order. A fetch
            failure does not stop that repository's pull attempt; it is
            reported in the result's ``fetch_error``.
        """
        fetch_errors = {r.name: r.error for r in self.fetch_all(repos) if r.status == SyncStatus.FAILED}

        state = self.load_state()
        selected = select_repositories(state, repos)
        results = []
        for repo in selected:
            result = self._pull_one(repo.name, resolve_branch(state, branch, repo), stash)
            result.fetch_error = fetch_errors.get(repo.name)
            results.append(result)
        return results

    def _pull_one(self, name: str, branch: str, stash: bool) -> SyncResult:
        worktree = self.workspace.worktree_path(name, branch)
        result = SyncResult(name=name, status=SyncStatus.SKIPPED)

        if not worktree.is_dir():
            result.error = f"branch {branch} not found"
            return result

        try:
            if self.backend.is_detached(worktree):
                result.error = "detached HEAD - cannot pull"
                return result
            dirty = self.backend.has_uncommitted_changes(worktree)
            head_before = self.backend.head_sha(worktree)
        except FoundagentError as e:
            return self._fail(result, SyncFailure.PULL, str(e))

        if dirty and not stash:
            result.error = "uncommitted changes"
            return result

        stashed = False
        if dirty:
            try:
                stashed = self.backend.stash(worktree)
            except FoundagentError as e:
                return self._fail(result, SyncFailure.STASH, f"failed to stash: {e}")

        try:
            self.backend.pull(worktree)
        except FoundagentError as e:
            # Popping onto a failed pull would mix local changes into a broken tree
            result.stash_retained = stashed
            message = str(e)
            if stashed:
                message += " (local changes kept in stash, restore with 'git stash pop')"
            return self._fail(result, SyncFailure.PULL, message)

        if stashed:
            try:
                self.backend.stash_pop(worktree)
            except FoundagentError as e:
                result.stash_retained = True
                return self._fail(
                    result,
                    SyncFailure.STASH_POP,
                    f"pull succeeded but failed to restore local changes: {e}",
                )

        head_after = self.backend.head_sha(worktree)
        result.status = SyncStatus.UPDATED if head_after != head_before else SyncStatus.UP_TO_DATE
        logger.debug(f"Pull result: {result.status.value}", extra={"repo": name})
        return result

    def _fail(self, result: SyncResult, failure: SyncFailure, message: str) -> SyncResult:
        logger.warning(message, extra={"repo": result.name})
        result.status = SyncStatus.FAILED
        result.failure = failure
        result.error = message
        return result
