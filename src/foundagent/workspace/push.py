"""Push unpushed commits from every repository's worktree in parallel."""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import FoundagentError
from .engine import RepositoryEngine, resolve_branch, select_repositories
from .parallel import execute_parallel

logger = logging.getLogger(__name__)


class PushStatus(str, Enum):
    PUSHED = "pushed"
    WOULD_PUSH = "would-push"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PushOptions:
    """Options for a cross-repository push."""
    dry_run: bool = False
    repos: List[str] = field(default_factory=list)
    force: bool = False
    branch: Optional[str] = None


@dataclass
class PushResult:
    """Outcome of the push for one repository."""
    name: str
    status: PushStatus
    refs_pushed: List[str] = field(default_factory=list)
    commits_pushed: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["status"] = self.status.value
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class PushSummary:
    total: int = 0
    pushed: int = 0
    skipped: int = 0
    failed: int = 0

    @classmethod
    def from_results(cls, results: List[PushResult]) -> "PushSummary":
        summary = cls(total=len(results))
        for result in results:
            if result.status in (PushStatus.PUSHED, PushStatus.WOULD_PUSH):
                summary.pushed += 1
            elif result.status == PushStatus.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1
        return summary


@dataclass
class _Snapshot:
    name: str
    worktree: Path
    exists: bool = True
    unpushed: int = 0
    refspec: str = ""
    error: Optional[Exception] = None


class PushEngine(RepositoryEngine):
    """Push across repositories: count unpushed commits, push in parallel, classify."""

    def push_all(self, options: Optional[PushOptions] = None) -> List[PushResult]:
        """
        Push each repository whose worktree has commits the remote lacks.

        A dry run reports exactly the commit count and refspec a real push
        would use, without contacting the remote.

        Raises:
            FoundagentError: If the state cannot be loaded or a requested
                repository is unknown
        """
        options = options or PushOptions()
        state = self.load_state()
        repos = select_repositories(state, options.repos)
        if not repos:
            return []

        snapshots = {
            repo.name: self._snapshot(
                repo.name, self.workspace.worktree_path(repo.name, resolve_branch(state, options.branch, repo))
            )
            for repo in repos
        }

        outcomes = execute_parallel(
            [repo.name for repo in repos],
            lambda name: self._push_one(snapshots[name], options),
            max_workers=self.max_workers,
        )
        return [self._classify(snapshots[o.item], o.error, options) for o in outcomes]

    def _snapshot(self, name: str, worktree: Path) -> _Snapshot:
        snapshot = _Snapshot(name=name, worktree=worktree)
        if not worktree.is_dir():
            snapshot.exists = False
            return snapshot

        try:
            snapshot.unpushed = self.backend.unpushed_count(worktree)
            if snapshot.unpushed > 0:
                snapshot.refspec = self.backend.push_refspec(worktree)
        except FoundagentError as e:
            snapshot.error = e
        return snapshot

    def _push_one(self, snapshot: _Snapshot, options: PushOptions) -> None:
        if snapshot.error is not None:
            raise snapshot.error
        if snapshot.unpushed == 0 or options.dry_run:
            return
        self.backend.push(snapshot.worktree, force=options.force)

    def _classify(self, snapshot: _Snapshot, error: Optional[BaseException], options: PushOptions) -> PushResult:
        result = PushResult(name=snapshot.name, status=PushStatus.SKIPPED)

        if error is not None:
            result.status = PushStatus.FAILED
            result.error = str(error)
        elif not snapshot.exists:
            result.error = f"worktree not found: {snapshot.worktree}"
        elif snapshot.unpushed == 0:
            result.error = "nothing to push"
        else:
            result.status = PushStatus.WOULD_PUSH if options.dry_run else PushStatus.PUSHED
            result.commits_pushed = snapshot.unpushed
            if snapshot.refspec:
                result.refs_pushed = [snapshot.refspec]

        logger.debug(f"Push result: {result.status.value}", extra={"repo": snapshot.name})
        return result
