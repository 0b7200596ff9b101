"""Commit staged changes across every repository's worktree in parallel."""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ErrorCode, FoundagentError
from .engine import RepositoryEngine, resolve_branch, select_repositories
from .parallel import execute_parallel

logger = logging.getLogger(__name__)


class CommitStatus(str, Enum):
    COMMITTED = "committed"
    WOULD_COMMIT = "would-commit"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CommitOptions:
    """Options for a cross-repository commit."""
    message: str = ""
    all: bool = False
    amend: bool = False
    dry_run: bool = False
    repos: List[str] = field(default_factory=list)
    allow_detached: bool = False
    branch: Optional[str] = None


@dataclass
class CommitResult:
    """Outcome of the commit for one repository."""
    name: str
    status: CommitStatus
    commit_sha: Optional[str] = None
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["status"] = self.status.value
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class CommitSummary:
    total: int = 0
    committed: int = 0
    skipped: int = 0
    failed: int = 0

    @classmethod
    def from_results(cls, results: List[CommitResult]) -> "CommitSummary":
        summary = cls(total=len(results))
        for result in results:
            if result.status in (CommitStatus.COMMITTED, CommitStatus.WOULD_COMMIT):
                summary.committed += 1
            elif result.status == CommitStatus.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1
        return summary


@dataclass
class _Snapshot:
    """State of one worktree captured before any commit runs."""
    name: str
    worktree: Path
    exists: bool = True
    detached: bool = False
    head_sha: str = ""
    has_staged: bool = False
    error: Optional[Exception] = None


class CommitEngine(RepositoryEngine):
    """Commit across repositories: snapshot, commit in parallel, classify."""

    def commit_all(self, options: CommitOptions) -> List[CommitResult]:
        """
        Commit staged changes in each repository's worktree for the target branch.

        Args:
            options: Message, staging and filtering options

        Returns:
            One result per selected repository, in name order

        Raises:
            FoundagentError: If the state cannot be loaded, a requested
                repository is unknown, or a non-amend commit has no message
        """
        if not options.amend and not options.dry_run and not options.message.strip():
            raise FoundagentError(
                ErrorCode.INVALID_INPUT,
                "Commit message cannot be empty",
                "Provide a message with -m",
            )

        state = self.load_state()
        repos = select_repositories(state, options.repos)
        if not repos:
            return []

        snapshots = {
            repo.name: self._snapshot(
                repo.name,
                self.workspace.worktree_path(repo.name, resolve_branch(state, options.branch, repo)),
                options,
            )
            for repo in repos
        }

        outcomes = execute_parallel(
            [repo.name for repo in repos],
            lambda name: self._commit_one(snapshots[name], options),
            max_workers=self.max_workers,
        )
        return [self._classify(snapshots[o.item], o.error, options) for o in outcomes]

    def _snapshot(self, name: str, worktree: Path, options: CommitOptions) -> _Snapshot:
        snapshot = _Snapshot(name=name, worktree=worktree)
        if not worktree.is_dir():
            snapshot.exists = False
            return snapshot

        try:
            snapshot.detached = self.backend.is_detached(worktree)
            snapshot.head_sha = self.backend.head_sha(worktree)
            if options.all:
                self._stage_tracked(snapshot)
            snapshot.has_staged = self.backend.has_staged_changes(worktree)
        except FoundagentError as e:
            snapshot.error = e
        return snapshot

    def _stage_tracked(self, snapshot: _Snapshot) -> None:
        try:
            if self.backend.has_tracked_changes(snapshot.worktree):
                self.backend.stage_tracked(snapshot.worktree)
        except FoundagentError as e:
            logger.warning(f"Could not stage tracked changes: {e}", extra={"repo": snapshot.name})

    def _commit_one(self, snapshot: _Snapshot, options: CommitOptions) -> None:
        if snapshot.error is not None:
            raise snapshot.error
        if not snapshot.exists:
            return
        if snapshot.detached and not options.allow_detached:
            raise FoundagentError(
                ErrorCode.INVALID_OPERATION,
                "detached HEAD",
                "Use --allow-detached to commit anyway",
            )
        if not snapshot.has_staged and not options.amend:
            return
        if options.dry_run:
            return
        self.backend.commit(snapshot.worktree, options.message, amend=options.amend)

    def _classify(self, snapshot: _Snapshot, error: Optional[BaseException], options: CommitOptions) -> CommitResult:
        result = CommitResult(name=snapshot.name, status=CommitStatus.SKIPPED)

        if error is not None:
            result.status = CommitStatus.FAILED
            result.error = str(error)
        elif not snapshot.exists:
            result.error = f"worktree not found: {snapshot.worktree}"
        elif not snapshot.has_staged and not options.amend:
            result.error = "nothing to commit"
        elif options.dry_run:
            result.status = CommitStatus.WOULD_COMMIT
            try:
                stats = self.backend.staged_diff_stats(snapshot.worktree)
            except FoundagentError as e:
                logger.warning(f"Could not read staged diff: {e}", extra={"repo": snapshot.name})
            else:
                result.files_changed = stats.files_changed
                result.insertions = stats.insertions
                result.deletions = stats.deletions
        else:
            self._populate_commit(result, snapshot)

        logger.debug(f"Commit result: {result.status.value}", extra={"repo": snapshot.name})
        return result

    def _populate_commit(self, result: CommitResult, snapshot: _Snapshot) -> None:
        new_sha = self.backend.head_sha(snapshot.worktree)
        if not new_sha or new_sha == snapshot.head_sha:
            result.error = "nothing to commit"
            return

        result.status = CommitStatus.COMMITTED
        result.commit_sha = new_sha
        try:
            stats = self.backend.commit_stats(snapshot.worktree, new_sha)
        except FoundagentError as e:
            logger.warning(f"Could not read commit stats: {e}", extra={"repo": snapshot.name})
            return
        result.files_changed = stats.files_changed
        result.insertions = stats.insertions
        result.deletions = stats.deletions
