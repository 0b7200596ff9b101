"""Workspace layout, state and the cross-repository engines."""

from .commit import CommitEngine, CommitOptions, CommitResult, CommitStatus
from .layout import Workspace
from .parallel import ParallelResult, execute_parallel
from .push import PushEngine, PushOptions, PushResult, PushStatus
from .reconcile import ReconcileResult, reconcile
from .removal import RemovalEngine, RemovalResult
from .repository import AddResult, AddStatus, RepositoryManager
from .state import Repository, State, StateStore
from .sync import SyncEngine, SyncResult, SyncStatus
from .worktree import (
    BranchRemovalResult,
    SwitchResult,
    WorktreeInfo,
    WorktreeManager,
    WorktreeResult,
    WorktreeStatus,
)

__all__ = [
    "AddResult",
    "AddStatus",
    "BranchRemovalResult",
    "CommitEngine",
    "CommitOptions",
    "CommitResult",
    "CommitStatus",
    "ParallelResult",
    "PushEngine",
    "PushOptions",
    "PushResult",
    "PushStatus",
    "ReconcileResult",
    "RemovalEngine",
    "RemovalResult",
    "RepositoryManager",
    "Repository",
    "State",
    "StateStore",
    "SwitchResult",
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
    "Workspace",
    "WorktreeInfo",
    "WorktreeManager",
    "WorktreeResult",
    "WorktreeStatus",
    "execute_parallel",
    "reconcile",
]
