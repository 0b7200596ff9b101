"""Persisted runtime state of a workspace.

The state document (``.foundagent/state.json``) records which repositories
have been cloned and which worktrees exist for each. It is always loaded in
full, mutated in memory and rewritten in full; writes go through a temp file
and an atomic rename so a crash never leaves a half-written document.

There is no inter-process lock. Two foundagent processes mutating the same
workspace at the same time can lose each other's updates.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ErrorCode, FoundagentError, StateNotFoundError, StateParseError
from ..utils.atomic_io import atomic_write_model

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Repository(BaseModel):
    """A repository known to the workspace."""
    name: str
    url: str
    default_branch: Optional[str] = None
    worktrees: List[str] = Field(default_factory=list)
    added_at: datetime = Field(default_factory=_utcnow)
    # Derived from the workspace layout on load, never persisted
    bare_repo_path: Optional[Path] = Field(default=None, exclude=True)

    @field_validator("worktrees", mode="before")
    @classmethod
    def default_worktrees(cls, v):
        return v if v is not None else []

    def has_worktree(self, branch: str) -> bool:
        return branch in self.worktrees

    def add_worktree(self, branch: str) -> None:
        if branch not in self.worktrees:
            self.worktrees.append(branch)

    def remove_worktree(self, branch: str) -> bool:
        if branch in self.worktrees:
            self.worktrees.remove(branch)
            return True
        return False


class State(BaseModel):
    """The full state document."""
    repositories: Dict[str, Repository] = Field(default_factory=dict)
    current_branch: Optional[str] = None

    @field_validator("repositories", mode="before")
    @classmethod
    def default_repositories(cls, v):
        return v if v is not None else {}

    def sorted_repositories(self) -> List[Repository]:
        """Repositories in name order, the order every engine reports in."""
        return [self.repositories[name] for name in sorted(self.repositories)]

    def urls(self) -> Dict[str, str]:
        """Map of url -> repository name."""
        return {repo.url: name for name, repo in self.repositories.items()}


class StateStore:
    """Load, save and transact on a workspace's state document."""

    def __init__(self, state_path: Path, bare_dir: Optional[Path] = None):
        self.state_path = Path(state_path)
        self.bare_dir = bare_dir

    def exists(self) -> bool:
        return self.state_path.is_file()

    def load(self) -> State:
        """Read and decode the state document.

        Raises:
            StateNotFoundError: If the document does not exist
            StateParseError: If it is not valid JSON or does not match the schema
            FoundagentError: E101 if the file cannot be read
        """
        try:
            raw = self.state_path.read_text()
        except FileNotFoundError as e:
            raise StateNotFoundError(self.state_path, e) from e
        except OSError as e:
            raise FoundagentError(
                ErrorCode.PERMISSION_DENIED,
                f"Failed to read state file: {self.state_path}",
                "Check file permissions",
                e,
            ) from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("state document must be a JSON object")
            state = State.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise StateParseError(self.state_path, e) from e

        for name, repo in state.repositories.items():
            if not repo.name:
                repo.name = name
            if self.bare_dir is not None:
                repo.bare_repo_path = self.bare_dir / f"{name}.git"
        return state

    def save(self, state: State) -> None:
        """Persist the full document atomically.

        Raises:
            FoundagentError: E101 if the file cannot be written
        """
        try:
            atomic_write_model(self.state_path, state)
        except OSError as e:
            raise FoundagentError(
                ErrorCode.PERMISSION_DENIED,
                f"Failed to write state file: {self.state_path}",
                "Check that you have write permissions",
                e,
            ) from e
        logger.debug(f"Saved state with {len(state.repositories)} repositories")

    def initialize(self) -> State:
        """Write an empty state document."""
        state = State()
        self.save(state)
        return state

    @contextmanager
    def transaction(self) -> Iterator[State]:
        """Load the state, hand it to the block, and save it if the block succeeds."""
        state = self.load()
        yield state
        self.save(state)

    def add_repository(self, repo: Repository) -> None:
        with self.transaction() as state:
            state.repositories[repo.name] = repo
