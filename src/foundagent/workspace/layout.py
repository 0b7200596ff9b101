"""Workspace layout, discovery and initialization."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from ..core.config import CONFIG_FILE_NAMES, default_config_text, find_config, load_config
from ..errors import ErrorCode, FoundagentError
from ..utils.atomic_io import atomic_write_text
from ..utils.validators import validate_workspace_name
from .folders import WorkspaceFolders
from .state import StateStore

logger = logging.getLogger(__name__)

FOUNDAGENT_DIR = ".foundagent"
STATE_FILE_NAME = "state.json"
REPOS_DIR = "repos"
BARE_DIR = ".bare"
WORKTREES_DIR = "worktrees"
CODE_WORKSPACE_SUFFIX = ".code-workspace"

# Entries that mark a directory as a git worktree checkout
GIT_MARKER = ".git"


class Workspace:
    """A foundagent workspace rooted at ``root``.

    Layout::

        <root>/.foundagent.yaml
        <root>/.foundagent/state.json
        <root>/<name>.code-workspace
        <root>/repos/.bare/<repo>.git
        <root>/repos/worktrees/<repo>/<branch>
    """

    def __init__(self, root: Path, name: Optional[str] = None):
        self.root = Path(root).expanduser().resolve()
        self._name = name

    def __repr__(self) -> str:
        return f"Workspace(root={str(self.root)!r})"

    @property
    def name(self) -> str:
        if self._name is None:
            try:
                self._name = load_config(self.root).name
            except FoundagentError:
                existing = sorted(self.root.glob(f"*{CODE_WORKSPACE_SUFFIX}"))
                self._name = existing[0].stem if existing else self.root.name
        return self._name

    @property
    def config_path(self) -> Path:
        return find_config(self.root) or self.root / CONFIG_FILE_NAMES[0]

    @property
    def foundagent_dir(self) -> Path:
        return self.root / FOUNDAGENT_DIR

    @property
    def state_path(self) -> Path:
        return self.foundagent_dir / STATE_FILE_NAME

    @property
    def repos_dir(self) -> Path:
        return self.root / REPOS_DIR

    @property
    def bare_dir(self) -> Path:
        return self.repos_dir / BARE_DIR

    @property
    def worktrees_dir(self) -> Path:
        return self.repos_dir / WORKTREES_DIR

    @property
    def folders_path(self) -> Path:
        return self.root / f"{self.name}{CODE_WORKSPACE_SUFFIX}"

    def bare_repo_path(self, repo_name: str) -> Path:
        return self.bare_dir / f"{repo_name}.git"

    def worktree_base_path(self, repo_name: str) -> Path:
        return self.worktrees_dir / repo_name

    def worktree_path(self, repo_name: str, branch: str) -> Path:
        return self.worktree_base_path(repo_name).joinpath(*branch.split("/"))

    @property
    def state_store(self) -> StateStore:
        return StateStore(self.state_path, self.bare_dir)

    @property
    def folders(self) -> WorkspaceFolders:
        return WorkspaceFolders(self.folders_path, self.root)

    def exists(self) -> bool:
        return self.foundagent_dir.is_dir()

    @classmethod
    def discover(cls, start: Optional[Path] = None) -> "Workspace":
        """Find the workspace containing ``start`` by walking up to the filesystem root.

        Raises:
            FoundagentError: E005 if no ancestor holds a workspace config
        """
        current = Path(start or os.getcwd()).expanduser().resolve()
        for candidate in [current, *current.parents]:
            if find_config(candidate) is not None:
                return cls(candidate)
        raise FoundagentError(
            ErrorCode.CONFIG_NOT_FOUND,
            f"Not a foundagent workspace (or any parent): {current}",
            "Run 'fa init <name>' to create a workspace, or cd into one",
        )

    @classmethod
    def create(cls, parent: Path, name: str, force: bool = False) -> "Workspace":
        """Create ``<parent>/<name>`` with config, empty state and folder list.

        Raises:
            FoundagentError: E002/E003 for a bad name, E001 if the workspace
                exists and ``force`` is not set, E101 on permission errors
        """
        try:
            validate_workspace_name(name)
        except ValueError as e:
            code = ErrorCode.PATH_TOO_LONG if "too long" in str(e) else ErrorCode.INVALID_NAME
            raise FoundagentError(
                code, str(e), "Use a short name made of letters, digits, '-' and '_'", e
            ) from e

        workspace = cls(Path(parent) / name, name=name)
        if workspace.exists() and not force:
            raise FoundagentError(
                ErrorCode.WORKSPACE_EXISTS,
                f"Workspace already exists at {workspace.root}",
                "Use --force to reinitialize the workspace",
            )

        try:
            workspace.foundagent_dir.mkdir(parents=True, exist_ok=True)
            # --force keeps whatever is already cloned under repos/
            workspace.bare_dir.mkdir(parents=True, exist_ok=True)
            workspace.worktrees_dir.mkdir(parents=True, exist_ok=True)
            atomic_write_text(workspace.root / CONFIG_FILE_NAMES[0], default_config_text(name))
        except OSError as e:
            raise FoundagentError(
                ErrorCode.PERMISSION_DENIED,
                f"Failed to create workspace at {workspace.root}",
                "Check that you have write permissions in the parent directory",
                e,
            ) from e

        workspace.state_store.initialize()
        workspace.folders.initialize()
        logger.info(f"Created workspace {name} at {workspace.root}")
        return workspace

    def is_worktree(self, repo_name: str, branch: str) -> bool:
        return (self.worktree_path(repo_name, branch) / GIT_MARKER).exists()

    def prune_empty_dirs(self, repo_name: str, worktree_path: Path, keep_base: bool = True) -> None:
        """Delete empty branch directories left above a removed worktree.

        Walks up from ``worktree_path``'s parent, stopping at the first
        non-empty directory or at ``repos/worktrees/<repo_name>`` (removed
        too when empty unless ``keep_base``).
        """
        base = self.worktree_base_path(repo_name)
        for parent in [worktree_path.parent, *worktree_path.parent.parents]:
            if parent != base and base not in parent.parents:
                break
            if parent == base and keep_base:
                break
            if not parent.is_dir() or any(parent.iterdir()):
                break
            parent.rmdir()

    def discover_worktrees(self, repo_name: str) -> List[str]:
        """Branch names of worktree directories on disk for ``repo_name``.

        A directory holding a ``.git`` marker is a worktree; nested branch
        names such as ``feature/login`` map to nested directories.
        """
        base = self.worktree_base_path(repo_name)
        if not base.is_dir():
            return []

        branches = []
        pending = [base]
        while pending:
            directory = pending.pop()
            for entry in sorted(directory.iterdir()):
                if not entry.is_dir():
                    continue
                if (entry / GIT_MARKER).exists():
                    branches.append(entry.relative_to(base).as_posix())
                else:
                    pending.append(entry)
        return sorted(branches)
