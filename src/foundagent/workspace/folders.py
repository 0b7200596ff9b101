"""Editor workspace file (``<name>.code-workspace``) listing one folder per worktree."""

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ErrorCode, FoundagentError
from ..utils.atomic_io import atomic_write_json

logger = logging.getLogger(__name__)

ROOT_FOLDER = "."
WORKTREE_FOLDER_PREFIX = "repos/worktrees/"


class Folder(BaseModel):
    """One entry of the ``folders`` array."""
    model_config = ConfigDict(extra="allow")

    path: str
    name: Optional[str] = None


class CodeWorkspace(BaseModel):
    """The workspace file document. Unknown keys such as ``settings`` are kept."""
    model_config = ConfigDict(extra="allow")

    folders: List[Folder] = Field(default_factory=list)

    def paths(self) -> List[str]:
        return [folder.path for folder in self.folders]

    def has_root(self) -> bool:
        return any(_normalize(folder.path) == ROOT_FOLDER for folder in self.folders)


def _normalize(path: str) -> str:
    normalized = str(PurePosixPath(path.replace("\\", "/")))
    return normalized if normalized else ROOT_FOLDER


def worktree_folder_path(repo_name: str, branch: str) -> str:
    """Relative folder entry for a worktree, e.g. ``repos/worktrees/api/main``."""
    return f"{WORKTREE_FOLDER_PREFIX}{repo_name}/{branch}"


def is_worktree_folder(path: str) -> bool:
    return _normalize(path).startswith(WORKTREE_FOLDER_PREFIX)


def worktree_key(path: str) -> Optional[str]:
    """``<repo>/<branch>`` for a worktree folder entry, None for any other entry."""
    normalized = _normalize(path)
    if not normalized.startswith(WORKTREE_FOLDER_PREFIX):
        return None
    return normalized[len(WORKTREE_FOLDER_PREFIX):] or None


class WorkspaceFolders:
    """Read and edit the editor workspace file."""

    def __init__(self, path: Path, workspace_root: Path):
        self.path = Path(path)
        self.workspace_root = Path(workspace_root)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> CodeWorkspace:
        """Read the workspace file.

        Raises:
            FoundagentError: E103 if missing, E004 if it cannot be decoded
        """
        try:
            raw = self.path.read_text()
        except FileNotFoundError as e:
            raise FoundagentError(
                ErrorCode.FILE_NOT_FOUND,
                f"Workspace file not found: {self.path.name}",
                "Run 'fa doctor --fix' to rebuild it",
                e,
            ) from e
        except OSError as e:
            raise FoundagentError(
                ErrorCode.PERMISSION_DENIED,
                f"Failed to read workspace file: {self.path.name}",
                "Check file permissions",
                e,
            ) from e

        try:
            return CodeWorkspace.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            raise FoundagentError(
                ErrorCode.INVALID_CONFIG,
                f"Failed to parse workspace file: {self.path.name}",
                "Run 'fa doctor --fix' to rebuild it",
                e,
            ) from e

    def save(self, document: CodeWorkspace) -> None:
        data = document.model_dump(exclude_none=True)
        try:
            atomic_write_json(self.path, data)
        except OSError as e:
            raise FoundagentError(
                ErrorCode.PERMISSION_DENIED,
                f"Failed to write workspace file: {self.path.name}",
                "Check that you have write permissions",
                e,
            ) from e

    def initialize(self) -> CodeWorkspace:
        """Write a workspace file containing only the root folder."""
        document = CodeWorkspace(folders=[Folder(path=ROOT_FOLDER)])
        self.save(document)
        return document

    def relative(self, path: Path) -> str:
        try:
            return Path(path).resolve().relative_to(self.workspace_root.resolve()).as_posix()
        except ValueError:
            return str(path)

    def add_folders(self, paths: Iterable[str]) -> List[str]:
        """Append folders that are not listed yet. Returns the ones added."""
        document = self.load()
        existing = {_normalize(p) for p in document.paths()}
        added = []
        for path in paths:
            if _normalize(path) in existing:
                continue
            document.folders.append(Folder(path=path))
            existing.add(_normalize(path))
            added.append(path)
        if added:
            self.save(document)
        return added

    def remove_folders(self, paths: Iterable[str]) -> int:
        """Drop the listed folders. Returns how many were removed."""
        document = self.load()
        targets = {_normalize(p) for p in paths}
        kept = [f for f in document.folders if _normalize(f.path) not in targets]
        removed = len(document.folders) - len(kept)
        if removed:
            document.folders = kept
            self.save(document)
        return removed

    def replace_worktree_folders(self, paths: Iterable[str]) -> None:
        """Swap every worktree folder for ``paths``, keeping all other entries in place."""
        document = self.load()
        document.folders = [f for f in document.folders if not is_worktree_folder(f.path)]
        document.folders.extend(Folder(path=path) for path in paths)
        self.save(document)

    def remove_repo_folders(self, repo_name: str) -> int:
        """Drop every folder under ``repos/worktrees/<repo_name>/``. Returns how many."""
        document = self.load()
        prefix = f"{WORKTREE_FOLDER_PREFIX}{repo_name}/"
        kept = [f for f in document.folders if not (_normalize(f.path) + "/").startswith(prefix)]
        removed = len(document.folders) - len(kept)
        if removed:
            document.folders = kept
            self.save(document)
        logger.debug(f"Removed {removed} folder(s) for {repo_name} from {self.path.name}")
        return removed
