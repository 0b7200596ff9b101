"""Workspace configuration loading, validation and editing."""

import logging
import posixpath
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ErrorCode, FoundagentError
from ..utils.atomic_io import atomic_write_text
from ..utils.validators import validate_repo_name

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = (".foundagent.yaml", ".foundagent.yml")

_SSH_URL = re.compile(r"^git@[^:]+:(.+)$")
_HTTP_URL = re.compile(r"^https?://[^/]+/(.+)$")
_FILE_URL = re.compile(r"^file://(.+)$")

DEFAULT_TEMPLATE = """\
# Foundagent Workspace Configuration
# This file defines your multi-repository workspace

workspace:
  # Workspace name
  name: {name}

# List of repositories in this workspace
repos: []
  # Example repository entry:
  # - url: git@github.com:org/my-repo.git
  #   name: my-repo              # Optional: override inferred name
  #   default_branch: main       # Optional: override detected default branch

# Workspace settings
settings:
  # Automatically create a worktree for the default branch when adding a repo
  auto_create_worktree: true
"""


def parse_repo_path(url: str) -> str:
    """Return the path component of an ssh, http(s) or file:// git URL.

    Raises:
        ValueError: If the URL is empty or in none of the supported forms
    """
    url = (url or "").strip()
    if not url:
        raise ValueError("Repository URL cannot be empty")

    for pattern in (_SSH_URL, _HTTP_URL, _FILE_URL):
        match = pattern.match(url)
        if match:
            return match.group(1)

    raise ValueError(
        f"Invalid Git URL format: {url}. Use git@host:owner/repo.git, "
        "https://host/owner/repo.git or file:///path/to/repo"
    )


def infer_repo_name(url: str) -> str:
    """Infer a repository name from its URL (basename without ``.git``)."""
    repo_path = parse_repo_path(url).rstrip("/")
    if repo_path.endswith(".git"):
        repo_path = repo_path[: -len(".git")]
    name = posixpath.basename(repo_path)
    if not name or name in (".", "/"):
        raise ValueError(f"Could not infer repository name from URL: {url}")
    return name


class RepoConfig(BaseModel):
    """A declared repository."""
    url: str
    name: Optional[str] = None
    default_branch: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parse_repo_path(v)
        return v.strip()


class WorkspaceSection(BaseModel):
    """The ``workspace:`` block."""
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Workspace name cannot be empty")
        return v


class SettingsConfig(BaseModel):
    """The ``settings:`` block."""
    auto_create_worktree: bool = True


class WorkspaceConfig(BaseModel):
    """Declared configuration of a workspace."""
    workspace: WorkspaceSection
    repos: List[RepoConfig] = Field(default_factory=list)
    settings: SettingsConfig = Field(default_factory=SettingsConfig)

    @field_validator("repos", mode="before")
    @classmethod
    def default_repos(cls, v):
        # "repos:" with nothing under it loads as None
        return v if v is not None else []

    @model_validator(mode="after")
    def infer_names_and_check_duplicates(self) -> "WorkspaceConfig":
        seen_names = set()
        url_owner = {}
        for index, repo in enumerate(self.repos):
            if not repo.name:
                try:
                    repo.name = infer_repo_name(repo.url)
                except ValueError as e:
                    raise ValueError(
                        f"Could not infer name for repos[{index}]: {repo.url}. "
                        "Provide an explicit 'name' field"
                    ) from e

            validate_repo_name(repo.name)
            if repo.name in seen_names:
                raise ValueError(f"Duplicate repository name: {repo.name}")
            seen_names.add(repo.name)

            if repo.url in url_owner:
                logger.warning(
                    f"Repository URL {repo.url} is used by both '{url_owner[repo.url]}' "
                    f"and '{repo.name}'. This may cause confusion."
                )
            else:
                url_owner[repo.url] = repo.name
        return self

    @property
    def name(self) -> str:
        return self.workspace.name

    def get_repo(self, name: str) -> Optional[RepoConfig]:
        for repo in self.repos:
            if repo.name == name:
                return repo
        return None

    def has_repo(self, name: str) -> bool:
        return self.get_repo(name) is not None

    def add_repo(self, url: str, name: Optional[str] = None, default_branch: Optional[str] = None) -> RepoConfig:
        """Append a repository declaration.

        Raises:
            ValueError: If the URL is malformed, the name is not a safe
                directory name, or the name is already declared
        """
        repo = RepoConfig(url=url, name=validate_repo_name(name or infer_repo_name(url)), default_branch=default_branch)
        if self.has_repo(repo.name):
            raise ValueError(f"Repository '{repo.name}' is already declared")
        self.repos.append(repo)
        return repo

    def remove_repo(self, name: str) -> bool:
        """Remove a repository by name. Returns False if it was not declared."""
        for index, repo in enumerate(self.repos):
            if repo.name == name:
                del self.repos[index]
                return True
        return False


class ToolSettings(BaseSettings):
    """Process-level settings read from ``FOUNDAGENT_*`` environment variables."""
    model_config = SettingsConfigDict(env_prefix="FOUNDAGENT_", extra="ignore")

    log_level: str = "WARNING"
    # None runs one worker per repository
    max_workers: Optional[int] = None
    update_check_url: str = "https://api.github.com/repos/foundagent/foundagent/releases/latest"

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v


def find_config(workspace_root: Path) -> Optional[Path]:
    """Return the first existing config file in ``workspace_root``."""
    for file_name in CONFIG_FILE_NAMES:
        candidate = workspace_root / file_name
        if candidate.is_file():
            return candidate
    return None


def default_config_text(workspace_name: str) -> str:
    return DEFAULT_TEMPLATE.format(name=workspace_name)


def load_config(workspace_root: Path) -> WorkspaceConfig:
    """Load and validate the workspace configuration.

    Raises:
        FoundagentError: E005 if no config file exists, E004 if it is invalid
    """
    config_path = find_config(workspace_root)
    if config_path is None:
        raise FoundagentError(
            ErrorCode.CONFIG_NOT_FOUND,
            f"Config file not found in {workspace_root}",
            "Run 'fa init <name>' to create a workspace",
        )

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise FoundagentError(
            ErrorCode.INVALID_CONFIG,
            f"Failed to parse {config_path.name}",
            "Fix the YAML syntax in your config file",
            e,
        ) from e
    except OSError as e:
        raise FoundagentError(
            ErrorCode.PERMISSION_DENIED,
            f"Failed to read {config_path}",
            "Check the file permissions",
            e,
        ) from e

    if not isinstance(data, dict):
        raise FoundagentError(
            ErrorCode.INVALID_CONFIG,
            f"{config_path.name} must contain a mapping",
            "See 'fa init' for the expected layout",
        )

    try:
        return WorkspaceConfig(**data)
    except ValidationError as e:
        raise FoundagentError(
            ErrorCode.INVALID_CONFIG,
            f"Invalid configuration in {config_path.name}",
            "Check workspace.name and the repos list",
            e,
        ) from e


def save_config(workspace_root: Path, config: WorkspaceConfig) -> Path:
    """Write the configuration back to its file (``.foundagent.yaml`` if none exists)."""
    config_path = find_config(workspace_root) or workspace_root / CONFIG_FILE_NAMES[0]
    data = config.model_dump(exclude_none=True)
    text = yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
    atomic_write_text(config_path, text)
    return config_path
