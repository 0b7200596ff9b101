"""Declared workspace configuration."""

from .config import RepoConfig, ToolSettings, WorkspaceConfig, load_config, save_config

__all__ = [
    "RepoConfig",
    "ToolSettings",
    "WorkspaceConfig",
    "load_config",
    "save_config",
]
