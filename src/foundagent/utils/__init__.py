"""Shared utility functions for foundagent."""

from .atomic_io import atomic_write_json, atomic_write_model, atomic_write_text
from .subprocess_utils import (
    SubprocessError,
    check_command_exists,
    run_command,
    run_git_command,
)
from .validators import validate_branch_name, validate_repo_name, validate_workspace_name

__all__ = [
    "atomic_write_json",
    "atomic_write_model",
    "atomic_write_text",
    "SubprocessError",
    "check_command_exists",
    "run_command",
    "run_git_command",
    "validate_branch_name",
    "validate_repo_name",
    "validate_workspace_name",
]
