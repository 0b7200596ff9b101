"""Validation utilities for workspace, repository and branch names."""

import re

MAX_NAME_LENGTH = 255


def validate_workspace_name(name: str) -> str:
    """
    Validate a workspace name.

    Args:
        name: Workspace name to validate

    Returns:
        Validated name

    Raises:
        ValueError: If the name is empty, too long or not a plain file name
    """
    if not name or not name.strip():
        raise ValueError("Workspace name cannot be empty")

    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Workspace name too long (max {MAX_NAME_LENGTH} characters)")

    if '/' in name or '\\' in name or name in ('.', '..'):
        raise ValueError(f"Invalid workspace name: {name}")

    if re.search(r'[<>:"|?*\x00-\x1f]', name):
        raise ValueError(f"Workspace name contains invalid characters: {name}")

    return name


def validate_repo_name(name: str) -> str:
    """
    Validate a repository name to prevent path traversal.

    Args:
        name: Repository name

    Returns:
        Validated name

    Raises:
        ValueError: If name is invalid
    """
    if not name:
        raise ValueError("Repository name cannot be empty")

    if not re.match(r'^[a-zA-Z0-9._-]+$', name):
        raise ValueError(f"Invalid repository name: {name}")

    if name in ('.', '..') or name.startswith('.'):
        raise ValueError(f"Repository name cannot start with '.': {name}")

    if len(name) > MAX_NAME_LENGTH:
        raise ValueError("Repository name too long")

    return name


def validate_branch_name(branch_name: str) -> str:
    """
    Validate a git branch name.

    Args:
        branch_name: Branch name to validate

    Returns:
        Validated branch name

    Raises:
        ValueError: If branch name is invalid
    """
    if not branch_name:
        raise ValueError("Branch name cannot be empty")

    if not re.match(r'^[a-zA-Z0-9/._-]+$', branch_name):
        raise ValueError(f"Invalid branch name: {branch_name}")

    if branch_name.startswith('/') or branch_name.endswith('/'):
        raise ValueError("Branch name cannot start or end with /")

    if '..' in branch_name or '//' in branch_name or branch_name.endswith('.lock'):
        raise ValueError("Branch name contains invalid sequence")

    if len(branch_name) > MAX_NAME_LENGTH:
        raise ValueError("Branch name too long")

    return branch_name
