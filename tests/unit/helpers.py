"""Helpers shared by unit tests that lay out workspaces or drive real git."""

import shutil
import subprocess
from pathlib import Path
from typing import Iterable

import pytest

from foundagent.core.config import load_config, save_config
from foundagent.workspace.folders import worktree_folder_path
from foundagent.workspace.layout import Workspace
from foundagent.workspace.state import Repository

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(*args, cwd: Path) -> str:
    """Run git in ``cwd`` and return stdout."""
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return result.stdout.strip()


def seed_repo(
    workspace: Workspace,
    name: str,
    branches: Iterable[str] = ("main",),
    url: str = "",
) -> Repository:
    """Declare, record and lay out a repository without running git.

    The bare clone gets an ``objects`` directory and every worktree a
    ``.git`` marker file, which is what the doctor checks look for.
    """
    url = url or f"git@github.com:org/{name}.git"
    branches = list(branches)

    config = load_config(workspace.root)
    config.add_repo(url, name=name)
    save_config(workspace.root, config)

    (workspace.bare_repo_path(name) / "objects").mkdir(parents=True)
    for branch in branches:
        worktree = workspace.worktree_path(name, branch)
        worktree.mkdir(parents=True)
        (worktree / ".git").write_text(f"gitdir: {workspace.bare_repo_path(name)}/worktrees/{branch}\n")

    repo = Repository(name=name, url=url, default_branch=branches[0] if branches else None, worktrees=branches)
    workspace.state_store.add_repository(repo)
    workspace.folders.add_folders([worktree_folder_path(name, b) for b in branches])
    return repo


def push_upstream_change(seed: Path, file_name: str = "CHANGELOG.md", content: str = "v2\n") -> None:
    """Commit and push a change to the remote from the seed clone."""
    (seed / file_name).write_text(content)
    git("add", file_name, cwd=seed)
    git("commit", "--quiet", "-m", f"Update {file_name}", cwd=seed)
    git("push", "--quiet", "origin", "main", cwd=seed)
