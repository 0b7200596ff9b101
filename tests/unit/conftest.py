"""Shared fixtures for unit tests: workspaces, a git backend double and real git remotes."""

import shutil
from unittest.mock import MagicMock

import pytest

from foundagent.workspace.git_backend import GitBackend
from foundagent.workspace.layout import Workspace
from tests.unit.helpers import git


@pytest.fixture
def workspace(tmp_path):
    """A freshly initialized, empty workspace."""
    return Workspace.create(tmp_path, "ws")


@pytest.fixture
def mock_backend():
    """GitBackend double reporting an installed git and clean worktrees."""
    backend = MagicMock(spec=GitBackend)
    backend.is_installed.return_value = True
    backend.version.return_value = "git version 2.43.0"
    backend.has_uncommitted_changes.return_value = False
    return backend


@pytest.fixture
def git_env(tmp_path, monkeypatch):
    """Isolate git from the user's configuration and give commits an identity."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Test User")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "test@example.com")


@pytest.fixture
def origin(tmp_path, git_env):
    """A bare ``api.git`` remote with one commit on ``main``, plus the clone that seeded it.

    Returns a dict with ``url`` (file:// URL of the remote), ``bare`` and ``seed`` paths.
    """
    remotes = tmp_path / "remotes"
    remotes.mkdir()
    bare = remotes / "api.git"
    git("init", "--bare", "--quiet", str(bare), cwd=remotes)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=bare)

    seed = remotes / "seed"
    git("init", "--quiet", str(seed), cwd=remotes)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=seed)
    (seed / "README.md").write_text("# api\n")
    (seed / "app.py").write_text("print('hello')\n")
    git("add", ".", cwd=seed)
    git("commit", "--quiet", "-m", "Initial commit", cwd=seed)
    git("remote", "add", "origin", str(bare), cwd=seed)
    git("push", "--quiet", "origin", "main", cwd=seed)

    return {"url": bare.as_uri(), "bare": bare, "seed": seed}
