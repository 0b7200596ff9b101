"""Tests for workspace creation, discovery and on-disk layout."""

import json

import pytest

from foundagent.core.config import load_config
from foundagent.errors import ErrorCode, FoundagentError
from foundagent.workspace.layout import Workspace


class TestCreate:
    """Workspace.create initializes config, state and the editor workspace file."""

    def test_creates_layout(self, tmp_path):
        ws = Workspace.create(tmp_path, "platform")

        assert ws.root == (tmp_path / "platform").resolve()
        assert (ws.root / ".foundagent.yaml").is_file()
        assert ws.state_path.is_file()
        assert ws.bare_dir.is_dir()
        assert ws.worktrees_dir.is_dir()
        assert ws.folders_path.name == "platform.code-workspace"
        assert json.loads(ws.folders_path.read_text())["folders"] == [{"path": "."}]
        assert load_config(ws.root).name == "platform"
        assert ws.state_store.load().repositories == {}

    def test_existing_workspace_rejected(self, tmp_path):
        Workspace.create(tmp_path, "platform")
        with pytest.raises(FoundagentError) as exc_info:
            Workspace.create(tmp_path, "platform")
        assert exc_info.value.code == ErrorCode.WORKSPACE_EXISTS

    def test_force_keeps_clones(self, tmp_path):
        ws = Workspace.create(tmp_path, "platform")
        marker = ws.bare_repo_path("api") / "HEAD"
        marker.parent.mkdir(parents=True)
        marker.write_text("ref: refs/heads/main\n")

        Workspace.create(tmp_path, "platform", force=True)

        assert marker.is_file()

    @pytest.mark.parametrize("name", ["", "a/b", "..", "bad|name"])
    def test_invalid_name(self, tmp_path, name):
        with pytest.raises(FoundagentError) as exc_info:
            Workspace.create(tmp_path, name)
        assert exc_info.value.code == ErrorCode.INVALID_NAME

    def test_name_too_long(self, tmp_path):
        with pytest.raises(FoundagentError) as exc_info:
            Workspace.create(tmp_path, "w" * 300)
        assert exc_info.value.code == ErrorCode.PATH_TOO_LONG


class TestDiscover:
    """Walking up from a directory to the workspace root."""

    def test_from_root(self, workspace):
        assert Workspace.discover(workspace.root).root == workspace.root

    def test_from_nested_directory(self, workspace):
        nested = workspace.worktree_path("api", "feature/login") / "src"
        nested.mkdir(parents=True)
        assert Workspace.discover(nested).root == workspace.root

    def test_outside_any_workspace(self, tmp_path):
        with pytest.raises(FoundagentError) as exc_info:
            Workspace.discover(tmp_path)
        assert exc_info.value.code == ErrorCode.CONFIG_NOT_FOUND


class TestPaths:
    """Path helpers and worktree discovery."""

    def test_repository_paths(self, workspace):
        assert workspace.bare_repo_path("api") == workspace.root / "repos" / ".bare" / "api.git"
        assert workspace.worktree_path("api", "feature/login") == (
            workspace.root / "repos" / "worktrees" / "api" / "feature" / "login"
        )

    def test_name_falls_back_without_config(self, workspace):
        (workspace.root / ".foundagent.yaml").unlink()
        assert Workspace(workspace.root).name == "ws"

    def test_discover_worktrees_handles_nested_branches(self, workspace):
        for branch in ("main", "feature/login", "feature/signup"):
            path = workspace.worktree_path("api", branch)
            path.mkdir(parents=True)
            (path / ".git").write_text("gitdir: elsewhere\n")
        # A plain directory without a marker is not a worktree
        workspace.worktree_path("api", "scratch").mkdir()

        assert workspace.discover_worktrees("api") == ["feature/login", "feature/signup", "main"]

    def test_discover_worktrees_without_directory(self, workspace):
        assert workspace.discover_worktrees("missing") == []
