"""Tests for workspace configuration parsing, validation and editing."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from foundagent.core.config import (
    ToolSettings,
    WorkspaceConfig,
    infer_repo_name,
    load_config,
    parse_repo_path,
    save_config,
)
from foundagent.errors import ErrorCode, FoundagentError


class TestRepoUrls:
    """Name inference from the supported URL forms."""

    @pytest.mark.parametrize("url,expected", [
        ("git@github.com:org/api.git", "api"),
        ("https://github.com/org/web-app.git", "web-app"),
        ("http://gitlab.local/group/sub/tools", "tools"),
        ("file:///srv/git/shared.git", "shared"),
        ("https://github.com/org/repo/", "repo"),
    ])
    def test_infer_repo_name(self, url, expected):
        assert infer_repo_name(url) == expected

    def test_parse_repo_path_ssh(self):
        assert parse_repo_path("git@github.com:org/api.git") == "org/api.git"

    @pytest.mark.parametrize("url", ["", "   ", "not a url", "ftp://host/repo.git"])
    def test_invalid_urls_rejected(self, url):
        with pytest.raises(ValueError):
            parse_repo_path(url)


class TestWorkspaceConfig:
    """Model validation and the add/remove helpers."""

    def test_names_are_inferred(self):
        config = WorkspaceConfig(
            workspace={"name": "ws"},
            repos=[{"url": "git@github.com:org/api.git"}, {"url": "git@github.com:org/web.git", "name": "site"}],
        )
        assert [r.name for r in config.repos] == ["api", "site"]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate repository name"):
            WorkspaceConfig(
                workspace={"name": "ws"},
                repos=[{"url": "git@github.com:org/api.git"}, {"url": "git@gitlab.com:other/api.git"}],
            )

    def test_duplicate_urls_only_warn(self):
        with patch("foundagent.core.config.logger") as mock_logger:
            config = WorkspaceConfig(
                workspace={"name": "ws"},
                repos=[
                    {"url": "git@github.com:org/api.git"},
                    {"url": "git@github.com:org/api.git", "name": "api-copy"},
                ],
            )
        assert len(config.repos) == 2
        mock_logger.warning.assert_called_once()

    def test_empty_repos_key_is_allowed(self):
        config = WorkspaceConfig(workspace={"name": "ws"}, repos=None)
        assert config.repos == []
        assert config.settings.auto_create_worktree is True

    def test_add_repo_rejects_duplicate_name(self):
        config = WorkspaceConfig(workspace={"name": "ws"})
        config.add_repo("git@github.com:org/api.git")

        with pytest.raises(ValueError, match="already declared"):
            config.add_repo("git@github.com:fork/api.git", default_branch="develop")

        assert len(config.repos) == 1
        assert config.get_repo("api").url == "git@github.com:org/api.git"
        assert config.get_repo("api").default_branch is None

    def test_add_repo_rejects_unsafe_name(self):
        config = WorkspaceConfig(workspace={"name": "ws"})
        with pytest.raises(ValueError):
            config.add_repo("git@github.com:org/api.git", name="../escape")
        assert config.repos == []

    def test_remove_repo(self):
        config = WorkspaceConfig(workspace={"name": "ws"}, repos=[{"url": "git@github.com:org/api.git"}])
        assert config.remove_repo("api") is True
        assert config.remove_repo("api") is False
        assert not config.has_repo("api")


class TestLoadSave:
    """Config file round trips and error codes."""

    def test_missing_config(self, tmp_path):
        with pytest.raises(FoundagentError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code == ErrorCode.CONFIG_NOT_FOUND

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / ".foundagent.yaml").write_text("workspace: [unclosed\n")
        with pytest.raises(FoundagentError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG

    def test_schema_violation(self, tmp_path):
        (tmp_path / ".foundagent.yaml").write_text("repos: []\n")
        with pytest.raises(FoundagentError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG

    def test_non_mapping_document(self, tmp_path):
        (tmp_path / ".foundagent.yaml").write_text("- just\n- a list\n")
        with pytest.raises(FoundagentError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG

    def test_yml_extension_is_found(self, tmp_path):
        (tmp_path / ".foundagent.yml").write_text("workspace:\n  name: alt\n")
        assert load_config(tmp_path).name == "alt"

    def test_save_then_load(self, tmp_path):
        config = WorkspaceConfig(workspace={"name": "ws"})
        config.add_repo("git@github.com:org/api.git", default_branch="develop")

        path = save_config(tmp_path, config)
        loaded = load_config(tmp_path)

        assert path.name == ".foundagent.yaml"
        assert loaded.name == "ws"
        assert loaded.get_repo("api").default_branch == "develop"
        # Keys keep declaration order
        assert path.read_text().index("workspace:") < path.read_text().index("repos:")


class TestToolSettings:
    """Environment-driven process settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FOUNDAGENT_MAX_WORKERS", raising=False)
        monkeypatch.delenv("FOUNDAGENT_LOG_LEVEL", raising=False)
        settings = ToolSettings()
        assert settings.max_workers is None
        assert settings.log_level == "WARNING"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("FOUNDAGENT_MAX_WORKERS", "4")
        monkeypatch.setenv("FOUNDAGENT_LOG_LEVEL", "DEBUG")
        settings = ToolSettings()
        assert settings.max_workers == 4
        assert settings.log_level == "DEBUG"

    def test_rejects_zero_workers(self, monkeypatch):
        monkeypatch.setenv("FOUNDAGENT_MAX_WORKERS", "0")
        with pytest.raises(ValidationError):
            ToolSettings()
