"""Tests for CommitEngine."""

import pytest

from foundagent.errors import ErrorCode, FoundagentError, GitOperationError
from foundagent.workspace.commit import CommitEngine, CommitOptions, CommitStatus, CommitSummary
from foundagent.workspace.git_backend import DiffStats
from foundagent.workspace.repository import RepositoryManager
from tests.unit.helpers import git, seed_repo


@pytest.fixture
def seeded(workspace):
    seed_repo(workspace, "api")
    seed_repo(workspace, "web")
    return workspace


class TestCommitWithMockBackend:
    """Classification of per-repository outcomes."""

    def _engine(self, workspace, backend):
        backend.is_detached.return_value = False
        backend.commit_stats.return_value = DiffStats(files_changed=2, insertions=5, deletions=1)
        return CommitEngine(workspace, backend=backend)

    def test_empty_message_rejected(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        with pytest.raises(FoundagentError) as exc_info:
            engine.commit_all(CommitOptions(message="   "))
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        mock_backend.commit.assert_not_called()

    def test_commits_only_repos_with_staged_changes(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        api = seeded.worktree_path("api", "main")
        mock_backend.has_staged_changes.side_effect = lambda wt: wt == api
        heads = {api: iter(["aaa1111", "bbb2222"])}
        mock_backend.head_sha.side_effect = lambda wt: next(heads[wt]) if wt in heads else "ccc3333"

        results = engine.commit_all(CommitOptions(message="Update"))

        assert [r.name for r in results] == ["api", "web"]
        assert results[0].status == CommitStatus.COMMITTED
        assert results[0].commit_sha == "bbb2222"
        assert (results[0].files_changed, results[0].insertions, results[0].deletions) == (2, 5, 1)
        assert results[1].status == CommitStatus.SKIPPED
        assert results[1].error == "nothing to commit"
        mock_backend.commit.assert_called_once_with(api, "Update", amend=False)

    def test_each_repo_falls_back_to_its_own_default_branch(self, seeded, mock_backend):
        seed_repo(seeded, "legacy", branches=["master"])
        engine = self._engine(seeded, mock_backend)
        mock_backend.has_staged_changes.return_value = True
        heads = {
            seeded.worktree_path("api", "main"): iter(["aaa", "bbb"]),
            seeded.worktree_path("legacy", "master"): iter(["ccc", "ddd"]),
        }
        mock_backend.head_sha.side_effect = lambda wt: next(heads[wt])

        results = engine.commit_all(CommitOptions(message="Update", repos=["api", "legacy"]))

        assert [(r.name, r.status) for r in results] == [
            ("api", CommitStatus.COMMITTED),
            ("legacy", CommitStatus.COMMITTED),
        ]
        committed = [c.args[0] for c in mock_backend.commit.call_args_list]
        assert sorted(committed) == sorted([
            seeded.worktree_path("api", "main"),
            seeded.worktree_path("legacy", "master"),
        ])

    def test_failure_in_one_repo_does_not_stop_others(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        api = seeded.worktree_path("api", "main")
        mock_backend.has_staged_changes.return_value = True
        mock_backend.head_sha.side_effect = ["aaa", "bbb", "ccc"]

        def commit(wt, message, amend=False):
            if wt == api:
                raise GitOperationError("Pre-commit hook failed", code=ErrorCode.COMMIT_FAILED)

        mock_backend.commit.side_effect = commit

        results = engine.commit_all(CommitOptions(message="Update"))
        summary = CommitSummary.from_results(results)

        assert results[0].status == CommitStatus.FAILED
        assert "hook" in results[0].error
        assert results[1].status == CommitStatus.COMMITTED
        assert (summary.committed, summary.failed) == (1, 1)

    def test_dry_run_reports_staged_stats_without_committing(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        mock_backend.has_staged_changes.return_value = True
        mock_backend.head_sha.return_value = "aaa"
        mock_backend.staged_diff_stats.return_value = DiffStats(files_changed=1, insertions=3)

        results = engine.commit_all(CommitOptions(dry_run=True))

        assert all(r.status == CommitStatus.WOULD_COMMIT for r in results)
        assert results[0].files_changed == 1
        assert results[0].insertions == 3
        mock_backend.commit.assert_not_called()

    def test_detached_head_fails_unless_allowed(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        mock_backend.is_detached.return_value = True
        mock_backend.has_staged_changes.return_value = True
        mock_backend.head_sha.return_value = "aaa"

        results = engine.commit_all(CommitOptions(message="Update"))

        assert all(r.status == CommitStatus.FAILED for r in results)
        assert "detached HEAD" in results[0].error
        mock_backend.commit.assert_not_called()

    def test_missing_worktree_is_skipped(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        mock_backend.has_staged_changes.return_value = False
        mock_backend.head_sha.return_value = "aaa"

        results = engine.commit_all(CommitOptions(message="Update", branch="feature/none"))

        assert all(r.status == CommitStatus.SKIPPED for r in results)
        assert results[0].error.startswith("worktree not found")

    def test_stage_all_stages_tracked_changes(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        mock_backend.has_tracked_changes.return_value = True
        mock_backend.has_staged_changes.return_value = False
        mock_backend.head_sha.return_value = "aaa"

        engine.commit_all(CommitOptions(message="Update", all=True, repos=["web"]))

        mock_backend.stage_tracked.assert_called_once_with(seeded.worktree_path("web", "main"))

    def test_unknown_repo_rejected(self, seeded, mock_backend):
        engine = self._engine(seeded, mock_backend)
        with pytest.raises(FoundagentError) as exc_info:
            engine.commit_all(CommitOptions(message="Update", repos=["nope"]))
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    def test_no_repositories(self, workspace, mock_backend):
        assert CommitEngine(workspace, backend=mock_backend).commit_all(CommitOptions(message="x")) == []


class TestCommitWithGit:
    """End-to-end against a real clone."""

    @pytest.fixture
    def cloned(self, workspace, origin):
        manager = RepositoryManager(workspace)
        manager.declare(origin["url"])
        manager.clone_missing()
        return workspace

    def test_commit_staged_change(self, cloned):
        worktree = cloned.worktree_path("api", "main")
        (worktree / "app.py").write_text("print('changed')\nprint('more')\n")
        git("add", "app.py", cwd=worktree)

        results = CommitEngine(cloned).commit_all(CommitOptions(message="Change app"))

        assert results[0].status == CommitStatus.COMMITTED
        assert results[0].files_changed == 1
        assert results[0].insertions == 2
        assert results[0].deletions == 1
        assert git("log", "-1", "--format=%s", cwd=worktree) == "Change app"

    def test_dry_run_leaves_head_alone(self, cloned):
        worktree = cloned.worktree_path("api", "main")
        head = git("rev-parse", "HEAD", cwd=worktree)
        (worktree / "README.md").write_text("# changed\n")

        results = CommitEngine(cloned).commit_all(CommitOptions(all=True, dry_run=True))

        assert results[0].status == CommitStatus.WOULD_COMMIT
        assert git("rev-parse", "HEAD", cwd=worktree) == head

    def test_nothing_staged(self, cloned):
        results = CommitEngine(cloned).commit_all(CommitOptions(message="Nothing"))
        assert results[0].status == CommitStatus.SKIPPED
        assert results[0].error == "nothing to commit"
