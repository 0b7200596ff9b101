"""Tests for PushEngine."""

import pytest

from foundagent.errors import ErrorCode, GitOperationError
from foundagent.workspace.commit import CommitEngine, CommitOptions
from foundagent.workspace.push import PushEngine, PushOptions, PushStatus, PushSummary
from foundagent.workspace.repository import RepositoryManager
from tests.unit.helpers import git, seed_repo


@pytest.fixture
def seeded(workspace):
    seed_repo(workspace, "api")
    seed_repo(workspace, "web")
    return workspace


class TestPushWithMockBackend:
    """Classification and dry-run parity."""

    def test_dry_run_matches_real_push(self, seeded, mock_backend):
        mock_backend.unpushed_count.side_effect = lambda wt: 2 if "api" in wt.parts else 0
        mock_backend.push_refspec.return_value = "main -> origin/main"
        engine = PushEngine(seeded, backend=mock_backend)

        preview = engine.push_all(PushOptions(dry_run=True))
        mock_backend.push.assert_not_called()
        actual = engine.push_all(PushOptions())

        assert preview[0].status == PushStatus.WOULD_PUSH
        assert actual[0].status == PushStatus.PUSHED
        for before, after in zip(preview, actual):
            assert before.commits_pushed == after.commits_pushed
            assert before.refs_pushed == after.refs_pushed
        assert preview[0].refs_pushed == ["main -> origin/main"]
        assert preview[1].status == actual[1].status == PushStatus.SKIPPED
        assert actual[1].error == "nothing to push"
        mock_backend.push.assert_called_once_with(seeded.worktree_path("api", "main"), force=False)

    def test_rejected_push_is_failed(self, seeded, mock_backend):
        mock_backend.unpushed_count.return_value = 1
        mock_backend.push_refspec.return_value = "main -> origin/main"
        mock_backend.push.side_effect = GitOperationError(
            "Push rejected - remote has new commits", code=ErrorCode.PUSH_REJECTED
        )

        results = PushEngine(seeded, backend=mock_backend).push_all(PushOptions(repos=["web"]))
        summary = PushSummary.from_results(results)

        assert [r.name for r in results] == ["web"]
        assert results[0].status == PushStatus.FAILED
        assert "E208" in results[0].error
        assert summary.failed == 1

    def test_force_is_forwarded(self, seeded, mock_backend):
        mock_backend.unpushed_count.return_value = 1
        mock_backend.push_refspec.return_value = "main -> origin/main"

        PushEngine(seeded, backend=mock_backend).push_all(PushOptions(force=True, repos=["api"]))

        mock_backend.push.assert_called_once_with(seeded.worktree_path("api", "main"), force=True)

    def test_count_failure_is_reported(self, seeded, mock_backend):
        mock_backend.unpushed_count.side_effect = GitOperationError("git rev-list failed")

        results = PushEngine(seeded, backend=mock_backend).push_all()

        assert all(r.status == PushStatus.FAILED for r in results)
        mock_backend.push.assert_not_called()

    def test_missing_worktree_is_skipped(self, seeded, mock_backend):
        results = PushEngine(seeded, backend=mock_backend).push_all(PushOptions(branch="release"))
        assert all(r.status == PushStatus.SKIPPED for r in results)
        assert results[0].error.startswith("worktree not found")


class TestPushWithGit:
    """End-to-end: commit then push to a local bare remote."""

    def test_push_new_commit(self, workspace, origin):
        manager = RepositoryManager(workspace)
        manager.declare(origin["url"])
        manager.clone_missing()
        worktree = workspace.worktree_path("api", "main")
        (worktree / "app.py").write_text("print('pushed')\n")
        git("add", "app.py", cwd=worktree)
        CommitEngine(workspace).commit_all(CommitOptions(message="Push me"))
        engine = PushEngine(workspace)

        preview = engine.push_all(PushOptions(dry_run=True))
        results = engine.push_all()
        again = engine.push_all()

        assert preview[0].status == PushStatus.WOULD_PUSH
        assert preview[0].commits_pushed == 1
        assert preview[0].refs_pushed == ["main -> origin/main"]
        assert results[0].status == PushStatus.PUSHED
        assert results[0].commits_pushed == 1
        assert again[0].status == PushStatus.SKIPPED
        assert git("log", "-1", "--format=%s", "main", cwd=origin["bare"]) == "Push me"
