"""Tests for GitBackend against real repositories."""

from unittest.mock import patch

import pytest

from foundagent.errors import ErrorCode, GitOperationError
from foundagent.utils.subprocess_utils import SubprocessError
from foundagent.workspace.git_backend import DiffStats, GitBackend
from tests.unit.helpers import git


class TestDiffStats:
    def test_from_numstat(self):
        output = "3\t1\tsrc/app.py\n-\t-\tlogo.png\n10\t0\tREADME.md\n"
        stats = DiffStats.from_numstat(output)
        assert (stats.files_changed, stats.insertions, stats.deletions) == (3, 13, 1)

    def test_empty_output(self):
        assert DiffStats.from_numstat("") == DiffStats()


class TestErrorMapping:
    """Subprocess failures become coded GitOperationErrors."""

    def test_missing_executable(self):
        with patch("foundagent.workspace.git_backend.run_git_command", side_effect=FileNotFoundError("git")):
            with pytest.raises(GitOperationError) as exc_info:
                GitBackend().version()
        assert exc_info.value.code == ErrorCode.GIT_NOT_INSTALLED

    def test_push_rejected(self, tmp_path):
        failure = SubprocessError("git push", 1, stderr=" ! [rejected]        main -> main (non-fast-forward)")
        backend = GitBackend()
        with patch("foundagent.workspace.git_backend.run_git_command") as run:
            run.side_effect = lambda args, **kwargs: _fake_push(args, failure)
            with pytest.raises(GitOperationError) as exc_info:
                backend.push(tmp_path)
        assert exc_info.value.code == ErrorCode.PUSH_REJECTED
        assert "non-fast-forward" in exc_info.value.output

    def test_fetch_auth_failure(self, tmp_path):
        failure = SubprocessError("git fetch", 128, stderr="fatal: Authentication failed for 'https://example.com'")
        with patch("foundagent.workspace.git_backend.run_git_command", side_effect=failure):
            with pytest.raises(GitOperationError) as exc_info:
                GitBackend().fetch(tmp_path)
        assert exc_info.value.code == ErrorCode.AUTH_FAILED

    def test_fetch_network_failure(self, tmp_path):
        failure = SubprocessError("git fetch", 128, stderr="fatal: Could not resolve host: example.com")
        with patch("foundagent.workspace.git_backend.run_git_command", side_effect=failure):
            with pytest.raises(GitOperationError) as exc_info:
                GitBackend().fetch(tmp_path)
        assert exc_info.value.code == ErrorCode.NETWORK


def _fake_push(args, failure):
    if args[0] == "symbolic-ref":
        return _Completed(0, "main\n")
    raise failure


class _Completed:
    def __init__(self, returncode, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class TestWithGit:
    """Bare clones, worktrees and status queries."""

    @pytest.fixture
    def clone(self, tmp_path, origin):
        backend = GitBackend()
        bare = tmp_path / "ws" / "api.git"
        backend.clone_bare(origin["url"], bare)
        worktree = tmp_path / "ws" / "worktrees" / "main"
        backend.worktree_add(bare, worktree, "main")
        return backend, bare, worktree

    def test_version(self, git_env):
        assert GitBackend().version().startswith("git version")

    def test_clone_configures_remote_tracking(self, clone):
        backend, bare, worktree = clone
        assert backend.default_branch(bare) == "main"
        assert git("rev-parse", "--verify", "origin/main", cwd=bare)
        assert backend.has_upstream(worktree)
        assert backend.current_branch(worktree) == "main"
        assert not backend.is_detached(worktree)

    def test_status_queries(self, clone):
        backend, bare, worktree = clone
        assert not backend.has_uncommitted_changes(worktree)

        (worktree / "app.py").write_text("print('changed')\n")
        assert backend.has_uncommitted_changes(worktree)
        assert backend.has_tracked_changes(worktree)
        assert not backend.has_staged_changes(worktree)

        backend.stage_tracked(worktree)
        assert backend.has_staged_changes(worktree)
        assert backend.staged_diff_stats(worktree).files_changed == 1
        assert backend.status_flags(worktree) == {"modified"}

        (worktree / "scratch.txt").write_text("tmp\n")
        assert backend.status_flags(worktree) == {"modified", "untracked"}

    def test_commit_and_unpushed_count(self, clone):
        backend, bare, worktree = clone
        before = backend.head_sha(worktree)
        (worktree / "new.txt").write_text("new\n")
        git("add", "new.txt", cwd=worktree)

        backend.commit(worktree, "Add new file")

        assert backend.head_sha(worktree) != before
        assert backend.unpushed_count(worktree) == 1
        assert backend.push_refspec(worktree) == "main -> origin/main"

    def test_commit_with_nothing_staged(self, clone):
        backend, bare, worktree = clone
        with pytest.raises(GitOperationError) as exc_info:
            backend.commit(worktree, "Empty")
        assert exc_info.value.code == ErrorCode.NOTHING_TO_COMMIT

    def test_stash_round_trip(self, clone):
        backend, bare, worktree = clone
        assert backend.stash(worktree) is False

        (worktree / "app.py").write_text("print('stashed')\n")
        assert backend.stash(worktree) is True
        assert not backend.has_uncommitted_changes(worktree)

        backend.stash_pop(worktree)
        assert (worktree / "app.py").read_text() == "print('stashed')\n"

    def test_worktree_remove(self, clone):
        backend, bare, worktree = clone
        backend.worktree_remove(bare, worktree)
        assert not worktree.exists()
        backend.worktree_prune(bare)

    def test_branch_lifecycle(self, clone):
        backend, bare, worktree = clone
        feature = worktree.parent / "feature" / "login"
        assert not backend.branch_exists(bare, "feature/login")

        backend.worktree_add_new(bare, feature, "feature/login", "main")

        assert backend.branch_exists(bare, "feature/login")
        assert backend.current_branch(feature) == "feature/login"
        assert backend.is_branch_merged(bare, "feature/login", "main")

        (feature / "login.py").write_text("pass\n")
        git("add", "login.py", cwd=feature)
        git("commit", "--quiet", "-m", "Add login", cwd=feature)
        assert not backend.is_branch_merged(bare, "feature/login", "main")

        backend.worktree_remove(bare, feature)
        backend.worktree_prune(bare)
        backend.delete_branch(bare, "feature/login", force=True)
        assert not backend.branch_exists(bare, "feature/login")

    def test_worktree_add_new_from_missing_source(self, clone):
        backend, bare, worktree = clone
        with pytest.raises(GitOperationError) as exc_info:
            backend.worktree_add_new(bare, worktree.parent / "topic", "topic", "no-such-branch")
        assert "no-such-branch" in exc_info.value.message
