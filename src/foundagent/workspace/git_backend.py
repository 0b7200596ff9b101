"""Thin, typed wrapper over the git command line.

Every method runs one or a few git subprocesses against a bare clone or a
worktree and either returns a plain value or raises GitOperationError.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Set

from ..errors import ErrorCode, GitOperationError
from ..utils.subprocess_utils import SubprocessError, check_command_exists, run_git_command

logger = logging.getLogger(__name__)

STASH_MESSAGE = "Foundagent auto-stash before sync"
ORIGIN_FETCH_REFSPEC = "+refs/heads/*:refs/remotes/origin/*"


@dataclass
class DiffStats:
    """Line counts from ``--numstat`` output."""
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    @classmethod
    def from_numstat(cls, output: str) -> "DiffStats":
        stats = cls()
        for line in output.splitlines():
            parts = line.split()
            if len(parts) < 2:
                continue
            stats.files_changed += 1
            # Binary files report "-" for both counts
            if parts[0].isdigit():
                stats.insertions += int(parts[0])
            if parts[1].isdigit():
                stats.deletions += int(parts[1])
        return stats


class GitBackend:
    """Version-control operations used by the workspace engines."""

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout

    def _run(self, args: List[str], cwd: Optional[Path] = None, check: bool = True):
        try:
            return run_git_command(args, cwd=cwd, check=check, timeout=self.timeout)
        except FileNotFoundError as e:
            raise GitOperationError(
                "git executable not found",
                code=ErrorCode.GIT_NOT_INSTALLED,
                remediation="Install git and make sure it is on your PATH",
                cause=e,
            ) from e
        except SubprocessError as e:
            raise GitOperationError(
                f"git {args[0]} failed in {cwd}",
                cause=e,
                output=e.output,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise GitOperationError(
                f"git {args[0]} timed out after {self.timeout}s in {cwd}",
                remediation="Check network connectivity, or raise the timeout",
                cause=e,
            ) from e

    def _output(self, args: List[str], cwd: Optional[Path] = None) -> str:
        return self._run(args, cwd=cwd).stdout.strip()

    def _succeeds(self, args: List[str], cwd: Optional[Path] = None) -> bool:
        return self._run(args, cwd=cwd, check=False).returncode == 0

    def _quiet_diff(self, args: List[str], cwd: Path) -> bool:
        """Run a ``diff --quiet`` style command: exit 1 means differences."""
        result = self._run(args, cwd=cwd, check=False)
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise GitOperationError(
            f"git {' '.join(args)} failed in {cwd}",
            output=(result.stderr or "").strip(),
        )

    # Installation

    def is_installed(self) -> bool:
        return check_command_exists("git")

    def version(self) -> str:
        return self._output(["--version"])

    # Bare clones

    def clone_bare(self, url: str, target: Path) -> None:
        """Clone ``url`` as a bare repository and configure remote-tracking refs."""
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._run(["clone", "--bare", "--quiet", url, str(target)])
        except GitOperationError as e:
            e.message = f"Failed to clone repository: {url}"
            e.remediation = (
                "Check that the repository exists and you have access. For private "
                "repos, ensure your SSH key or HTTPS credentials are configured"
            )
            raise
        # Bare clones have no fetch refspec; without one origin/<branch> never exists
        self._run(["config", "remote.origin.fetch", ORIGIN_FETCH_REFSPEC], cwd=target)
        self.fetch(target)

    def default_branch(self, bare_path: Path) -> str:
        result = self._run(["symbolic-ref", "--short", "HEAD"], cwd=bare_path, check=False)
        branch = (result.stdout or "").strip()
        return branch if result.returncode == 0 and branch else "main"

    def fetch(self, bare_path: Path) -> None:
        try:
            self._run(["fetch", "origin", "--prune"], cwd=bare_path)
        except GitOperationError as e:
            if _is_auth_failure(e.output):
                e.code = ErrorCode.AUTH_FAILED
                e.message = "Git authentication failed"
                e.remediation = "Check SSH keys or Git credentials"
            else:
                e.code = ErrorCode.NETWORK
                e.message = "Failed to fetch from remote"
                e.remediation = "Check network connection and remote URL"
            raise

    # Worktrees

    def worktree_add(self, bare_path: Path, worktree_path: Path, branch: str) -> None:
        worktree_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._run(["--git-dir", str(bare_path), "worktree", "add", str(worktree_path), branch])
        except GitOperationError as e:
            e.message = f"Failed to create worktree for branch {branch}"
            e.remediation = "Ensure the branch exists in the remote repository"
            raise
        upstream = f"origin/{branch}"
        if self._succeeds(["rev-parse", "--verify", "--quiet", upstream], cwd=worktree_path):
            self._run(["branch", f"--set-upstream-to={upstream}"], cwd=worktree_path, check=False)

    def worktree_add_new(self, bare_path: Path, worktree_path: Path, branch: str, source: str) -> None:
        """Create ``branch`` from ``source`` and check it out at ``worktree_path``."""
        worktree_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._run(["--git-dir", str(bare_path), "worktree", "add", "-b", branch, str(worktree_path), source])
        except GitOperationError as e:
            e.message = f"Failed to create worktree with new branch {branch} from {source}"
            e.remediation = "Ensure the source branch exists"
            raise

    def branch_exists(self, bare_path: Path, branch: str) -> bool:
        return self._succeeds(["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"], cwd=bare_path)

    def delete_branch(self, bare_path: Path, branch: str, force: bool = False) -> None:
        try:
            self._run(["branch", "-D" if force else "-d", branch], cwd=bare_path)
        except GitOperationError as e:
            e.message = f"Failed to delete branch {branch}"
            e.remediation = "Check that the branch exists and is fully merged (or use --force)"
            raise

    def is_branch_merged(self, bare_path: Path, branch: str, base: str) -> bool:
        output = self._output(["branch", "--merged", base, "--format=%(refname:short)"], cwd=bare_path)
        return branch in [line.strip() for line in output.splitlines()]

    def worktree_remove(self, bare_path: Path, worktree_path: Path) -> None:
        """Remove a worktree, falling back to deleting its directory."""
        result = self._run(
            ["--git-dir", str(bare_path), "worktree", "remove", "--force", str(worktree_path)],
            check=False,
        )
        if result.returncode != 0 and worktree_path.exists():
            logger.debug(f"git worktree remove failed for {worktree_path}, deleting directory")
            shutil.rmtree(worktree_path)

    def worktree_prune(self, bare_path: Path) -> None:
        self._run(["--git-dir", str(bare_path), "worktree", "prune"])

    # Working tree status

    def has_uncommitted_changes(self, worktree: Path) -> bool:
        return bool(self._output(["status", "--porcelain"], cwd=worktree))

    def has_tracked_changes(self, worktree: Path) -> bool:
        return self._quiet_diff(["diff", "--quiet"], worktree)

    def has_staged_changes(self, worktree: Path) -> bool:
        return self._quiet_diff(["diff", "--cached", "--quiet"], worktree)

    def status_flags(self, worktree: Path) -> Set[str]:
        """Summarize ``status --porcelain``: any of ``modified``, ``untracked``, ``conflict``."""
        flags = set()
        for line in self._output(["status", "--porcelain"], cwd=worktree).splitlines():
            code = line[:2]
            if code == "??":
                flags.add("untracked")
            elif "U" in code or code in ("AA", "DD"):
                flags.add("conflict")
            elif code.strip():
                flags.add("modified")
        return flags

    def staged_diff_stats(self, worktree: Path) -> DiffStats:
        return DiffStats.from_numstat(self._output(["diff", "--cached", "--numstat"], cwd=worktree))

    def stage_tracked(self, worktree: Path) -> None:
        self._run(["add", "-u"], cwd=worktree)

    # HEAD

    def head_sha(self, worktree: Path) -> str:
        """Short SHA of HEAD, or an empty string on an unborn branch."""
        result = self._run(["rev-parse", "--short", "HEAD"], cwd=worktree, check=False)
        return (result.stdout or "").strip() if result.returncode == 0 else ""

    def is_detached(self, worktree: Path) -> bool:
        return not self._succeeds(["symbolic-ref", "-q", "HEAD"], cwd=worktree)

    def current_branch(self, worktree: Path) -> str:
        """Current branch name, or an empty string when detached."""
        result = self._run(["symbolic-ref", "--short", "-q", "HEAD"], cwd=worktree, check=False)
        return (result.stdout or "").strip() if result.returncode == 0 else ""

    def commit_stats(self, worktree: Path, sha: str) -> DiffStats:
        output = self._output(
            ["diff-tree", "--root", "--no-commit-id", "--numstat", "-r", sha], cwd=worktree
        )
        return DiffStats.from_numstat(output)

    # Commit / push / pull

    def commit(self, worktree: Path, message: str = "", amend: bool = False) -> None:
        args = ["commit"]
        if amend:
            args.append("--amend")
            args += ["-m", message] if message else ["--no-edit"]
        else:
            args += ["-m", message]

        try:
            self._run(args, cwd=worktree)
        except GitOperationError as e:
            if "nothing to commit" in e.output or "no changes added" in e.output:
                e.code = ErrorCode.NOTHING_TO_COMMIT
                e.message = "Nothing to commit"
                e.remediation = "Stage changes first or use -a"
            elif "hook" in e.output:
                e.code = ErrorCode.COMMIT_FAILED
                e.message = "Pre-commit hook failed"
                e.remediation = "Fix the issues reported by the pre-commit hook"
            else:
                e.code = ErrorCode.COMMIT_FAILED
                e.message = f"Commit failed: {e.output}" if e.output else "Commit failed"
                e.remediation = "Check git status for details"
            raise

    def has_upstream(self, worktree: Path) -> bool:
        return self._succeeds(["rev-parse", "--abbrev-ref", "@{upstream}"], cwd=worktree)

    def unpushed_count(self, worktree: Path) -> int:
        """Commits on HEAD not yet on the remote.

        Counts against the upstream tracking ref when one is configured,
        otherwise against ``origin/<branch>`` when that ref exists, otherwise 0.
        """
        if self.has_upstream(worktree):
            compare = "@{upstream}"
        else:
            branch = self.current_branch(worktree)
            if not branch:
                return 0
            if not self._succeeds(["rev-parse", "--verify", "--quiet", f"origin/{branch}"], cwd=worktree):
                return 0
            compare = f"origin/{branch}"

        output = self._output(["rev-list", "--count", f"{compare}..HEAD"], cwd=worktree)
        return int(output or 0)

    def push_refspec(self, worktree: Path) -> str:
        """Human-readable destination, e.g. ``main -> origin/main``."""
        branch = self.current_branch(worktree)
        return f"{branch} -> origin/{branch}" if branch else ""

    def push(self, worktree: Path, force: bool = False) -> None:
        args = ["push"]
        if force:
            args.append("--force")
        branch = self.current_branch(worktree)
        if branch:
            args += ["origin", branch]

        try:
            self._run(args, cwd=worktree)
        except GitOperationError as e:
            if "rejected" in e.output or "non-fast-forward" in e.output:
                e.code = ErrorCode.PUSH_REJECTED
                e.message = "Push rejected - remote has new commits"
                e.remediation = "Run 'fa sync --pull' first to update your branch"
            elif _is_auth_failure(e.output):
                e.code = ErrorCode.AUTH_FAILED
                e.message = "Git authentication failed"
                e.remediation = "Check SSH keys or Git credentials"
            elif "no upstream" in e.output or "has no upstream" in e.output:
                e.code = ErrorCode.NO_UPSTREAM
                e.message = "No upstream branch configured"
                e.remediation = "Set upstream with: git push -u origin <branch>"
            else:
                e.code = ErrorCode.PUSH_FAILED
                e.message = "Failed to push to remote"
                e.remediation = "Check network connection and remote URL"
            raise

    def pull(self, worktree: Path) -> None:
        """Fast-forward pull."""
        try:
            self._run(["pull", "--ff-only"], cwd=worktree)
        except GitOperationError as e:
            if "Not possible to fast-forward" in e.output or "divergent" in e.output:
                e.message = "Cannot fast-forward - branches have diverged"
                e.remediation = "Run 'git merge' or 'git rebase' manually to resolve"
            elif _is_auth_failure(e.output):
                e.code = ErrorCode.AUTH_FAILED
                e.message = "Git authentication failed"
                e.remediation = "Check SSH keys or Git credentials"
            else:
                e.message = "Failed to pull"
                e.remediation = "Ensure worktree is clean and branch tracking is set up"
            raise

    # Stash

    def stash(self, worktree: Path) -> bool:
        """Stash local changes. Returns False when there was nothing to stash."""
        try:
            result = self._run(["stash", "push", "-m", STASH_MESSAGE], cwd=worktree)
        except GitOperationError as e:
            e.code = ErrorCode.STASH_FAILED
            e.message = "Failed to stash changes"
            e.remediation = "Commit or discard your changes manually"
            raise
        return "No local changes to save" not in (result.stdout or "") + (result.stderr or "")

    def stash_pop(self, worktree: Path) -> None:
        try:
            self._run(["stash", "pop"], cwd=worktree)
        except GitOperationError as e:
            e.code = ErrorCode.STASH_FAILED
            if "CONFLICT" in e.output:
                e.message = "Stash pop resulted in conflicts"
                e.remediation = "Resolve the conflicts, then run 'git stash drop'"
            else:
                e.message = "Failed to restore stashed changes"
                e.remediation = "Run 'git stash pop' manually"
            raise


def _is_auth_failure(output: str) -> bool:
    return "Authentication failed" in output or "Permission denied" in output
