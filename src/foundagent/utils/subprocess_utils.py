"""Subprocess helpers shared by the git backend."""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# Error classification matches English git messages, and a clone or fetch
# must never block on a credential prompt.
GIT_ENV_OVERRIDES = {
    "LC_ALL": "C",
    "GIT_TERMINAL_PROMPT": "0",
}


class SubprocessError(Exception):
    """A command exited non-zero."""

    def __init__(self, cmd: str, returncode: int, stderr: str = "", stdout: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(f"'{cmd}' exited with {returncode}: {self.output}")

    @property
    def output(self) -> str:
        """Combined stdout and stderr, as git splits its messages across both."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part).strip()


def run_command(
    cmd: Union[str, Sequence[str]],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Run a command with captured text output.

    Args:
        cmd: Command to run (string or argument list)
        cwd: Working directory
        check: Raise SubprocessError on non-zero exit
        timeout: Timeout in seconds, None waits forever
        env: Full environment for the child, None inherits ours

    Returns:
        CompletedProcess with stdout, stderr, returncode

    Raises:
        SubprocessError: If check=True and the command fails
        subprocess.TimeoutExpired: If timeout exceeded
    """
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=env,
        check=False,
    )
    if check and result.returncode != 0:
        raise SubprocessError(
            cmd=cmd if isinstance(cmd, str) else " ".join(cmd),
            returncode=result.returncode,
            stderr=result.stderr or "",
            stdout=result.stdout or "",
        )
    return result


def run_git_command(
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """Run ``git <args>`` non-interactively with the C locale."""
    env = {**os.environ, **GIT_ENV_OVERRIDES}
    logger.debug(f"git {' '.join(args)} (cwd={cwd})")
    return run_command(["git", *args], cwd=cwd, check=check, timeout=timeout, env=env)


def check_command_exists(command: str) -> bool:
    return shutil.which(command) is not None
