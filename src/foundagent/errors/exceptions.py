"""Exception hierarchy raised by the workspace core."""

from typing import Optional

from .codes import ErrorCode


class FoundagentError(Exception):
    """Base error carrying a stable code and a remediation hint.

    Args:
        code: Catalogue code, rendered as ``[E0xx]``
        message: What went wrong
        remediation: What the user can do about it
        cause: Underlying exception, also chained through ``__cause__``
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        remediation: str = "",
        cause: Optional[BaseException] = None,
    ):
        self.code = code
        self.message = message
        self.remediation = remediation
        self.cause = cause
        super().__init__(str(self))
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        text = f"[{self.code.value}] {self.message}"
        if self.cause is not None:
            text += f": {self.cause}"
        return text


class StateNotFoundError(FoundagentError):
    """State document does not exist on disk."""

    def __init__(self, path, cause: Optional[BaseException] = None):
        super().__init__(
            ErrorCode.FILE_NOT_FOUND,
            f"State file not found: {path}",
            "Run 'fa doctor --fix' to regenerate state from the workspace",
            cause,
        )
        self.path = path


class StateParseError(FoundagentError):
    """State document exists but cannot be decoded."""

    def __init__(self, path, cause: Optional[BaseException] = None):
        super().__init__(
            ErrorCode.STATE_CORRUPT,
            f"State file is corrupted: {path}",
            "Run 'fa doctor --fix' to regenerate state from the workspace",
            cause,
        )
        self.path = path


class GitOperationError(FoundagentError):
    """A git invocation failed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.GIT_OPERATION_FAILED,
        remediation: str = "",
        cause: Optional[BaseException] = None,
        output: str = "",
    ):
        super().__init__(code, message, remediation, cause)
        self.output = output


class GuardViolationError(FoundagentError):
    """A safety guard refused to start a destructive operation."""
