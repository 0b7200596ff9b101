"""Error codes, exceptions and user-facing translation."""

from .codes import ErrorCode
from .exceptions import (
    FoundagentError,
    GitOperationError,
    GuardViolationError,
    StateNotFoundError,
    StateParseError,
)
from .translator import ErrorTranslator, UserFriendlyError

__all__ = [
    "ErrorCode",
    "ErrorTranslator",
    "FoundagentError",
    "GitOperationError",
    "GuardViolationError",
    "StateNotFoundError",
    "StateParseError",
    "UserFriendlyError",
]
