"""Stable error codes shared by every foundagent command."""

from enum import Enum


class ErrorCode(str, Enum):
    """Error code catalogue.

    E0xx configuration and input, E1xx filesystem, E2xx git, E3xx worktrees
    and guard violations, E4xx network, E999 everything else.
    """
    WORKSPACE_EXISTS = "E001"
    INVALID_NAME = "E002"
    PATH_TOO_LONG = "E003"
    INVALID_CONFIG = "E004"
    CONFIG_NOT_FOUND = "E005"
    INVALID_INPUT = "E006"
    STATE_CORRUPT = "E007"

    PERMISSION_DENIED = "E101"
    DISK_FULL = "E102"
    FILE_NOT_FOUND = "E103"
    DIRECTORY_NOT_EMPTY = "E104"

    GIT_NOT_INSTALLED = "E201"
    GIT_OPERATION_FAILED = "E202"
    INVALID_REPOSITORY = "E203"
    COMMIT_FAILED = "E204"
    NOTHING_TO_COMMIT = "E205"
    PUSH_FAILED = "E206"
    NO_UPSTREAM = "E207"
    PUSH_REJECTED = "E208"
    STASH_FAILED = "E209"

    WORKTREE_EXISTS = "E301"
    WORKTREE_NOT_FOUND = "E302"
    BRANCH_EXISTS = "E303"
    BRANCH_NOT_FOUND = "E304"
    INVALID_OPERATION = "E305"
    DIRTY_WORKTREE = "E306"

    NETWORK = "E401"
    AUTH_FAILED = "E402"

    UNKNOWN = "E999"
