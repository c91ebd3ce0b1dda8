"""
Error Taxonomy

Every failure the service reports to a caller is an ``AppError`` with a
stable machine-readable code, a human message and the HTTP status the API
layer answers with. Domain rule violations are raised as-is; storage-layer
failures are wrapped in ``StorageError`` (``INTERNAL_ERROR``).
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable caller-facing error codes."""
    TEAM_EXISTS = "TEAM_EXISTS"
    PR_EXISTS = "PR_EXISTS"
    PR_MERGED = "PR_MERGED"
    NOT_ASSIGNED = "NOT_ASSIGNED"
    NO_CANDIDATE = "NO_CANDIDATE"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for all errors surfaced to callers."""

    code: ErrorCode = ErrorCode.INTERNAL
    status_code: int = 500
    default_message: str = "internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class TeamAlreadyExists(AppError):
    code = ErrorCode.TEAM_EXISTS
    status_code = 400
    default_message = "team_name already exists"


class PRAlreadyExists(AppError):
    code = ErrorCode.PR_EXISTS
    status_code = 409
    default_message = "PR id already exists"


class PRMerged(AppError):
    """Terminal: the PR's reviewer set is frozen, retrying cannot help."""
    code = ErrorCode.PR_MERGED
    status_code = 409
    default_message = "cannot reassign on merged PR"


class ReviewerNotAssigned(AppError):
    code = ErrorCode.NOT_ASSIGNED
    status_code = 409
    default_message = "reviewer is not assigned to this PR"


class NoActiveCandidate(AppError):
    """Retryable once the team's active membership changes."""
    code = ErrorCode.NO_CANDIDATE
    status_code = 409
    default_message = "no active replacement candidate in team"


class NotFound(AppError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
    default_message = "resource not found"


class TeamNotFound(NotFound):
    default_message = "team not found"


class UserNotFound(NotFound):
    default_message = "user not found"


class PRNotFound(NotFound):
    default_message = "PR not found"


class BadRequest(AppError):
    code = ErrorCode.BAD_REQUEST
    status_code = 400
    default_message = "bad request"


class Unauthorized(AppError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 401
    default_message = "unauthorized"


class StorageError(AppError):
    """Unexpected failure in the storage layer."""
    code = ErrorCode.INTERNAL
    status_code = 500
    default_message = "storage operation failed"
