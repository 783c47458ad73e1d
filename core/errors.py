"""
core/errors.py -- Error taxonomy shared by auth/, blog/, and api/.

Every failure a protected operation can surface to a caller is one of these
typed exceptions. Each carries a stable machine-readable code (compare by
code, never by message) and the HTTP status it maps to. The exception
handlers in api/main.py turn them into the standard error envelope:

    {"error": {"code": "UNAUTHORIZED", "message": "Authentication required."}}

Anything that is not an AppError falls through to the generic 500 handler,
which logs the original exception server-side and returns an opaque body.

Layer rule: core/ is the kernel. No imports from api/, auth/, or blog/.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    # Authentication (401)
    UNAUTHORIZED = "UNAUTHORIZED"

    # Authorization (403)
    FORBIDDEN = "FORBIDDEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Resources (404)
    NOT_FOUND = "NOT_FOUND"
    POST_NOT_FOUND = "POST_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    SERVICE_ACCOUNT_NOT_FOUND = "SERVICE_ACCOUNT_NOT_FOUND"

    # Validation (400)
    BAD_REQUEST = "BAD_REQUEST"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_ROLE = "INVALID_ROLE"
    ALREADY_REVOKED = "ALREADY_REVOKED"

    # Conflict (409)
    CONFLICT = "CONFLICT"

    # Throttling (429)
    RATE_LIMITED = "RATE_LIMITED"

    # Server (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for errors that map to a client-visible status and code."""

    status_code: int = 500
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, code: ErrorCode | None = None) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)


class UnauthorizedError(AppError):
    """No valid session or bearer token.

    The message is deliberately the same for every authentication method so
    a caller cannot tell which one almost succeeded.
    """

    status_code = 401
    default_code = ErrorCode.UNAUTHORIZED
    default_message = "Authentication required."


class ForbiddenError(AppError):
    """Authenticated, but the role or scope is insufficient."""

    status_code = 403
    default_code = ErrorCode.FORBIDDEN
    default_message = "Insufficient permissions."


class NotFoundError(AppError):
    status_code = 404
    default_code = ErrorCode.NOT_FOUND
    default_message = "Resource not found."


class ValidationError(AppError):
    status_code = 400
    default_code = ErrorCode.INVALID_INPUT
    default_message = "Invalid input."


class AlreadyRevokedError(ValidationError):
    """Revoking a service account that is already revoked.

    A 400-class error rather than a silent no-op: the caller asked for a state
    transition that cannot happen.
    """

    default_code = ErrorCode.ALREADY_REVOKED
    default_message = "Service account is already revoked."


class ConflictError(AppError):
    status_code = 409
    default_code = ErrorCode.CONFLICT
    default_message = "Resource conflicts with existing state."
