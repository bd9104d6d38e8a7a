"""
core/errors.py -- The closed error taxonomy shared by every layer.

Route handlers and dependencies raise AppError(kind, message). Nothing below
the HTTP boundary builds a response; api/boundary.py converts AppError (and
the framework's own exceptions) into the uniform {"message": ...} body.

The message carried by an AppError is always safe to show to a client.
Internal detail belongs in the log, never in AppError.message.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CORS_REJECTED = "cors_rejected"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal"


_STATUS: dict[ErrorKind, int] = {
    ErrorKind.CORS_REJECTED: 403,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 422,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}

_DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CORS_REJECTED: "Not allowed by CORS",
    ErrorKind.UNAUTHENTICATED: "Authentication required.",
    ErrorKind.FORBIDDEN: "Access denied.",
    ErrorKind.NOT_FOUND: "Route not found",
    ErrorKind.BAD_REQUEST: "Bad request.",
    ErrorKind.CONFLICT: "Conflict.",
    ErrorKind.VALIDATION: "Request validation failed.",
    ErrorKind.RATE_LIMITED: "Too many requests.",
    ErrorKind.INTERNAL: "Internal server error",
}


class AppError(Exception):
    """An expected failure with a status code and a client-safe message."""

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return _STATUS[self.kind]

    def __repr__(self) -> str:
        return f"AppError({self.kind.value!r}, {self.message!r})"


def kind_for_status(status_code: int) -> ErrorKind:
    """Map a bare HTTP status (e.g. from a framework HTTPException) onto the taxonomy."""
    for kind, status in _STATUS.items():
        if status == status_code and kind is not ErrorKind.CORS_REJECTED:
            return kind
    if 400 <= status_code < 500:
        return ErrorKind.BAD_REQUEST
    return ErrorKind.INTERNAL


class Outcome(str, Enum):
    """How a request left the middleware stack. Recorded in the request log."""

    HANDLED = "handled"
    NOT_FOUND = "not_found"
    ERROR = "error"
