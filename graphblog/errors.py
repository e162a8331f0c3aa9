"""
Error taxonomy for content operations.

Every failure a client can observe is a ``ContentError``. Subclasses fix the
status code; ``code`` stays ``None`` where none was assigned, and
``status_for`` maps that to the default of 500.
"""

from __future__ import annotations

from typing import Optional

DEFAULT_ERROR_STATUS = 500


class ContentError(Exception):
    """Base class for errors surfaced through the error envelope."""

    code: Optional[int] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def data(self) -> Optional[list[dict]]:
        return None


class ValidationError(ContentError):
    """Malformed user or post input; carries every violation found."""

    code = 422

    def __init__(self, message: str, errors: list[dict]):
        super().__init__(message)
        self.errors = list(errors)

    @property
    def data(self) -> Optional[list[dict]]:
        return self.errors


class AuthenticationError(ContentError):
    code = 401


class AuthorizationError(ContentError):
    code = 403


class NotFoundError(ContentError):
    code = 404


class ConflictError(ContentError):
    """Duplicate registration. Deliberately carries no code."""


def status_for(error: BaseException) -> int:
    code = getattr(error, "code", None)
    if isinstance(code, int) and code:
        return code
    return DEFAULT_ERROR_STATUS


def envelope_for(error: BaseException) -> dict:
    """Shape an error into the ``{message, status, data}`` envelope."""
    if isinstance(error, ContentError):
        return {
            "message": error.message or "An error occurred",
            "status": status_for(error),
            "data": error.data,
        }
    return {
        "message": str(error) or "An error occurred",
        "status": DEFAULT_ERROR_STATUS,
        "data": None,
    }
