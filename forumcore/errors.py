"""
Error taxonomy shared by the persistence API and the client core.

Every failure is scoped to the single request or mutation that caused it.
"""
from __future__ import annotations

from typing import Any


class ForumError(Exception):
    """Base class for every error the forum raises on purpose."""

    status_code: int | None = 500

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.message}


class ValidationError(ForumError):
    """Input rejected before anything was applied (missing or bad field)."""

    status_code = 400


class NotFoundError(ForumError):
    status_code = 404


class ConflictError(ForumError):
    """Uniqueness violation, e.g. a duplicate list entry."""

    status_code = 409


class ApiError(ForumError):
    """Non-2xx answer from the persistence API that has no narrower type."""

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message, payload)
        self.status_code = status_code


class TransportError(ForumError):
    """The request never produced an HTTP answer (DNS, refused, timeout)."""

    status_code = None


ERRORS_BY_STATUS: dict[int, type[ForumError]] = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
}


def error_for_status(status_code: int, message: str, payload: Any = None) -> ForumError:
    """Map an HTTP status returned by the API onto the error taxonomy."""
    error_cls = ERRORS_BY_STATUS.get(status_code)
    if error_cls is None:
        return ApiError(message, status_code=status_code, payload=payload)
    return error_cls(message, payload)
