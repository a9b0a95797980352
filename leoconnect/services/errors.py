"""
leoconnect.services.errors — Service-level error taxonomy
==========================================================

Services raise these; the FastAPI app maps each one to its HTTP status in a
single exception handler (see :mod:`leoconnect.api.main`).
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors a caller is allowed to see."""

    status_code: int = 500
    reason: str = "internal"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.reason)
        self.detail = detail or self.reason


class InvalidInput(ServiceError):
    status_code = 400
    reason = "invalid_input"


class Conflict(InvalidInput):
    """Request conflicts with existing state (e.g. already following)."""
    reason = "conflict"


class Forbidden(ServiceError):
    status_code = 403
    reason = "forbidden"


class NotFound(ServiceError):
    status_code = 404
    reason = "not_found"


def clean_text(value: str | None, field: str, max_length: int) -> str:
    """Trim *value* and enforce the non-empty / length-ceiling rules.

    Raises :class:`InvalidInput` before any write happens.
    """
    if value is None or not isinstance(value, str):
        raise InvalidInput(f"{field} is required")
    trimmed = value.strip()
    if not trimmed:
        raise InvalidInput(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise InvalidInput(
            f"{field} exceeds maximum length of {max_length} characters"
        )
    return trimmed
