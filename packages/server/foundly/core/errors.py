"""
Domain error hierarchy.

Services raise these; the API layer maps them to HTTP responses through a
single exception handler (see ``foundly.main``).
"""

from __future__ import annotations


class FoundlyError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    expose: bool = True

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidInputError(FoundlyError):
    """User-correctable input problem, e.g. an empty join code."""

    status_code = 400
    code = "invalid_input"


class ForbiddenError(FoundlyError):
    status_code = 403
    code = "forbidden"


class NotFoundError(FoundlyError):
    status_code = 404
    code = "not_found"


class ConflictError(FoundlyError):
    status_code = 409
    code = "conflict"


class InvalidArgumentError(FoundlyError):
    """Programming error: a document handed to a pure function is malformed."""

    status_code = 500
    code = "invalid_argument"
    expose = False


class StoreError(FoundlyError):
    """Transient document store failure. Safe to retry."""

    status_code = 503
    code = "store_error"


class StoreUnavailableError(StoreError):
    code = "store_unavailable"


class StoreTimeoutError(StoreError):
    code = "store_timeout"


class ConcurrentModificationError(StoreError):
    """A compare-and-swap write lost against a concurrent writer."""

    status_code = 409
    code = "concurrent_modification"
