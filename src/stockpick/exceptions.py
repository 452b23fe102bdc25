"""Engine error taxonomy.

Every error the engine raises on purpose derives from ``AppException`` so the
HTTP layer can render it uniformly and workers can decide whether to retry.
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception with structured error response."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            **({"details": self.details} if self.details else {}),
        }


class MissingPriceError(AppException):
    """No exit price override and no last known price to settle against."""

    status_code = 409
    error_code = "MISSING_PRICE"
    message = "No price available to settle the prediction"
    retryable = True


class NotFoundError(AppException):
    """Resource not found."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


class InvalidStateError(AppException):
    """Operation not allowed in the entity's current state."""

    status_code = 409
    error_code = "INVALID_STATE"
    message = "Operation not allowed in the current state"


class InvalidPeriodError(AppException):
    """Malformed ranking type or period identifier."""

    status_code = 422
    error_code = "INVALID_PERIOD"
    message = "Invalid ranking period"


class ConcurrencyConflictError(AppException):
    """Lock contention on settlement or ranking recomputation."""

    status_code = 409
    error_code = "CONCURRENCY_CONFLICT"
    message = "Resource is busy, retry later"
    retryable = True


class PersistenceError(AppException):
    """Storage layer failure."""

    status_code = 503
    error_code = "PERSISTENCE_ERROR"
    message = "Storage operation failed"
