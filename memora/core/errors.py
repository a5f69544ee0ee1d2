"""
Error taxonomy for the review core.

Services raise these; the API layer maps them onto HTTP status codes and the
CLI onto exit codes.
"""

from __future__ import annotations


class MemoraError(Exception):
    """Base class for all errors raised by the review core."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MemoraError):
    """Malformed input. Rejected before any state is written."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidGrade(ValidationError):
    code = "INVALID_GRADE"


class InvalidItemKind(ValidationError):
    code = "INVALID_ITEM_KIND"


class NotFoundError(MemoraError):
    """Unknown item, session, student state or knowledge unit."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, identifier: str):
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class ConcurrencyConflict(MemoraError):
    """A concurrent write to the same state row won the race."""

    status_code = 409
    code = "CONCURRENCY_CONFLICT"


class PersistenceError(MemoraError):
    """Storage unavailable or the transaction could not be committed."""

    status_code = 503
    code = "PERSISTENCE_ERROR"
