"""
Domain errors raised by the service layer.

Request handlers map them to status codes:
NotFoundError -> 404, InvalidInputError -> 400, PermissionDeniedError -> 403,
ConstraintViolationError -> 409 when is_unique_violation else 500.
"""

from typing import Any, List, Optional


class NotFoundError(ValueError):
    """Raised when a referenced team, event, or other row does not exist."""


class InvalidInputError(ValueError):
    """Raised when a payload is structurally invalid. Nothing has been written."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class ConstraintViolationError(ValueError):
    """Raised when the database rejects a write inside a transaction."""

    def __init__(self, message: str, is_unique_violation: bool = False):
        super().__init__(message)
        self.is_unique_violation = is_unique_violation

    @classmethod
    def from_integrity_error(cls, error) -> "ConstraintViolationError":
        """Build from a sqlalchemy IntegrityError, detecting unique-key clashes."""
        orig = getattr(error, "orig", None)
        text = str(orig if orig is not None else error)
        # asyncpg exposes SQLSTATE 23505; sqlite only has the message
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        is_unique = sqlstate == "23505" or "unique" in text.lower()
        return cls(text, is_unique_violation=is_unique)


class PermissionDeniedError(PermissionError):
    """Raised when the caller's role or ownership does not allow the mutation."""
