"""
Failure taxonomy and the uniform JSON response envelope.

Every response of the admin API uses the same envelope:

    {"success": bool, "data": ..., "message": str | null}

The client core treats `success: false` and a non-2xx transport status
identically: both are a failed remote call and trigger the rollback path.

Error classes:
- KnownError: the system knows exactly what went wrong (validation, lock,
  conflict, missing entity). Carries an HTTP status for the API layer.
- PreconditionError: caller-side validation. Raised BEFORE any optimistic
  state change is applied, so no rollback is ever needed for it.
- RemoteError: a remote call failed (transport or application level).
  Caught at the mutation controller boundary and never allowed to reach
  the render loop.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"
    MISSING_REQUIRED = "missing_required"

    # Resource failures
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Constraint violations
    MOVIE_LOCKED = "movie_locked"
    INVARIANT_VIOLATION = "invariant_violation"

    # Remote call failures
    TRANSPORT_ERROR = "transport_error"
    REMOTE_REJECTED = "remote_rejected"

    # Unknown
    UNKNOWN = "unknown"


T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Response envelope shared by every admin API route."""

    success: bool = Field(
        ...,
        description="False for any failure, regardless of HTTP status",
    )
    data: T | None = Field(
        default=None,
        description="Response payload (present on success)",
    )
    message: str | None = Field(
        default=None,
        description="Human-readable explanation, always present on failure",
    )

    @classmethod
    def ok(cls, data: T, message: str | None = None) -> "Envelope[T]":
        """Create a success envelope."""
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str) -> "Envelope[Any]":
        """Create a failure envelope."""
        return cls(success=False, data=None, message=message)


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)

    def to_envelope(self) -> Envelope[Any]:
        """Convert to a failure envelope."""
        return Envelope.fail(self.message)


class PreconditionError(KnownError):
    """Caller-side validation failure, raised before any state change."""

    def __init__(self, message: str, kind: FailureKind = FailureKind.INVALID_INPUT):
        super().__init__(kind=kind, message=message, status_code=400)


class MovieLockedError(KnownError):
    """Raised when a mutation targets a locked movie or one of its cards."""

    def __init__(self, movie_id: int, message: str | None = None):
        self.movie_id = movie_id
        super().__init__(
            kind=FailureKind.MOVIE_LOCKED,
            message=message or f"Movie {movie_id} is locked",
            status_code=409,
        )


class ConflictError(KnownError):
    """Raised when a create or rename collides with an existing entity."""

    def __init__(self, message: str):
        super().__init__(kind=FailureKind.CONFLICT, message=message, status_code=409)


class NotFoundError(KnownError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"{entity.capitalize()} {entity_id} not found",
            status_code=404,
        )


class RemoteError(Exception):
    """
    A remote call failed.

    Transport failures (network errors, non-2xx status, undecodable body)
    and application failures (`success: false`) both land here. The core
    does not distinguish 4xx from 5xx; `status_code` is kept for logging.
    """

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.TRANSPORT_ERROR,
        status_code: int | None = None,
    ):
        self.message = message
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)
