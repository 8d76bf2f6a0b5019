"""Application-level exception types.

Domain errors raised by the gate components and backend adapters. The global
exception handlers map each class to an HTTP status so routes never build
error responses by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from app.adapters.rate_limit.base import RateLimitResult


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    required_role: str
    user_role: str | None
    key: str
    limit: int
    remaining: int
    reset_at: int
    status_code: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the caller has no valid session."""


class AuthorizationAppError(AppError):
    """Raised when the caller is authenticated but lacks the required role."""


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a caller exhausted the budget of a named rate limit."""

    result: "RateLimitResult | None" = None


class BackendError(AppError):
    """Base error for failures talking to the managed backend."""


class BackendUnavailableError(BackendError):
    """Backend could not be reached or answered with a server error."""


class BackendAccessDeniedError(BackendError):
    """Backend refused the query (e.g., row-level security for the session)."""
