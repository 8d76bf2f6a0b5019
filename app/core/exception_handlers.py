"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses -> mapped HTTP status (400, 401, 403, 404, 429, 503)
- Unexpected Exception -> generic 500 (safety net)
- All responses carry a stable ``code`` and the request_id
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    AuthorizationAppError,
    BackendError,
    NotFoundAppError,
    RateLimitAppError,
)
from app.core.logging import get_request_id
from app.core.rate_limit import build_rate_limit_response

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[AppError], int]] = [
    (AuthenticationAppError, 401),
    (AuthorizationAppError, 403),
    (NotFoundAppError, 404),
    (RateLimitAppError, 429),
    (BackendError, 503),
]


def status_code_for(exc: AppError) -> int:
    """HTTP status for a domain error (400 when no specific mapping applies)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    The body is ``{"error": <message>, "code": <CODE>, "request_id": ...}``
    plus ``details`` when present. Rate limit errors use the 429 envelope
    with ``message`` and ``retryAfter`` and the ``Retry-After`` header.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "request_path": request.url.path,
            "has_details": bool(exc.details),
        },
    )

    if isinstance(exc, RateLimitAppError) and exc.result is not None:
        return build_rate_limit_response(exc.result, exc.message)

    content: dict[str, object] = {
        "error": exc.message,
        "code": exc.code,
        "request_id": get_request_id(),
    }
    # Backend failures never leak their internals to clients
    if exc.details and not isinstance(exc, BackendError):
        content["details"] = exc.details

    return JSONResponse(status_code=status_code, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message; no stack traces reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred. Please try again later.",
            "code": "INTERNAL_ERROR",
            "request_id": get_request_id(),
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Specific handlers are registered before the general fallback.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
