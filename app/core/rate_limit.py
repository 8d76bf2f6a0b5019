"""Rate limiting for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on ``enforce_rate_limit(<name>)`` only.
- Swap-friendly: the limiter registry is created by the app factory and
  read from ``app.state``, so tests and deployments can inject another one.
- Fail open: a failure inside the limiter never blocks legitimate traffic.

Budgets are named per endpoint class and keyed ``<NAME>:<identity>``, so
exhausting one class never affects another.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from app.adapters.backend.factory import extract_access_token
from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig, RateLimitResult
from app.core.config import settings
from app.core.errors import RateLimitAppError
from app.core.logging import (
    RATE_LIMIT_EXCEEDED,
    get_request_id,
    hash_identifier,
    log_security_event,
)

logger = logging.getLogger(__name__)

_MINUTE_MS = 60 * 1000

RATE_LIMIT_CONFIGS: dict[str, RateLimitConfig] = {
    # Applied by middleware to every /api request, keyed by IP only
    "GLOBAL_IP": RateLimitConfig(
        window_ms=1 * _MINUTE_MS, max_requests=100, block_duration_ms=10 * _MINUTE_MS
    ),
    "API_GENERAL": RateLimitConfig(
        window_ms=15 * _MINUTE_MS, max_requests=100, block_duration_ms=15 * _MINUTE_MS
    ),
    "AUTH": RateLimitConfig(
        window_ms=15 * _MINUTE_MS, max_requests=5, block_duration_ms=15 * _MINUTE_MS
    ),
    "POST_CREATION": RateLimitConfig(
        window_ms=5 * _MINUTE_MS, max_requests=5, block_duration_ms=5 * _MINUTE_MS
    ),
    "SEARCH": RateLimitConfig(
        window_ms=1 * _MINUTE_MS, max_requests=30, block_duration_ms=1 * _MINUTE_MS
    ),
    "ADMIN": RateLimitConfig(
        window_ms=5 * _MINUTE_MS, max_requests=20, block_duration_ms=5 * _MINUTE_MS
    ),
    "UPLOAD": RateLimitConfig(
        window_ms=10 * _MINUTE_MS, max_requests=10, block_duration_ms=10 * _MINUTE_MS
    ),
}

RATE_LIMIT_ERROR_CODE = "RATE_LIMIT_EXCEEDED"


def get_rate_limit_config(config_name: str) -> RateLimitConfig:
    """Resolve a named budget, applying ``APP_RATE_LIMIT_OVERRIDES``.

    Raises:
        ValueError: If the name is unknown or an override is invalid.
    """

    name = config_name.upper()
    base = RATE_LIMIT_CONFIGS.get(name)
    if base is None:
        raise ValueError(f"Rate limit configuration '{config_name}' not found")

    overrides = {key.upper(): value for key, value in settings.app.rate_limit_overrides.items()}
    override = overrides.get(name)
    if not override:
        return base

    return RateLimitConfig(
        window_ms=override.get("window_ms", base.window_ms),
        max_requests=override.get("max_requests", base.max_requests),
        block_duration_ms=override.get("block_duration_ms", base.block_duration_ms),
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the process-wide limiter registry created by the app factory."""
    return request.app.state.rate_limiter


def _find_rate_limiter(request: Request) -> AbstractRateLimiter | None:
    return getattr(request.app.state, "rate_limiter", None)


def resolve_client_ip(request: Request) -> str:
    """Best-effort client address, honoring proxy headers when trusted."""

    if settings.app.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    return request.client.host if request.client else "unknown"


def resolve_client_identity(request: Request) -> str:
    """Build the identity part of the limiter key.

    Callers whose user id is already known (``request.state.user_id``) are
    keyed by user id. Callers presenting a session token are keyed by a hash
    of the token, so users behind one proxy or NAT get separate budgets.
    Everyone else is keyed by IP address.
    """

    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    access_token = extract_access_token(request)
    if access_token:
        return f"session:{hash_identifier(access_token)}"
    return f"ip:{resolve_client_ip(request)}"


def evaluate_rate_limit(
    limiter: AbstractRateLimiter | None,
    config_name: str,
    identity: str,
) -> RateLimitResult | None:
    """Run the limiter for one request.

    A missing limiter registry counts as a limiter failure.

    Returns:
        The limiter result, or None when the limiter itself failed. Callers
        treat None as allowed (fail open).
    """

    key = f"{config_name}:{identity}"
    key_hash = hash_identifier(key)

    try:
        if limiter is None:
            raise RuntimeError("Rate limiter registry is not configured")
        config = get_rate_limit_config(config_name)
        result = limiter.check(key, config)
    except Exception:
        logger.exception(
            "rate_limit.check_failed",
            extra={"config_name": config_name, "key_hash": key_hash},
        )
        return None

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "config_name": config_name,
                "key_hash": key_hash,
                "count": result.current_count,
                "remaining": result.remaining,
            },
        )
        return result

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "config_name": config_name,
            "key_hash": key_hash,
            "count": result.current_count,
            "limit": result.limit,
            "retry_after_s": result.retry_after_seconds,
        },
    )
    log_security_event(
        RATE_LIMIT_EXCEEDED,
        endpoint_class=config_name,
        key_hash=key_hash,
        key_type=identity.split(":", 1)[0],
        count=result.current_count,
        limit=result.limit,
    )
    return result


def rate_limit_message(result: RateLimitResult) -> str:
    return f"Rate limit exceeded. Try again in {result.retry_after_seconds} seconds."


def build_rate_limit_response(result: RateLimitResult, message: str | None = None) -> JSONResponse:
    """Render the 429 envelope shared by the middleware and the exception handler."""

    headers = {"Retry-After": str(result.retry_after_seconds)}
    if settings.app.rate_limit_include_headers:
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "code": RATE_LIMIT_ERROR_CODE,
            "message": message or rate_limit_message(result),
            "retryAfter": result.retry_after_seconds,
            "request_id": get_request_id(),
        },
        headers=headers,
    )


def enforce_rate_limit(config_name: str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the named budget.

    Usage:
        @router.get("/search", dependencies=[Depends(enforce_rate_limit("SEARCH"))])

    On rejection the dependency raises ``RateLimitAppError`` (rendered as
    HTTP 429) and the route handler never runs. On acceptance the handler's
    response passes through untouched.

    Raises:
        ValueError: At build time, if the configuration name is unknown.
    """

    name = config_name.upper()
    get_rate_limit_config(name)

    async def _enforce(request: Request) -> None:
        if not settings.app.rate_limit_enabled:
            return

        result = evaluate_rate_limit(
            _find_rate_limiter(request),
            name,
            resolve_client_identity(request),
        )
        if result is None or result.allowed:
            return

        raise RateLimitAppError(
            code=RATE_LIMIT_ERROR_CODE,
            message=rate_limit_message(result),
            details={
                "limit": result.limit,
                "remaining": result.remaining,
                "reset_at": result.reset_at,
            },
            result=result,
        )

    return _enforce


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Global per-IP budget (GLOBAL_IP) for every request under ``/api``.

    Exceptions raised from HTTP middleware bypass FastAPI's exception
    handlers, so the 429 envelope is returned directly.
    """

    if (
        not settings.app.rate_limit_enabled
        or not settings.app.global_rate_limit_enabled
        or not request.url.path.startswith("/api")
    ):
        return await call_next(request)

    result = evaluate_rate_limit(
        _find_rate_limiter(request),
        "GLOBAL_IP",
        f"ip:{resolve_client_ip(request)}",
    )
    if result is not None and not result.allowed:
        return build_rate_limit_response(result)

    return await call_next(request)
