"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the process-wide collaborators: the rate limiter registry and the
admin gate's backend client factories. Both are stored on ``app.state`` so
tests can inject fakes.
"""

from __future__ import annotations

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryRateLimiter
from app.api.routes import health_router, monitoring_router, whoami_router
from app.core.admin_auth import AdminDeps
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware, security_headers_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import rate_limit_middleware


def create_app(
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    admin_deps: AdminDeps | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter registry; a fresh in-memory one when omitted.
        admin_deps: Backend client factories for the admin gate; production
            factories when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Writers Hub API",
        description=(
            "API gate for the Writers Hub community platform: per-client rate "
            "limiting for every route and administrator authorization for "
            "privileged monitoring endpoints."
        ),
        version="0.1.0",
    )

    app.state.rate_limiter = rate_limiter or InMemoryRateLimiter(
        sweep_interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
    )
    app.state.admin_deps = admin_deps or AdminDeps()

    # Middleware: the last registered runs first, so request ids wrap everything
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(whoami_router, prefix="/api")
    app.include_router(monitoring_router, prefix="/api")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
