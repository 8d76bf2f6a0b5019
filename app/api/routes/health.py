from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from app.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(
    request: Request,
    check: Literal["liveness", "readiness"] = Query("liveness", alias="type", description="Check to run"),
) -> JSONResponse:
    """Health check endpoint.

    ``liveness`` only confirms the process answers. ``readiness`` also
    reports whether the backend is configured (503 when it is not) and
    whether the elevated client used by the admin gate is available.
    """

    if check == "liveness":
        return JSONResponse({"status": "ok"})

    backend = settings.backend
    backend_configured = bool(backend.url and backend.anon_key)
    payload = {
        "status": "ok" if backend_configured else "unavailable",
        "checks": {
            "backend_configured": backend_configured,
            "elevated_client_available": bool(backend.url and backend.service_role_key),
            "rate_limiter": type(request.app.state.rate_limiter).__name__,
        },
    }
    return JSONResponse(payload, status_code=200 if backend_configured else 503)
