"""Administrator monitoring endpoints for the rate limiter registry."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request

from app.core.admin_auth import AdminCheckResult, require_admin
from app.core.errors import NotFoundAppError
from app.core.logging import ADMIN_ACTION, hash_identifier, log_security_event
from app.core.rate_limit import enforce_rate_limit, get_rate_limiter

router = APIRouter(prefix="/monitoring", tags=["Monitoring"])


@router.get(
    "/rate-limits",
    dependencies=[Depends(enforce_rate_limit("ADMIN"))],
)
async def rate_limit_stats(
    request: Request,
    admin: AdminCheckResult = Depends(require_admin),
) -> dict[str, Any]:
    """Return limiter statistics (tracked keys, blocked keys, counters).

    Reading the statistics never changes limiter state.
    """
    stats = get_rate_limiter(request).stats()

    log_security_event(
        ADMIN_ACTION,
        level=logging.INFO,
        action="view_rate_limit_stats",
        endpoint=request.url.path,
        user_hash=hash_identifier(admin.user.id) if admin.user else None,
    )

    return {
        "success": True,
        "data": {
            **asdict(stats),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_time": int(time.time() * 1000),
        },
    }


@router.delete(
    "/rate-limits/{key}",
    dependencies=[Depends(enforce_rate_limit("ADMIN"))],
)
async def reset_rate_limit_key(
    key: str,
    request: Request,
    admin: AdminCheckResult = Depends(require_admin),
) -> dict[str, Any]:
    """Forget one tracked key (e.g. ``SEARCH:ip:203.0.113.7``), lifting its block."""
    if not get_rate_limiter(request).reset(key):
        raise NotFoundAppError(
            code="RESOURCE_NOT_FOUND",
            message="Rate limit key is not tracked",
            details={"key": key},
        )

    log_security_event(
        ADMIN_ACTION,
        level=logging.INFO,
        action="reset_rate_limit_key",
        endpoint=request.url.path,
        key_hash=hash_identifier(key),
        user_hash=hash_identifier(admin.user.id) if admin.user else None,
    )

    return {"success": True, "data": {"key": key, "reset": True}}
