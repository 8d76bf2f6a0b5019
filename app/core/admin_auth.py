"""Administrator authorization gate.

Every privileged route answers "is the caller an authenticated
administrator?" through ``ensure_admin`` instead of repeating session and
role lookups inline.

Design principles:
- Dependency Injection: backend client factories arrive through ``AdminDeps``
  so tests substitute fakes without a running backend.
- Explicit results: expected negative outcomes are returned as an
  ``AdminCheckResult``, not raised.
- Fail closed: no error path ever produces an OK result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from fastapi import Request

from app.adapters.backend.base import AbstractProfileClient, AbstractSessionClient
from app.adapters.backend.factory import create_session_client, get_service_client
from app.core.config import settings
from app.core.errors import (
    AuthenticationAppError,
    AuthorizationAppError,
    BackendError,
)
from app.core.logging import UNAUTHORIZED_ACCESS, hash_identifier, log_security_event
from app.schemas.auth import AuthUser, Profile

logger = logging.getLogger(__name__)

SessionClientFactory = Callable[[Request], Awaitable[AbstractSessionClient]]
ServiceClientFactory = Callable[[], AbstractProfileClient | None]


class AdminCheckStatus(str, Enum):
    OK = "OK"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"


@dataclass(frozen=True)
class AdminCheckResult:
    """Outcome of one authorization attempt.

    Attributes:
        status: OK, UNAUTHORIZED (no valid session) or FORBIDDEN (session
            without the administrator role, or role could not be confirmed).
        user: Resolved user (absent for UNAUTHORIZED).
        profile: Profile row found by the role lookup, if any.
        error: Exception that led to the outcome, for logging only.
    """

    status: AdminCheckStatus
    user: AuthUser | None = None
    profile: Profile | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status is AdminCheckStatus.OK

    @property
    def code(self) -> str | None:
        return None if self.ok else self.status.value

    @property
    def http_status(self) -> int:
        if self.status is AdminCheckStatus.UNAUTHORIZED:
            return 401
        if self.status is AdminCheckStatus.FORBIDDEN:
            return 403
        return 200

    @classmethod
    def allow(cls, user: AuthUser, profile: Profile) -> "AdminCheckResult":
        return cls(AdminCheckStatus.OK, user=user, profile=profile)

    @classmethod
    def unauthorized(cls, error: Exception | None = None) -> "AdminCheckResult":
        return cls(AdminCheckStatus.UNAUTHORIZED, error=error)

    @classmethod
    def forbidden(
        cls,
        user: AuthUser,
        profile: Profile | None = None,
        error: Exception | None = None,
    ) -> "AdminCheckResult":
        return cls(AdminCheckStatus.FORBIDDEN, user=user, profile=profile, error=error)


@dataclass(frozen=True)
class AdminDeps:
    """Backend client factories used by ``ensure_admin``.

    Defaults are the production factories. ``get_service_client`` returns
    None when no service-role key is configured, which disables the
    elevated fallback.
    """

    create_session_client: SessionClientFactory = create_session_client
    get_service_client: ServiceClientFactory = get_service_client


async def _lookup_profile(
    session_client: AbstractSessionClient,
    deps: AdminDeps,
    user: AuthUser,
) -> Profile | None:
    """Read the user's role, falling back to the elevated client.

    The session-scoped query may be refused or filtered by row-level
    security, in which case the elevated client repeats the lookup.
    """

    profile: Profile | None = None
    try:
        profile = await session_client.fetch_profile(user.id)
    except BackendError as exc:
        logger.info(
            "admin_gate.session_lookup_blocked",
            extra={"error_code": exc.code, "user_hash": hash_identifier(user.id)},
        )

    if profile is not None and profile.role:
        return profile

    service_client = deps.get_service_client()
    if service_client is None:
        logger.info(
            "admin_gate.no_elevated_client",
            extra={"user_hash": hash_identifier(user.id)},
        )
        return profile

    try:
        elevated = await service_client.fetch_profile(user.id)
    except BackendError as exc:
        logger.warning(
            "admin_gate.elevated_lookup_failed",
            extra={"error_code": exc.code, "user_hash": hash_identifier(user.id)},
        )
        return profile

    return elevated or profile


async def ensure_admin(request: Request, deps: AdminDeps | None = None) -> AdminCheckResult:
    """Check whether the caller is an authenticated administrator.

    Steps:
        1. Resolve the user from the session. No user -> UNAUTHORIZED.
        2. Look up the role with the session client, retrying with the
           elevated client when that lookup is blocked or empty.
        3. Role not confirmed (no elevated client, nothing found) -> FORBIDDEN.
        4. Administrator role -> OK, any other role -> FORBIDDEN.

    Unexpected exceptions map to UNAUTHORIZED before a user is known and to
    FORBIDDEN afterwards.

    Args:
        request: Incoming request carrying the session credentials.
        deps: Optional client factories; production factories when omitted.

    Returns:
        AdminCheckResult for the caller.
    """

    deps = deps or AdminDeps()

    try:
        session_client = await deps.create_session_client(request)
        user = await session_client.get_user()
    except Exception as exc:
        logger.warning(
            "admin_gate.session_failed",
            extra={"error_type": type(exc).__name__},
        )
        return AdminCheckResult.unauthorized(exc)

    if user is None:
        return AdminCheckResult.unauthorized(
            AuthenticationAppError(code="UNAUTHORIZED", message="No authenticated session")
        )

    try:
        profile = await _lookup_profile(session_client, deps, user)
    except Exception as exc:
        logger.exception(
            "admin_gate.lookup_failed",
            extra={"user_hash": hash_identifier(user.id)},
        )
        return AdminCheckResult.forbidden(user, None, exc)

    if profile is None or profile.role != settings.app.admin_role:
        logger.info(
            "admin_gate.forbidden",
            extra={
                "user_hash": hash_identifier(user.id),
                "role": profile.role if profile else None,
            },
        )
        return AdminCheckResult.forbidden(user, profile)

    return AdminCheckResult.allow(user, profile)


async def require_admin(request: Request) -> AdminCheckResult:
    """FastAPI dependency admitting administrators only.

    Usage:
        @router.get("/admin-thing")
        async def handler(admin: AdminCheckResult = Depends(require_admin)): ...

    Raises:
        AuthenticationAppError: 401 when there is no valid session.
        AuthorizationAppError: 403 when the administrator role is not confirmed.
    """

    deps: AdminDeps | None = getattr(request.app.state, "admin_deps", None)
    result = await ensure_admin(request, deps)

    if result.ok and result.user is not None:
        request.state.user_id = result.user.id
        return result

    log_security_event(
        UNAUTHORIZED_ACCESS,
        endpoint=request.url.path,
        method=request.method,
        reason=result.code,
        user_hash=hash_identifier(result.user.id) if result.user else None,
    )

    if result.status is AdminCheckStatus.UNAUTHORIZED:
        raise AuthenticationAppError(
            code="UNAUTHORIZED",
            message="Authentication required",
        )

    raise AuthorizationAppError(
        code="FORBIDDEN",
        message="Access denied. Administrator permissions are required.",
        details={
            "required_role": settings.app.admin_role,
            "user_role": result.profile.role if result.profile else None,
        },
    )
