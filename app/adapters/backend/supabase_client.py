"""Supabase-style backend adapter (auth service + REST gateway) over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.adapters.backend.base import AbstractProfileClient, AbstractSessionClient
from app.core.errors import BackendAccessDeniedError, BackendUnavailableError
from app.schemas.auth import AuthUser, Profile

logger = logging.getLogger(__name__)


class _SupabaseHttp:
    """Shared HTTP plumbing for the session and service clients.

    A short-lived ``httpx.AsyncClient`` is opened per call; ``transport`` lets
    tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        profiles_table: str = "profiles",
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.profiles_table = profiles_table
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def get(
        self,
        path: str,
        *,
        bearer: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {bearer}",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                return await client.get(path, headers=headers, params=params)
        except httpx.HTTPError as exc:
            raise BackendUnavailableError(
                code="BACKEND_UNAVAILABLE",
                message=f"Backend request failed: {type(exc).__name__}",
            ) from exc

    async def fetch_profile(self, user_id: str, *, bearer: str) -> Profile | None:
        response = await self.get(
            f"/rest/v1/{self.profiles_table}",
            bearer=bearer,
            params={"id": f"eq.{user_id}", "select": "role"},
        )

        if response.status_code in (401, 403):
            raise BackendAccessDeniedError(
                code="BACKEND_ACCESS_DENIED",
                message="Backend refused the profile lookup",
                details={"status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise BackendUnavailableError(
                code="BACKEND_UNAVAILABLE",
                message="Backend profile lookup failed",
                details={"status_code": response.status_code},
            )

        rows: list[dict[str, Any]] = response.json() or []
        if not rows:
            return None
        return Profile(id=user_id, role=rows[0].get("role"))


class SupabaseSessionClient(AbstractSessionClient):
    """Backend client acting with the caller's access token.

    Profile reads go through row-level security exactly as the caller's own
    browser session would.
    """

    def __init__(self, http: _SupabaseHttp, access_token: str | None) -> None:
        self._http = http
        self._access_token = access_token

    async def get_user(self) -> AuthUser | None:
        if not self._access_token:
            return None

        response = await self._http.get("/auth/v1/user", bearer=self._access_token)

        if response.status_code in (401, 403):
            logger.info(
                "backend.session_rejected",
                extra={"status_code": response.status_code},
            )
            return None
        if response.status_code >= 400:
            raise BackendUnavailableError(
                code="BACKEND_UNAVAILABLE",
                message="Auth service user lookup failed",
                details={"status_code": response.status_code},
            )

        payload = response.json()
        if not payload or not payload.get("id"):
            return None
        return AuthUser.model_validate(payload)

    async def fetch_profile(self, user_id: str) -> Profile | None:
        if not self._access_token:
            return None
        return await self._http.fetch_profile(user_id, bearer=self._access_token)


class SupabaseServiceClient(AbstractProfileClient):
    """Elevated client authenticated with the service-role key.

    Bypasses row-level security; only used for trusted server-side lookups.
    """

    def __init__(self, http: _SupabaseHttp) -> None:
        self._http = http

    async def fetch_profile(self, user_id: str) -> Profile | None:
        return await self._http.fetch_profile(user_id, bearer=self._http.api_key)
