"""Factory functions for backend clients used by the admin gate."""

from __future__ import annotations

from fastapi import Request

from app.adapters.backend.base import AbstractProfileClient, AbstractSessionClient
from app.adapters.backend.supabase_client import (
    SupabaseServiceClient,
    SupabaseSessionClient,
    _SupabaseHttp,
)
from app.core.config import settings
from app.core.errors import BackendUnavailableError

# Cookie names the web frontend stores the access token under
ACCESS_TOKEN_COOKIES = ("sb-access-token", "sb:token")


def extract_access_token(request: Request) -> str | None:
    """Read the caller's access token from the bearer header or session cookie."""

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    for name in ACCESS_TOKEN_COOKIES:
        value = request.cookies.get(name)
        if value:
            return value
    return None


async def create_session_client(request: Request) -> AbstractSessionClient:
    """Build a backend client bound to the caller's session.

    Raises:
        BackendUnavailableError: If the backend URL or anon key is not configured.
    """

    backend = settings.backend
    if not backend.url or not backend.anon_key:
        raise BackendUnavailableError(
            code="BACKEND_NOT_CONFIGURED",
            message="Backend URL and anon key must be configured",
            details={"hint": "Set BACKEND_URL and BACKEND_ANON_KEY"},
        )

    http = _SupabaseHttp(
        base_url=backend.url,
        api_key=backend.anon_key,
        profiles_table=backend.profiles_table,
        timeout_seconds=backend.timeout_seconds,
    )
    return SupabaseSessionClient(http, extract_access_token(request))


def get_service_client() -> AbstractProfileClient | None:
    """Return the elevated client, or None when no service-role key is set."""

    backend = settings.backend
    if not backend.url or not backend.service_role_key:
        return None

    http = _SupabaseHttp(
        base_url=backend.url,
        api_key=backend.service_role_key,
        profiles_table=backend.profiles_table,
        timeout_seconds=backend.timeout_seconds,
    )
    return SupabaseServiceClient(http)
