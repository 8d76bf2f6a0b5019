"""Backend adapter layer - abstracts over the managed auth/database service."""

from app.adapters.backend.base import AbstractProfileClient, AbstractSessionClient
from app.adapters.backend.factory import create_session_client, get_service_client
from app.adapters.backend.supabase_client import SupabaseServiceClient, SupabaseSessionClient

__all__ = [
    "AbstractProfileClient",
    "AbstractSessionClient",
    "SupabaseServiceClient",
    "SupabaseSessionClient",
    "create_session_client",
    "get_service_client",
]
