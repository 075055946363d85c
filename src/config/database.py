"""
Supabase client for the remote stores.

Identities, events and pending holds live in the ``identities``,
``events`` and ``pending_reinforcements`` tables. One client is built
lazily from settings and shared by all three stores.
"""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Credentials missing or the client could not be built."""


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Build (once) and return the shared client.

    Raises:
        SupabaseClientError: SUPABASE_URL / SUPABASE_SERVICE_KEY unset, or
            ``create_client`` rejected them.
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise SupabaseClientError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required")
    try:
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


def reset_supabase_client() -> None:
    """Forget the cached client so the next call rebuilds it from settings."""
    get_supabase_client.cache_clear()
