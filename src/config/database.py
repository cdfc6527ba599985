"""
Supabase access for the swipe session store.

Only the "supabase" session backend and the detailed health check talk to
the database; the in-memory deployment never creates a client.
"""

from functools import lru_cache
from typing import List, Optional

from supabase import Client, create_client

from config.settings import Settings, get_settings


class SupabaseClientError(Exception):
    """The swipe session database is not configured or unreachable."""


def missing_supabase_settings(settings: Settings) -> List[str]:
    """Environment variables the Supabase backend needs but does not have."""
    required = {
        "SUPABASE_URL": settings.supabase_url,
        "SUPABASE_SERVICE_KEY": settings.supabase_service_key,
    }
    return [name for name, value in required.items() if not value]


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Process-wide client built with the service role key.

    Raises:
        SupabaseClientError: credentials missing or client construction failed
    """
    settings = get_settings()
    missing = missing_supabase_settings(settings)
    if missing:
        raise SupabaseClientError(f"Missing Supabase settings: {', '.join(missing)}")
    try:
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


def ping_swipe_sessions(client: Client, table: str) -> None:
    """Read one row id from the session table; raises on any failure."""
    client.table(table).select("id").limit(1).execute()
