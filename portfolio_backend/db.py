"""
Supabase client access.

A single lazily-created service client is shared by every service; tests
monkeypatch the module attribute.
"""
import os
import logging
from supabase import create_client, Client

from .errors import UpstreamError

logger = logging.getLogger(__name__)

supabase: Client = None


def get_supabase() -> Client:
    """Get or create Supabase client."""
    global supabase
    if supabase is None:
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_SERVICE_KEY")
        if not url or not key:
            raise RuntimeError("Supabase credentials not configured. Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env")
        supabase = create_client(url, key)
    return supabase


def run(query, action="database operation"):
    """Execute a query builder, turning any failure into UpstreamError.

    Returns the response's data list.
    """
    try:
        return query.execute().data or []
    except Exception as e:
        logger.error("%s failed: %s", action, getattr(e, 'message', None) or e)
        raise UpstreamError(f"{action} failed") from e


def first(rows):
    """Return the first row of a result list, or None."""
    return rows[0] if rows else None
