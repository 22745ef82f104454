"""
Supabase client for the event store.

The service-role key is used because Mintchat identifies callers by wallet
address, not by Supabase auth; row access is enforced in the services.
"""

import logging
from typing import Optional

from supabase import Client, create_client

from mintchat.core.config import get_settings

logger = logging.getLogger(__name__)

# The only tables the event store reads or writes (see migrations/)
TABLES = frozenset({"conversations", "messages", "notifications", "reactions"})

_supabase_client: Optional[Client] = None


def get_supabase() -> Client:
    """Lazily create the process-wide Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        settings = get_settings()
        _supabase_client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        logger.info("Supabase client created for %s", settings.supabase_url)
    return _supabase_client


def _reset_supabase() -> None:
    """Reset the cached client (for testing)."""
    global _supabase_client
    _supabase_client = None
