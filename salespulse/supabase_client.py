"""
Supabase Client Helper for Sales Pulse.
Provides the shared connection and a key/value accessor on dashboard_settings.

Usage:
    from salespulse.supabase_client import is_configured, read_value, write_value

    if is_configured():
        write_value("dashboard_settings", {"cwGoal": 120000})
        settings = read_value("dashboard_settings")
"""
import os
from datetime import datetime, timezone
from typing import Dict, Optional

from salespulse.logger import setup_logger

logger = setup_logger(__name__)

SETTINGS_TABLE = "dashboard_settings"

_client = None


def _credentials():
    url = os.environ.get("SUPABASE_URL", "")
    key = (
        os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
        or os.environ.get("SUPABASE_KEY", "")
    )
    return url, key


def is_configured() -> bool:
    url, key = _credentials()
    return bool(url and key)


def get_client():
    """Create and return a Supabase client (singleton)."""
    global _client
    if _client is not None:
        return _client

    url, key = _credentials()
    if not url or not key:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env"
        )

    from supabase import create_client
    _client = create_client(url, key)
    logger.info("Supabase client connected to %s", url)
    return _client


def read_value(key: str, table: str = SETTINGS_TABLE) -> Optional[Dict]:
    """
    Fetch the JSON value stored under *key*.

    Returns:
        The stored dict, or None when no row exists.

    Raises:
        Any client/network exception; callers decide how to degrade.
    """
    client = get_client()
    result = (
        client.table(table)
        .select("value")
        .eq("key", key)
        .limit(1)
        .execute()
    )
    if result.data:
        return result.data[0].get("value")
    return None


def write_value(key: str, value: Dict, table: str = SETTINGS_TABLE) -> None:
    """Upsert *value* under *key*. Raises on failure."""
    client = get_client()
    client.table(table).upsert(
        {
            "key": key,
            "value": value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
        on_conflict="key",
    ).execute()
    logger.info("Stored %s in %s", key, table)
