"""
Database Module - Upstash Redis and Supabase clients

Provides:
- Sync Upstash Redis client for session-scoped cart content
- Named Supabase connections for stored (durable) carts
"""

import os
from typing import Optional

from supabase import Client, create_client
from upstash_redis import Redis

from sessioncart.config import DEFAULT_CONNECTION, DEFAULT_SESSION_TTL

# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")


_redis_client: Optional[Redis] = None
_connections: dict[str, Client] = {}


def get_redis() -> Redis:
    """
    Get sync Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = Redis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


def register_connection(name: str, client: Client) -> None:
    """Make a Supabase client available under a connection name."""
    _connections[name] = client


def get_connection(name: Optional[str] = None) -> Client:
    """
    Get a Supabase client by connection name.

    The default connection is created lazily from SUPABASE_URL and
    SUPABASE_SERVICE_ROLE_KEY; other names must be registered first.
    """
    name = name or DEFAULT_CONNECTION

    if name not in _connections:
        if name != DEFAULT_CONNECTION:
            raise ValueError(f"Unknown database connection: {name}")
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _connections[name] = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _connections[name]


class RedisKeys:
    """Redis key prefixes for cart data."""

    SESSION = "session:"  # session:{session_id}:cart.{instance}
    CART_PREFIX = "cart"
    STREAM = "stream:cart:"  # stream:cart:{session_id}

    @staticmethod
    def instance_key(instance: str) -> str:
        """Session-relative key of a cart instance."""
        return f"{RedisKeys.CART_PREFIX}.{instance}"

    @staticmethod
    def session_key(session_id: str, key: str) -> str:
        return f"{RedisKeys.SESSION}{session_id}:{key}"

    @staticmethod
    def stream_key(session_id: str) -> str:
        return f"{RedisKeys.STREAM}{session_id}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = DEFAULT_SESSION_TTL
    EVENT_STREAM = 3600  # 1 hour
