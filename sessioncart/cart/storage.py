"""Session storage for cart content."""
import json
from typing import Optional, Protocol

from sessioncart.db import TTL, RedisKeys, get_redis
from sessioncart.errors import ERROR_SESSION_UNAVAILABLE, CartStorageError
from sessioncart.logging import get_logger, sanitize_id_for_logging

from .models import CartContent

logger = get_logger(__name__)


class SessionStore(Protocol):
    """Key-value view of one user session."""

    def get(self, key: str) -> Optional[CartContent]:
        ...

    def put(self, key: str, content: CartContent) -> None:
        ...

    def has(self, key: str) -> bool:
        ...

    def remove(self, key: str) -> None:
        ...

    def forget(self, prefix: str) -> None:
        ...


class MemorySessionStore:
    """Process-local session; every read and write copies the content."""

    def __init__(self):
        self._data: dict[str, CartContent] = {}

    def get(self, key: str) -> Optional[CartContent]:
        content = self._data.get(key)
        return content.copy() if content is not None else None

    def put(self, key: str, content: CartContent) -> None:
        self._data[key] = content.copy()

    def has(self, key: str) -> bool:
        return key in self._data

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def forget(self, prefix: str) -> None:
        """Remove the prefix key itself and everything under "prefix."."""
        for key in [k for k in self._data if k == prefix or k.startswith(f"{prefix}.")]:
            del self._data[key]

    def keys(self) -> list[str]:
        return list(self._data)


class RedisSessionStore:
    """
    Session content kept in Upstash Redis.

    Keys are namespaced per session (session:{session_id}:cart.{instance})
    and every write refreshes the TTL, so abandoned carts expire.
    """

    def __init__(self, session_id: str, client=None, ttl: int = TTL.CART):
        self.session_id = session_id
        self.ttl = ttl
        self._redis = client  # Lazy initialization

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                raise CartStorageError(f"{ERROR_SESSION_UNAVAILABLE}: {e}") from e
        return self._redis

    def _key(self, key: str) -> str:
        return RedisKeys.session_key(self.session_id, key)

    def get(self, key: str) -> Optional[CartContent]:
        redis_key = self._key(key)
        try:
            raw = self.redis.get(redis_key)
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to read cart from Redis: {e}")
            raise CartStorageError(f"{ERROR_SESSION_UNAVAILABLE}: {e}") from e

        if not raw:
            return None

        try:
            return CartContent.from_json(raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            # Corrupted data - clear it and start over
            logger.warning(
                f"Corrupted cart data for session {sanitize_id_for_logging(self.session_id)}: {e}"
            )
            self.remove(key)
            return None

    def put(self, key: str, content: CartContent) -> None:
        try:
            self.redis.set(self._key(key), content.to_json(), ex=self.ttl)
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to save cart to Redis: {e}")
            raise CartStorageError(f"{ERROR_SESSION_UNAVAILABLE}: {e}") from e

    def has(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(self._key(key)))
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to check cart in Redis: {e}")
            raise CartStorageError(f"{ERROR_SESSION_UNAVAILABLE}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self.redis.delete(self._key(key))
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to delete cart from Redis: {e}")
            raise CartStorageError(f"{ERROR_SESSION_UNAVAILABLE}: {e}") from e

    def forget(self, prefix: str) -> None:
        """Delete every key of this session under prefix (all cart instances on logout)."""
        try:
            keys = list(self.redis.keys(f"{self._key(prefix)}.*"))
            if keys:
                self.redis.delete(*keys)
        except CartStorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to forget session carts in Redis: {e}")
            raise CartStorageError(f"{ERROR_SESSION_UNAVAILABLE}: {e}") from e
