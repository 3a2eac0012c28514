"""
Cart lifecycle events.

Emission is fire-and-forget: a failing listener or stream write is logged
and never interrupts the cart operation that fired it.
"""
import json
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Protocol, Union

from sessioncart.db import TTL, RedisKeys, get_redis
from sessioncart.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[..., Any]


class CartEvent(str, Enum):
    ITEM_ADDED = "cart.item_added"
    UPDATED = "cart.updated"
    ITEM_REMOVED = "cart.item_removed"
    DETAIL_ADDED = "cart.detail_added"
    DETAIL_REMOVED = "cart.detail_removed"
    ATTRIBUTE_ADDED = "cart.attribute_added"
    ATTRIBUTE_REMOVED = "cart.attribute_removed"
    STORED = "cart.stored"
    RESTORED = "cart.restored"


class EventSink(Protocol):
    def emit(self, event: Union[CartEvent, str], *payload: Any) -> None:
        ...


class NullSink:
    """Discards every event."""

    def emit(self, event: Union[CartEvent, str], *payload: Any) -> None:
        return None


class EventDispatcher:
    """In-process listeners keyed by event name."""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    @staticmethod
    def _name(event: Union[CartEvent, str]) -> str:
        return event.value if isinstance(event, CartEvent) else str(event)

    def listen(self, event: Union[CartEvent, str], listener: Listener) -> None:
        self._listeners[self._name(event)].append(listener)

    def forget(self, event: Union[CartEvent, str]) -> None:
        self._listeners.pop(self._name(event), None)

    def has_listeners(self, event: Union[CartEvent, str]) -> bool:
        return bool(self._listeners.get(self._name(event)))

    def emit(self, event: Union[CartEvent, str], *payload: Any) -> None:
        name = self._name(event)
        for listener in list(self._listeners.get(name, ())):
            try:
                listener(*payload)
            except Exception as e:
                logger.warning(f"Listener for {name} failed: {e}", exc_info=True)


def _serialize(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return value


class RedisStreamSink:
    """
    Append cart events to a per-session Redis stream.

    Frontends read stream:cart:{session_id} for live cart badges.
    Uses Redis Streams (XADD) for Upstash REST API compatibility.
    """

    def __init__(self, session_id: str, client=None, ttl: int = TTL.EVENT_STREAM):
        self.session_id = session_id
        self.ttl = ttl
        self._redis = client

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def emit(self, event: Union[CartEvent, str], *payload: Any) -> None:
        name = event.value if isinstance(event, CartEvent) else str(event)
        try:
            stream_key = RedisKeys.stream_key(self.session_id)
            data = {
                "event": name,
                "payload": [_serialize(value) for value in payload],
            }
            self.redis.xadd(stream_key, "*", {"data": json.dumps(data, default=str)})
            self.redis.expire(stream_key, self.ttl)
            logger.debug(f"Emitted {name}")
        except Exception as e:
            logger.warning(f"Failed to emit {name}: {e}", exc_info=True)


class CompositeSink:
    """Fan an event out to several sinks."""

    def __init__(self, *sinks: EventSink):
        self.sinks = sinks

    def emit(self, event: Union[CartEvent, str], *payload: Any) -> None:
        for sink in self.sinks:
            sink.emit(event, *payload)


# Singleton instance
_dispatcher: EventDispatcher | None = None


def get_event_dispatcher() -> EventDispatcher:
    """Get the process-wide EventDispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = EventDispatcher()
    return _dispatcher
