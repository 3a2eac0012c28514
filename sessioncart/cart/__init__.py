"""Cart package: models, storage, events and the cart orchestrator."""
from .contracts import Purchasable
from .events import CartEvent, EventDispatcher, RedisStreamSink, get_event_dispatcher
from .models import CartContent, Detail, LineItem, LineItemOptions, LineKind
from .service import Cart, create_cart
from .snapshots import MemoryCartRepository, StoredCart, SupabaseCartRepository
from .storage import MemorySessionStore, RedisSessionStore

__all__ = [
    "Cart",
    "CartContent",
    "CartEvent",
    "Detail",
    "EventDispatcher",
    "LineItem",
    "LineItemOptions",
    "LineKind",
    "MemoryCartRepository",
    "MemorySessionStore",
    "Purchasable",
    "RedisSessionStore",
    "RedisStreamSink",
    "StoredCart",
    "SupabaseCartRepository",
    "create_cart",
    "get_event_dispatcher",
]
