"""
Stored carts - durable snapshots of a cart instance.

Rows live in a relational table (default name "shoppingcart") with the
columns identifier, instance and content. Content is the JSON encoding of
the whole CartContent.
"""
from datetime import datetime, timezone
from typing import Optional, Protocol

from pydantic import BaseModel, field_validator
from supabase import Client

from sessioncart.config import DEFAULT_TABLE
from sessioncart.errors import ERROR_DURABLE_UNAVAILABLE, CartStorageError
from sessioncart.logging import get_logger

from .models import CartContent

logger = get_logger(__name__)


class StoredCart(BaseModel):
    """One row of the stored carts table."""
    identifier: str
    instance: str
    content: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "ignore"  # Ignore unknown fields from DB

    @field_validator("identifier", mode="before")
    @classmethod
    def convert_identifier(cls, v):
        return str(v)

    def cart_content(self) -> CartContent:
        return CartContent.from_json(self.content)


class CartRepository(Protocol):
    """Durable store used by Cart.store() / Cart.restore()."""

    def exists(self, identifier) -> bool:
        ...

    def insert(self, identifier, instance: str, content: CartContent) -> None:
        ...

    def fetch(self, identifier) -> Optional[StoredCart]:
        ...

    def delete(self, identifier) -> None:
        ...


class MemoryCartRepository:
    """In-process stored carts, for tests and local development."""

    def __init__(self):
        self.rows: dict[str, StoredCart] = {}

    def exists(self, identifier) -> bool:
        return str(identifier) in self.rows

    def insert(self, identifier, instance: str, content: CartContent) -> None:
        now = datetime.now(timezone.utc)
        self.rows[str(identifier)] = StoredCart(
            identifier=identifier,
            instance=instance,
            content=content.to_json(),
            created_at=now,
            updated_at=now,
        )

    def fetch(self, identifier) -> Optional[StoredCart]:
        return self.rows.get(str(identifier))

    def delete(self, identifier) -> None:
        self.rows.pop(str(identifier), None)


class SupabaseCartRepository:
    """Stored carts in a Supabase (PostgREST) table."""

    def __init__(self, client: Client, table: str = DEFAULT_TABLE) -> None:
        self.client = client
        self.table = table

    def _execute(self, action: str, query):
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Failed to {action} stored cart in {self.table}: {e}")
            raise CartStorageError(f"{ERROR_DURABLE_UNAVAILABLE}: {e}") from e

    def exists(self, identifier) -> bool:
        result = self._execute(
            "check",
            self.client.table(self.table)
            .select("identifier")
            .eq("identifier", str(identifier))
            .limit(1),
        )
        return bool(result.data)

    def insert(self, identifier, instance: str, content: CartContent) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self._execute(
            "insert",
            self.client.table(self.table).insert({
                "identifier": str(identifier),
                "instance": instance,
                "content": content.to_json(),
                "created_at": now,
                "updated_at": now,
            }),
        )

    def fetch(self, identifier) -> Optional[StoredCart]:
        result = self._execute(
            "fetch",
            self.client.table(self.table)
            .select("*")
            .eq("identifier", str(identifier))
            .limit(1),
        )
        return StoredCart(**result.data[0]) if result.data else None

    def delete(self, identifier) -> None:
        self._execute(
            "delete",
            self.client.table(self.table).delete().eq("identifier", str(identifier)),
        )
