"""Cart orchestrator over a session store, an event sink and a durable store."""
import pkgutil
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from sessioncart.config import DEFAULT_INSTANCE, DETAIL_TAX_RATE, CartSettings, get_settings
from sessioncart.db import RedisKeys, get_connection
from sessioncart.errors import (
    ERROR_INVALID_QUANTITY,
    ERROR_ITEM_KIND_REQUIRED,
    ERROR_UNKNOWN_KIND,
    CartAlreadyStoredError,
    InvalidArgumentError,
    InvalidRowIdError,
    UnknownModelError,
)
from sessioncart.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from sessioncart.money import to_float

from .contracts import Purchasable
from .events import CartEvent, EventSink, NullSink, get_event_dispatcher
from .models import CartContent, Detail, LineItem, LineKind
from .snapshots import CartRepository, SupabaseCartRepository
from .storage import RedisSessionStore, SessionStore

logger = get_logger(__name__)

Predicate = Callable[[LineItem, str], bool]


class Cart:
    """
    Session-backed shopping cart.

    Features:
    - Named instances ("default", "wishlist"...) side by side in one session
    - Items merge quantities when the same product/options are added again
    - Detail lines (shipping, fees, discounts) taxed at a fixed policy rate
    - Store/restore snapshots through a durable repository

    Every mutation is a read-modify-write of the whole instance content;
    there is no locking, the last writer wins.
    """

    DEFAULT_INSTANCE = DEFAULT_INSTANCE

    def __init__(
        self,
        session: SessionStore,
        events: Optional[EventSink] = None,
        repository: Optional[CartRepository] = None,
        settings: Optional[CartSettings] = None,
    ):
        self.session = session
        self.events = events or NullSink()
        self.settings = settings or get_settings()
        self._repository = repository  # Lazy initialization
        self.instance(self.DEFAULT_INSTANCE)

    @property
    def repository(self) -> CartRepository:
        """Durable store (lazy: only store/restore need a database)."""
        if self._repository is None:
            self._repository = SupabaseCartRepository(
                get_connection(self.settings.db_connection),
                self.settings.db_table,
            )
        return self._repository

    # ==================== INSTANCES ====================

    def instance(self, instance: Optional[str] = None) -> "Cart":
        """Switch the active cart instance."""
        self._instance = RedisKeys.instance_key(instance or self.DEFAULT_INSTANCE)
        return self

    def current_instance(self) -> str:
        return self._instance[len(RedisKeys.CART_PREFIX) + 1:]

    # ==================== CONTENT ====================

    def get_content(self) -> CartContent:
        """Content of the active instance, empty if none was written yet."""
        if not self.session.has(self._instance):
            return CartContent()
        return self.session.get(self._instance) or CartContent()

    def content(self) -> CartContent:
        return self.get_content()

    def _put(self, content: CartContent) -> None:
        self.session.put(self._instance, content)

    def items(self) -> dict[str, LineItem]:
        return self.get_content().items

    def details(self) -> dict[str, Detail]:
        return self.get_content().details

    def attributes(self) -> dict[str, Any]:
        return self.get_content().attributes

    # ==================== ITEMS ====================

    def add_item(
        self,
        id,
        name=None,
        description=None,
        quantity=None,
        price=None,
        discountable: bool = True,
        options: Optional[Mapping[str, Any]] = None,
    ) -> LineItem:
        """
        Add an item, or add to its quantity if the same row is already there.

        `id` may be a Purchasable (optionally followed by the quantity), a
        mapping of line attributes of kind "item", or the plain identifier
        followed by the other attributes.
        """
        content = self.get_content()
        line = self._create_line_item(id, name, description, quantity, price, discountable, options)

        existing = content.items.get(line.row_id)
        if existing is not None:
            line.set_quantity(line.quantity + existing.quantity)

        content.items[line.row_id] = line
        self._put(content)
        logger.debug(
            f"Item {sanitize_string_for_logging(line.name)} x{line.quantity} "
            f"in {self.current_instance()} ({sanitize_id_for_logging(line.row_id)})"
        )

        self.events.emit(CartEvent.ITEM_ADDED, line)
        return line

    def update_item(self, row_id: str, quantity) -> Optional[LineItem]:
        """
        Update a line by quantity, attribute patch or purchasable.

        Returns None when the resulting quantity is zero or less and the
        line was removed.
        """
        content = self.get_content()
        line = content.items.get(row_id)
        if line is None:
            raise InvalidRowIdError(row_id)

        if isinstance(quantity, Purchasable):
            line.update_from_purchasable(quantity)
        elif isinstance(quantity, Mapping):
            line.update_from_dict(quantity)
        else:
            line.set_quantity(quantity)

        if line.row_id != row_id:
            content.items.pop(row_id, None)
            existing = content.items.get(line.row_id)
            if existing is not None:
                line.set_quantity(existing.quantity + line.quantity)

        if line.quantity <= 0:
            content.items.pop(row_id, None)
            content.items.pop(line.row_id, None)
            self._put(content)
            self.events.emit(CartEvent.ITEM_REMOVED, line)
            return None

        content.items[line.row_id] = line
        self._put(content)

        self.events.emit(CartEvent.UPDATED, line)
        return line

    def remove_item(self, row_id: str) -> None:
        content = self.get_content()
        line = content.items.pop(row_id, None)
        if line is None:
            raise InvalidRowIdError(row_id)

        self._put(content)
        self.events.emit(CartEvent.ITEM_REMOVED, line)

    def get_item(self, key, field: Optional[str] = None, default=None) -> Optional[LineItem]:
        """Line by row id, or the first line whose `field` equals `key`."""
        return self._find(self.items(), key, field, default)

    def search_items(self, search: Predicate) -> dict[str, LineItem]:
        return {row_id: line for row_id, line in self.items().items() if search(line, row_id)}

    # ==================== DETAILS ====================

    def add_detail(
        self,
        kind,
        name=None,
        description=None,
        quantity=None,
        price=None,
        discountable: bool = False,
        options: Optional[Mapping[str, Any]] = None,
        id=None,
    ) -> Detail:
        """
        Add a detail line (shipping, discount, fee...).

        Details are identified by `id`, which defaults to the kind, so a
        second shipping line with the same options adds to the first.
        """
        try:
            kind = LineKind(kind)
        except ValueError as e:
            raise InvalidArgumentError(ERROR_UNKNOWN_KIND.format(kind=kind)) from e
        content = self.get_content()

        detail = Detail.from_dict({
            "id": id if id is not None else kind.value,
            "name": name or kind.value,
            "description": description,
            "price": price,
            "kind": kind,
            "discountable": discountable,
            "options": options or {},
        })
        detail.set_quantity(quantity)
        self._require_positive(detail)
        detail.set_tax_rate(DETAIL_TAX_RATE)

        existing = content.details.get(detail.row_id)
        if existing is not None:
            detail.set_quantity(detail.quantity + existing.quantity)

        content.details[detail.row_id] = detail
        self._put(content)

        self.events.emit(CartEvent.DETAIL_ADDED, detail)
        return detail

    def remove_detail(self, row_id: str) -> None:
        content = self.get_content()
        detail = content.details.pop(row_id, None)
        if detail is None:
            raise InvalidRowIdError(row_id)

        self._put(content)
        self.events.emit(CartEvent.DETAIL_REMOVED, detail)

    def get_detail(self, key, field: Optional[str] = None, default=None) -> Optional[Detail]:
        return self._find(self.details(), key, field, default)

    def search_details(self, search: Predicate) -> dict[str, Detail]:
        return {row_id: line for row_id, line in self.details().items() if search(line, row_id)}

    # ==================== ATTRIBUTES ====================

    def add_attribute(self, key: str, value=None, options: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """Set a free-form cart attribute (coupon code, delivery note...)."""
        content = self.get_content()
        content.attributes[key] = value
        self._put(content)

        self.events.emit(CartEvent.ATTRIBUTE_ADDED, key, value)
        return dict(content.attributes)

    def remove_attribute(self, key: str) -> None:
        content = self.get_content()
        value = content.attributes.pop(key, None)
        self._put(content)

        self.events.emit(CartEvent.ATTRIBUTE_REMOVED, value)

    def get_attribute(self, key: str, default=None):
        return self.attributes().get(key, default)

    # ==================== CLEARING ====================

    def clear_items(self) -> None:
        content = self.get_content()
        content.items = {}
        self._put(content)

    def clear_details(self) -> None:
        content = self.get_content()
        content.details = {}
        self._put(content)

    def clear_attributes(self) -> None:
        content = self.get_content()
        content.attributes = {}
        self._put(content)

    def clear(self) -> None:
        """Empty all three partitions; each one is its own session write."""
        self.clear_items()
        self.clear_details()
        self.clear_attributes()

    def destroy(self) -> None:
        """Drop the active instance from the session."""
        self.session.remove(self._instance)

    # ==================== TOTALS ====================

    def count(self):
        """Sum of item quantities; details are not counted."""
        return sum((line.quantity for line in self.items().values()), 0)

    def is_empty(self) -> bool:
        return self.count() == 0

    def items_total(self, with_tax: bool = False) -> Decimal:
        return sum(
            (line.total() if with_tax else line.subtotal() for line in self.items().values()),
            Decimal("0"),
        )

    def items_taxed_total(self) -> Decimal:
        return sum((line.taxed_amount() for line in self.items().values()), Decimal("0"))

    def details_total(self, with_tax: bool = False) -> Decimal:
        return sum(
            (line.total() if with_tax else line.subtotal() for line in self.details().values()),
            Decimal("0"),
        )

    def details_taxed_total(self) -> Decimal:
        return sum((line.taxed_amount() for line in self.details().values()), Decimal("0"))

    def subtotal(self) -> Decimal:
        """Items before tax."""
        return self.items_total()

    def tax(self) -> Decimal:
        return self.items_taxed_total() + self.details_taxed_total()

    def total(self) -> Decimal:
        """Taxed items plus taxed details."""
        return self.items_total(True) + self.details_total(True)

    def summary(self) -> dict:
        """Cart summary for API responses."""
        content = self.get_content()
        if not content.items and not content.details:
            return {
                "instance": self.current_instance(),
                "is_empty": True,
                "count": 0.0,
                "items": [],
                "details": [],
                "attributes": dict(content.attributes),
                "subtotal": 0.0,
                "tax": 0.0,
                "total": 0.0,
            }

        return {
            "instance": self.current_instance(),
            "is_empty": self.is_empty(),
            "count": to_float(self.count()),
            "items": [line.to_dict() for line in content.items.values()],
            "details": [line.to_dict() for line in content.details.values()],
            "attributes": dict(content.attributes),
            "subtotal": to_float(self.subtotal()),
            "tax": to_float(self.tax()),
            "total": to_float(self.total()),
        }

    # ==================== ASSOCIATION ====================

    def associate(self, row_id: str, model) -> None:
        """
        Tag an item with the domain type it came from.

        `model` is an instance, a class, or a dotted path that must resolve
        to a class ("shop.models.Product").
        """
        if isinstance(model, str):
            try:
                resolved = pkgutil.resolve_name(model)
            except (ImportError, AttributeError, ValueError) as e:
                raise UnknownModelError(model) from e
            if not isinstance(resolved, type):
                raise UnknownModelError(model)

        content = self.get_content()
        line = content.items.get(row_id)
        if line is None:
            raise InvalidRowIdError(row_id)

        line.associate(model)
        content.items[line.row_id] = line
        self._put(content)

    # ==================== STORED CARTS ====================

    def stored_cart_exists(self, identifier) -> bool:
        return self.repository.exists(identifier)

    def store(self, identifier) -> None:
        """Snapshot the active instance under identifier."""
        content = self.get_content()

        if self.stored_cart_exists(identifier):
            raise CartAlreadyStoredError(identifier)

        self.repository.insert(identifier, self.current_instance(), content)
        logger.info(
            f"Stored cart instance {self.current_instance()} as {sanitize_id_for_logging(identifier)}"
        )

        self.events.emit(CartEvent.STORED, identifier)

    def restore(self, identifier) -> None:
        """
        Load a stored snapshot back into its instance, then delete it.

        Stored lines overwrite lines with the same row id; quantities are
        not summed, the snapshot is a complete previous state.
        """
        stored = self.repository.fetch(identifier)
        if stored is None:
            logger.debug(f"No stored cart for {sanitize_id_for_logging(identifier)}")
            return

        stored_content = stored.cart_content()
        current_instance = self.current_instance()

        self.instance(stored.instance)
        try:
            content = self.get_content()
            content.items.update(stored_content.items)
            content.details.update(stored_content.details)
            content.attributes.update(stored_content.attributes)
            self._put(content)

            self.events.emit(CartEvent.RESTORED, identifier)
        finally:
            self.instance(current_instance)

        self.repository.delete(identifier)
        logger.info(f"Restored cart {sanitize_id_for_logging(identifier)} into {stored.instance}")

    # ==================== HELPERS ====================

    def _create_line_item(self, id, name, description, quantity, price, discountable, options) -> LineItem:
        if isinstance(id, Purchasable):
            # add_item(product, 3): the second positional argument is the quantity
            if quantity is None:
                quantity = name if name is not None else 1
            line = LineItem.from_purchasable(id, options)
            line.set_quantity(quantity)
            line.associate(id)
        elif isinstance(id, Mapping):
            line = LineItem.from_dict(id)
            if line.kind != LineKind.ITEM:
                raise InvalidArgumentError(ERROR_ITEM_KIND_REQUIRED.format(kind=line.kind.value))
            line.set_quantity(id.get("quantity"))
        else:
            line = LineItem.from_attributes(id, name, description, price, None, discountable, options)
            line.set_quantity(quantity)

        self._require_positive(line)
        line.set_tax_rate(self.settings.tax_rate)
        return line

    @staticmethod
    def _require_positive(line: LineItem) -> None:
        if line.quantity <= 0:
            raise InvalidArgumentError(ERROR_INVALID_QUANTITY)

    @staticmethod
    def _find(lines: Mapping[str, LineItem], key, field: Optional[str], default):
        if not field:
            return lines.get(key, default)
        return next((line for line in lines.values() if getattr(line, field, None) == key), default)


def create_cart(
    session_id: str,
    events: Optional[EventSink] = None,
    repository: Optional[CartRepository] = None,
    settings: Optional[CartSettings] = None,
) -> Cart:
    """Cart for one web session, backed by Redis and the shared dispatcher."""
    settings = settings or get_settings()
    return Cart(
        RedisSessionStore(session_id, ttl=settings.session_ttl),
        events=events or get_event_dispatcher(),
        repository=repository,
        settings=settings,
    )
