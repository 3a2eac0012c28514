"""Cart models: line items, details and the per-instance content."""
import copy
import hashlib
import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Union

from sessioncart.errors import (
    ERROR_INVALID_IDENTIFIER,
    ERROR_INVALID_NAME,
    ERROR_INVALID_PRICE,
    ERROR_INVALID_QUANTITY,
    ERROR_INVALID_TAX_RATE,
    ERROR_UNKNOWN_KIND,
    InvalidArgumentError,
    UnsupportedConstructionError,
)
from sessioncart.money import parse_decimal, tax_amount, to_decimal

from .contracts import Purchasable

Quantity = Union[int, Decimal]


class LineKind(str, Enum):
    """What a cart line represents."""
    ITEM = "item"
    SUBTOTAL = "subtotal"
    DISCOUNT = "discount"
    SHIPPING = "shipping"
    ADJUSTMENT = "adjustment"
    ADMIN_FEES = "adminfees"


class LineItemOptions(dict):
    """
    Option bag of a line (size, colour...).

    Insertion order is kept for display; identity hashing uses the
    canonical form, where keys are sorted.
    """

    def to_dict(self) -> dict:
        return dict(self)

    def canonical(self) -> str:
        """Deterministic encoding: sorted keys, compact separators, non-JSON values as str."""
        normalized = {str(key): value for key, value in self.items()}
        return json.dumps(normalized, sort_keys=True, separators=(",", ":"), default=str)


def normalize_quantity(value) -> Optional[Quantity]:
    """int for whole quantities, Decimal for fractional ones, None if not numeric."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    parsed = parse_decimal(value)
    if parsed is None:
        return None
    if parsed == parsed.to_integral_value():
        return int(parsed)
    return parsed


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _qualified_name(model) -> str:
    if isinstance(model, str):
        return model
    cls = model if isinstance(model, type) else type(model)
    return f"{cls.__module__}.{cls.__qualname__}"


@dataclass
class LineItem:
    """A priced, quantified row in the cart."""
    id: Union[int, str]
    name: str
    description: Optional[str] = None
    price: Optional[Decimal] = None
    kind: Optional[LineKind] = None
    discountable: bool = True
    options: Optional[Mapping[str, Any]] = None
    quantity: Optional[Quantity] = None
    tax_rate: Decimal = Decimal("0")  # fraction, 0.06 for 6%
    tax_included: bool = False
    tax_applies: bool = True
    associated_model: Optional[str] = None
    row_id: str = field(init=False, default="")

    default_kind: ClassVar[LineKind] = LineKind.ITEM

    def __post_init__(self):
        if _is_blank(self.id):
            raise InvalidArgumentError(ERROR_INVALID_IDENTIFIER)
        if _is_blank(self.name):
            raise InvalidArgumentError(ERROR_INVALID_NAME)
        self.price = self._validate_price(self.price)
        try:
            self.kind = LineKind(self.kind) if self.kind else self.default_kind
        except ValueError as e:
            raise InvalidArgumentError(ERROR_UNKNOWN_KIND.format(kind=self.kind)) from e
        self.options = LineItemOptions(self.options or {})
        self.tax_rate = self._validate_tax_rate(self.tax_rate)
        if self.quantity is not None:
            self.set_quantity(self.quantity)
        self.row_id = self.generate_row_id(self.id, self.options)

    @staticmethod
    def _validate_price(price) -> Decimal:
        parsed = parse_decimal(price)
        if parsed is None or parsed < 0:
            raise InvalidArgumentError(ERROR_INVALID_PRICE)
        return parsed

    @staticmethod
    def _validate_tax_rate(tax_rate) -> Decimal:
        parsed = parse_decimal(tax_rate)
        if parsed is None or parsed < 0:
            raise InvalidArgumentError(ERROR_INVALID_TAX_RATE)
        return parsed

    @staticmethod
    def generate_row_id(id, options: Mapping[str, Any]) -> str:
        """Identity of a line: depends on id and options only."""
        canonical = LineItemOptions(options).canonical()
        return hashlib.md5(f"{id}{canonical}".encode()).hexdigest()

    # ==================== AMOUNTS ====================

    def subtotal(self) -> Decimal:
        """quantity * price, before tax."""
        if self.quantity is None:
            raise InvalidArgumentError(ERROR_INVALID_QUANTITY)
        return to_decimal(self.quantity) * self.price

    def taxed_amount(self) -> Decimal:
        """Tax carried by the subtotal, zero when tax does not apply."""
        if not self.tax_applies:
            return Decimal("0")
        return tax_amount(self.subtotal(), self.tax_rate * 100, self.tax_included)

    def total(self) -> Decimal:
        """Subtotal plus tax, unless the tax is already in the price."""
        if self.tax_applies and not self.tax_included:
            return self.subtotal() + self.taxed_amount()
        return self.subtotal()

    def taxable_base(self) -> Decimal:
        if not self.tax_applies:
            return Decimal("0")
        if self.tax_included:
            return self.total() - self.taxed_amount()
        return self.subtotal()

    # ==================== MUTATORS ====================

    def set_quantity(self, quantity) -> None:
        """
        Set the quantity.

        Zero and negative values are accepted here; the cart decides
        whether such a line survives.
        """
        normalized = normalize_quantity(quantity)
        if normalized is None:
            raise InvalidArgumentError(ERROR_INVALID_QUANTITY)
        self.quantity = normalized

    def set_tax_rate(self, tax_rate, included: bool = False, applies: bool = True) -> "LineItem":
        self.tax_rate = self._validate_tax_rate(tax_rate)
        self.tax_included = included
        self.tax_applies = applies
        return self

    def associate(self, model) -> "LineItem":
        """Remember which domain type this line refers to (never dereferenced)."""
        self.associated_model = _qualified_name(model)
        return self

    def update_from_purchasable(self, item: Purchasable) -> None:
        """Refresh catalog data from a purchasable; may change the row id."""
        self.id = item.get_purchasable_identifier(self.options)
        self.name = item.get_purchasable_name(self.options)
        self.description = item.get_purchasable_description(self.options)
        self.price = self._validate_price(item.get_purchasable_price(self.options))
        self.row_id = self.generate_row_id(self.id, self.options)

    def update_from_dict(self, attributes: Mapping[str, Any]) -> None:
        """Partial overwrite; fields missing from attributes are left alone."""
        new_id = attributes.get("id", self.id)
        new_name = attributes.get("name", self.name)
        if _is_blank(new_id):
            raise InvalidArgumentError(ERROR_INVALID_IDENTIFIER)
        if _is_blank(new_name):
            raise InvalidArgumentError(ERROR_INVALID_NAME)

        self.id = new_id
        self.name = new_name
        self.description = attributes.get("description", self.description)
        if "price" in attributes:
            self.price = self._validate_price(attributes["price"])
        if "quantity" in attributes:
            self.set_quantity(attributes["quantity"])
        if "options" in attributes:
            self.options = LineItemOptions(attributes["options"] or {})

        self.row_id = self.generate_row_id(self.id, self.options)

    # ==================== CONSTRUCTORS ====================

    @classmethod
    def from_purchasable(cls, item: Purchasable, options: Optional[Mapping[str, Any]] = None) -> "LineItem":
        options = options or {}
        return cls(
            item.get_purchasable_identifier(options),
            item.get_purchasable_name(options),
            item.get_purchasable_description(options),
            item.get_purchasable_price(options),
            None,
            item.get_purchasable_discountable(options),
            options,
        )

    @classmethod
    def from_attributes(
        cls,
        id,
        name,
        description=None,
        price=None,
        kind=None,
        discountable: Optional[bool] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> "LineItem":
        if discountable is None:
            discountable = cls.__dataclass_fields__["discountable"].default
        return cls(id, name, description, price, kind, discountable, options)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        """
        Create from a raw attribute bag.

        Accepts the output of to_dict() as well, so stored lines come back
        with their quantity, tax settings and association.
        """
        line = cls(
            data.get("id"),
            data.get("name"),
            data.get("description"),
            data.get("price"),
            data.get("kind") or data.get("type"),
            data.get("discountable", cls.__dataclass_fields__["discountable"].default),
            data.get("options") or {},
        )
        if data.get("quantity") is not None:
            line.set_quantity(data["quantity"])
        if "tax_rate" in data:
            line.set_tax_rate(
                data["tax_rate"],
                bool(data.get("tax_included", False)),
                bool(data.get("tax_applies", True)),
            )
        line.associated_model = data.get("associated_model")
        return line

    # ==================== SERIALIZATION ====================

    def to_dict(self) -> dict:
        """JSON-ready view; Decimals are rendered as strings."""
        data = {
            "row_id": self.row_id,
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity if not isinstance(self.quantity, Decimal) else str(self.quantity),
            "price": str(self.price),
            "tax_rate": str(self.tax_rate),
            "tax_included": self.tax_included,
            "tax_applies": self.tax_applies,
            "discountable": self.discountable,
            "options": self.options.to_dict(),
            "associated_model": self.associated_model,
        }
        if self.quantity is not None:
            data.update({
                "taxed": str(self.taxed_amount()),
                "taxable": str(self.taxable_base()),
                "subtotal": str(self.subtotal()),
                "total": str(self.total()),
            })
        return data

    def to_json(self, **kwargs) -> str:
        return json.dumps(self.to_dict(), default=str, **kwargs)


@dataclass
class Detail(LineItem):
    """Non-catalog line: shipping, discounts, fees, adjustments."""
    discountable: bool = False

    default_kind: ClassVar[LineKind] = LineKind.ADJUSTMENT

    def __post_init__(self):
        super().__post_init__()
        if self.kind == LineKind.ITEM:
            raise InvalidArgumentError("A cart detail cannot be of kind 'item'.")

    @classmethod
    def from_purchasable(cls, item: Purchasable, options: Optional[Mapping[str, Any]] = None) -> "Detail":
        raise UnsupportedConstructionError()


@dataclass
class CartContent:
    """Everything one cart instance holds: items, details and attributes."""
    items: Dict[str, LineItem] = field(default_factory=dict)
    details: Dict[str, Detail] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def copy(self) -> "CartContent":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "items": {row_id: line.to_dict() for row_id, line in self.items.items()},
            "details": {row_id: line.to_dict() for row_id, line in self.details.items()},
            "attributes": dict(self.attributes),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartContent":
        """Rebuild content; lines are keyed by their recomputed row id."""
        items = [LineItem.from_dict(line) for line in (data.get("items") or {}).values()]
        details = [Detail.from_dict(line) for line in (data.get("details") or {}).values()]
        return cls(
            items={line.row_id: line for line in items},
            details={line.row_id: line for line in details},
            attributes=dict(data.get("attributes") or {}),
        )

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "CartContent":
        return cls.from_dict(json.loads(raw))
