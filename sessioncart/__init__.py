"""Session-backed shopping cart: line items, details, attributes and tax totals."""
from sessioncart.cart import Cart, Detail, LineItem, LineKind, create_cart
from sessioncart.errors import (
    CartAlreadyStoredError,
    CartError,
    CartStorageError,
    InvalidArgumentError,
    InvalidRowIdError,
    UnknownModelError,
    UnsupportedConstructionError,
)
from sessioncart.money import price_excluding_tax, tax_amount, tax_rate_fraction

__version__ = "1.0.0"

__all__ = [
    "Cart",
    "CartAlreadyStoredError",
    "CartError",
    "CartStorageError",
    "Detail",
    "InvalidArgumentError",
    "InvalidRowIdError",
    "LineItem",
    "LineKind",
    "UnknownModelError",
    "UnsupportedConstructionError",
    "create_cart",
    "price_excluding_tax",
    "tax_amount",
    "tax_rate_fraction",
]
