"""
Cart Errors

Exception taxonomy for the cart core plus centralized error messages
(avoids string duplication, SonarQube S1192).
"""

# Construction errors
ERROR_INVALID_IDENTIFIER = "Please supply a valid identifier."
ERROR_INVALID_NAME = "Please supply a valid name."
ERROR_INVALID_PRICE = "Please supply a valid price."
ERROR_INVALID_QUANTITY = "Please supply a valid quantity."
ERROR_INVALID_TAX_RATE = "Please supply a valid tax rate."
ERROR_UNKNOWN_KIND = "Unknown line kind: {kind}"
ERROR_ITEM_KIND_REQUIRED = "Cart items must be of kind 'item', got {kind}."
ERROR_DETAIL_FROM_PURCHASABLE = "Cart detail cannot be created from a purchasable."

# Lookup errors
ERROR_INVALID_ROW_ID = "The cart does not contain rowId {row_id}."
ERROR_UNKNOWN_MODEL = "The supplied model {model} does not exist."

# Persistence errors
ERROR_ALREADY_STORED = "A cart with identifier {identifier} was already stored."
ERROR_SESSION_UNAVAILABLE = "Cart session store unavailable"
ERROR_DURABLE_UNAVAILABLE = "Cart durable store unavailable"


class CartError(Exception):
    """Base error raised by the cart core."""

    code = "CART_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidArgumentError(CartError, ValueError):
    """Missing identifier or name, bad price or bad quantity."""

    code = "INVALID_ARGUMENT"


class InvalidRowIdError(CartError):
    """Operation addressed a row missing from the target partition."""

    code = "INVALID_ROW_ID"

    def __init__(self, row_id: str) -> None:
        super().__init__(ERROR_INVALID_ROW_ID.format(row_id=row_id))
        self.row_id = row_id


class UnknownModelError(CartError):
    """associate() was given a type reference that cannot be resolved."""

    code = "UNKNOWN_MODEL"

    def __init__(self, model: str) -> None:
        super().__init__(ERROR_UNKNOWN_MODEL.format(model=model))
        self.model = model


class CartAlreadyStoredError(CartError):
    """store() was called with an identifier already present."""

    code = "ALREADY_STORED"

    def __init__(self, identifier) -> None:
        super().__init__(ERROR_ALREADY_STORED.format(identifier=identifier))
        self.identifier = identifier


class UnsupportedConstructionError(CartError):
    code = "UNSUPPORTED_CONSTRUCTION"

    def __init__(self, message: str = ERROR_DETAIL_FROM_PURCHASABLE) -> None:
        super().__init__(message)


class CartStorageError(CartError):
    """A session or durable backend failed unexpectedly."""

    code = "STORAGE_UNAVAILABLE"
