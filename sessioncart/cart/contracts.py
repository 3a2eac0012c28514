"""Capabilities the cart expects from catalog objects."""
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class Purchasable(Protocol):
    """
    A catalog entity that can be put in the cart directly.

    Every accessor receives the line's option bag so that variants
    (size, colour...) can resolve to their own identifier or price.
    """

    def get_purchasable_identifier(self, options: Optional[Mapping[str, Any]] = None) -> Union[int, str]:
        ...

    def get_purchasable_name(self, options: Optional[Mapping[str, Any]] = None) -> str:
        ...

    def get_purchasable_description(self, options: Optional[Mapping[str, Any]] = None) -> Optional[str]:
        ...

    def get_purchasable_price(self, options: Optional[Mapping[str, Any]] = None) -> Union[Decimal, float, int, str]:
        ...

    def get_purchasable_discountable(self, options: Optional[Mapping[str, Any]] = None) -> bool:
        ...
