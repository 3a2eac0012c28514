"""
Cart configuration read from the environment.

Variables:
- CART_TAX_RATE: global tax rate applied to items, as a fraction (0.06)
- CART_DESTROY_ON_LOGOUT: drop every cart instance of a session on logout
- CART_DB_CONNECTION: durable store connection name
- CART_DB_TABLE: durable store table name
- CART_SESSION_TTL: seconds a session cart survives without writes
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from sessioncart.logging import get_logger
from sessioncart.money import parse_decimal

logger = get_logger(__name__)

DEFAULT_INSTANCE = "default"
DEFAULT_CONNECTION = "default"
DEFAULT_TABLE = "shoppingcart"
DEFAULT_SESSION_TTL = 86400  # 24 hours
DEFAULT_TAX_RATE = Decimal("0.06")

# Tax rate applied to every detail line (shipping, fees...). Policy, not configuration.
DETAIL_TAX_RATE = Decimal("0.6")

_TRUTHY = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def _env_rate(name: str, default: Decimal) -> Decimal:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    rate = parse_decimal(raw)
    if rate is None or rate < 0:
        logger.warning(f"Invalid {name}={raw!r}, using {default}")
        return default
    return rate


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


@dataclass(frozen=True)
class CartSettings:
    """Settings consumed by the cart orchestrator and its backends."""
    tax_rate: Decimal = DEFAULT_TAX_RATE
    destroy_on_logout: bool = True
    db_connection: str = DEFAULT_CONNECTION
    db_table: str = DEFAULT_TABLE
    session_ttl: int = DEFAULT_SESSION_TTL


def load_settings() -> CartSettings:
    """Build settings from the current environment."""
    return CartSettings(
        tax_rate=_env_rate("CART_TAX_RATE", DEFAULT_TAX_RATE),
        destroy_on_logout=_env_bool("CART_DESTROY_ON_LOGOUT", True),
        db_connection=os.environ.get("CART_DB_CONNECTION") or DEFAULT_CONNECTION,
        db_table=os.environ.get("CART_DB_TABLE") or DEFAULT_TABLE,
        session_ttl=_env_int("CART_SESSION_TTL", DEFAULT_SESSION_TTL),
    )


@lru_cache(maxsize=1)
def get_settings() -> CartSettings:
    """Settings loaded once per process."""
    return load_settings()
