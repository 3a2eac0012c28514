"""
Money Utilities - Safe Decimal operations for prices, tax and totals.

Avoids float precision issues by using Decimal throughout. Tax helpers
round once, at the end, never on intermediate values.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal]

# Default precision for money operations (2 decimal places)
MONEY_PRECISION = Decimal("0.01")

# Rate used by price_excluding_tax when none is given (6%)
DEFAULT_TAX_RATE = Decimal("0.06")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "MYR": "RM",
}


def to_decimal(value: Union[Number, None]) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        return value

    try:
        if isinstance(value, float):
            # Use string representation to preserve precision
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def parse_decimal(value) -> Decimal | None:
    """Strict variant of to_decimal: None for anything that is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return None
    return result if result.is_finite() else None


def round_money(value: Number) -> Decimal:
    """Round monetary value half-up to two decimal places."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_float(value: Number) -> float:
    """
    Convert Decimal to float for external APIs.

    Use only at API boundaries, not for internal calculations.
    """
    return float(to_decimal(value))


def format_money(value: Number, currency: str = "USD") -> str:
    """
    Format monetary value with currency symbol.

    Args:
        value: Value to format
        currency: Currency code (USD, EUR, GBP, MYR...)

    Returns:
        Formatted string with currency symbol
    """
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    formatted = f"{round_money(value):,.2f}"

    if currency in ("USD", "EUR", "GBP"):
        return f"{symbol}{formatted}"
    return f"{formatted} {symbol}"


def tax_rate_fraction(percent: Number) -> Decimal:
    """Turn a percentage (6) into the fraction used for arithmetic (0.06)."""
    return to_decimal(percent) / Decimal("100")


def tax_amount(price: Number, rate_percent: Number, tax_included: bool = False) -> Decimal:
    """
    Tax carried by a price.

    Args:
        price: Net price, or gross price when tax_included is set
        rate_percent: Tax rate in percent (6 means 6%)
        tax_included: Whether price already embeds the tax

    Returns:
        Tax amount rounded half-up to 2 decimals
    """
    rate = tax_rate_fraction(rate_percent)
    price = to_decimal(price)

    if not tax_included:
        amount = price * rate
    else:
        amount = (rate * price) / (Decimal("1") + rate)

    return round_money(amount)


def price_excluding_tax(
    total: Number,
    tax_rate: Number = DEFAULT_TAX_RATE,
    is_inclusive: bool = True,
) -> Decimal:
    """Net price of a total. tax_rate is a fraction here, not a percentage."""
    total = to_decimal(total)
    if not is_inclusive:
        return total
    return round_money(total / (Decimal("1") + to_decimal(tax_rate)))
