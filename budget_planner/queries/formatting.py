"""Display helpers for amounts and notes."""

from decimal import Decimal
from typing import Union


CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}


def format_money(amount: Union[Decimal, int, float], currency: str = "INR") -> str:
    """
    Format an amount for messages, e.g. ₹1,234.00.

    Currencies without a known symbol are prefixed with their code.
    """
    value = Decimal(str(amount))
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{code} {value:,.2f}"
    return f"{symbol}{value:,.2f}"


def plain_decimal(value: Decimal) -> str:
    """Decimal without trailing zeros or exponent: 5000.00 -> 5000, 12.50 -> 12.5."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def truncate_note(note: str, length: int = 60) -> str:
    """First `length` characters of a note, as shown in listings."""
    return note[:length]
