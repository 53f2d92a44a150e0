"""Base-unit conversions. Amounts that feed a call never touch floats."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional, Union


def parse_units(amount: Union[str, Decimal, int], decimals: int) -> int:
    """Convert a human amount ("1.5") to integer base units.

    Raises ValueError for negative, malformed or over-precise amounts.
    """
    try:
        value = Decimal(str(amount).strip() or "0")
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} decimals")
    return int(scaled)


def format_units(amount: Optional[Union[int, str]], decimals: int) -> str:
    """Render base units as a plain decimal string; "0" for missing input."""
    if amount in (None, ""):
        return "0"
    try:
        value = Decimal(int(amount)).scaleb(-decimals)
    except (TypeError, ValueError):
        return "0"
    text = format(value.normalize(), "f")
    return text if "." not in text else text.rstrip("0").rstrip(".")


def to_decimal(value: Optional[Union[str, int, float, Decimal]]) -> Optional[Decimal]:
    """Parse an optional numeric field, treating blanks and garbage as absent."""
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None
