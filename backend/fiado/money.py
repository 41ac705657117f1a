# Overview: Conversions between client money values and integer cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app, has_app_context

from .validation import ValidationError

# Largest amount accepted for a single sale or payment: 9,999,999,999.99
MAX_AMOUNT_CENTS = 999_999_999_999


def to_cents(value, field: str = "amount") -> int:
    """
    Convert a major-unit amount (e.g. 40000 or "399.99") to integer cents.

    Floats go through their shortest repr so 0.1 becomes exactly 10 cents.
    Values with more than two decimal places are rejected instead of rounded.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")

    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    cents = int(cents)
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is too large")
    return cents


def format_cents(cents: int, symbol: str | None = None) -> str:
    """
    Human-readable currency, e.g. 6000000 -> "$60,000" and 1999 -> "$19.99".

    Whole amounts omit the decimals, matching how the stores print prices.
    """
    if symbol is None:
        symbol = current_app.config.get("CURRENCY_SYMBOL", "$") if has_app_context() else "$"
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    if fraction:
        return f"{sign}{symbol}{whole:,}.{fraction:02d}"
    return f"{sign}{symbol}{whole:,}"
