"""
Decimal helpers for monetary arithmetic.

All amounts are carried as Decimal and persisted as NUMERIC(14, 4). Values are
rounded half-up; storage precision is four places, display/settlement precision
is the currency's decimal_places.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
STORAGE_PLACES = 4
# NUMERIC(14, 4) holds ten integer digits
MAX_AMOUNT = Decimal("1e10")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr round-trips the shortest float literal, avoiding binary noise
        return Decimal(repr(value))
    return Decimal(str(value))


def parse_money(value, field: str) -> Decimal:
    """Caller-supplied amount as a finite Decimal; anything else is a ValidationError."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} required")
    try:
        amount = to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(f"{field} is out of range", details={"max": str(MAX_AMOUNT)})
    return amount


def quantize(value, places: int = STORAGE_PLACES) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def floor_zero(value) -> Decimal:
    value = to_decimal(value)
    return value if value > ZERO else ZERO


def percent_of(amount, percentage) -> Decimal:
    return to_decimal(amount) * to_decimal(percentage) / HUNDRED


def money_str(value) -> str:
    """Stable string form used in snapshots and JSON responses."""
    return str(quantize(value))
