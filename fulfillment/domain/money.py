"""
Money helpers. All amounts are Decimal with two places.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from fulfillment.domain.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Coerce value to a Decimal rounded to cents (None -> 0.00)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation as e:
            raise ValidationError(f"Invalid amount: {value}") from e
    if not value.is_finite():
        raise ValidationError(f"Amount must be a finite number, got {value}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_percent(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if not value.is_finite():
        raise ValidationError(f"Percentage must be a finite number, got {value}")
    return value
