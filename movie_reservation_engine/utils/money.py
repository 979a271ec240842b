"""
Money amounts as stored in ``Numeric(10, 2)`` columns.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .exceptions import ValidationError

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("99999999.99")


def parse_amount(value: Any, field_name: str, label: str) -> Decimal:
    """
    Parse a positive amount rounded half-up to whole cents.

    Raises:
        ValidationError: Not a number, below one cent after rounding, or too
            large for the column
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label} must be a decimal number", field_errors={field_name: ["not a number"]})

    if not amount.is_finite():
        raise ValidationError(f"{label} must be a decimal number", field_errors={field_name: ["not a number"]})

    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount < CENT:
        raise ValidationError(f"{label} must be positive", field_errors={field_name: ["must be at least 0.01"]})
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{label} is too large", field_errors={field_name: [f"must be at most {MAX_AMOUNT}"]})
    return amount
