"""Money helpers shared by pricing and discount calculations.

Amounts are ``Decimal`` rupees.  Tax and percentage discounts are
rounded to a whole rupee with half-up rounding (``0.5`` goes up), the
way shoppers expect a price label to read.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, str]

WHOLE_UNIT = Decimal("1")
ZERO = Decimal("0")


def to_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_half_up(value: Number) -> Decimal:
    """Round to the nearest whole unit, halves away from zero."""
    return to_decimal(value).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Number, percent: Number) -> Decimal:
    """``amount * percent / 100`` rounded to a whole unit."""
    return round_half_up(to_decimal(amount) * to_decimal(percent) / Decimal("100"))
