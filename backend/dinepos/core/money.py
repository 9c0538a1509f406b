"""Currency arithmetic helpers.

Bill figures are Decimals. Tax and percentage discounts round half-up to whole
currency units, which is what the printed bills show.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
UNIT = Decimal("1")


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal without inheriting float representation noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Number) -> Decimal:
    """Round to the nearest whole currency unit, halves away from zero."""
    return to_decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Number]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total
