"""
Monetary helpers

All comparisons between amounts go through round2 at each aggregation
boundary; raw sums are never compared directly.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert without binary float artifacts (0.1 -> Decimal('0.1'))"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    """Round half-up to 2 decimal places"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum2(values: Iterable[Number]) -> Decimal:
    """Sum then round2"""
    return round2(sum((to_decimal(v) for v in values), ZERO))
