"""
Shared rounding and ranking conventions for analytics output.

  - Decimal metrics (growth, momentum, price change) are quantized with
    banker's rounding so they always carry exactly the requested number of
    decimal places.
  - Float metrics (volatility, spike factor, slope) use builtin ``round``.
  - Rankings are descending and stable: equal keys keep encounter order.
"""

from collections.abc import Callable, Iterable
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any, TypeVar

T = TypeVar("T")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

GROWTH_PLACES = 2
VOLATILITY_PLACES = 4
SPIKE_FACTOR_PLACES = 1
SLOPE_PLACES = 4


def round_decimal(value: Decimal, places: int = GROWTH_PLACES) -> Decimal:
    """Quantize *value* to exactly *places* decimal digits (half-even)."""
    return Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


def round_float(value: float, places: int) -> float:
    return round(float(value), places)


def percentage_change(start: Decimal, end: Decimal) -> Decimal:
    """``round((end - start) / start * 100, 2)``; exactly ``0.00`` when *start* is 0."""
    if start == _ZERO:
        return round_decimal(_ZERO)
    return round_decimal((end - start) / start * _HUNDRED)


def rank_descending(items: Iterable[T], key: Callable[[T], Any]) -> list[T]:
    """Sort *items* by *key*, highest first, preserving order among ties."""
    # sorted() stays stable with reverse=True
    return sorted(items, key=key, reverse=True)
