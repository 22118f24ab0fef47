"""
Multi-window momentum scoring.

Each ``(symbol, window)`` pair is fetched on its own at that window's
duration (windows are not nested slices of one fetch); the pairs are
fetched concurrently.  Per window, momentum uses the growth formula and
is ``0.00`` with fewer than two points or a zero start price.

With weights, ``score = round(sum(momentum[i] * weights[i]), 2)``.  Without
weights every score is ``0.00``: an explicit "no ranking signal", distinct
from weights that happen to sum to zero.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Optional

from stock_lib.analysis.fetch import evaluation_instant, fetch_grid, unique_symbols
from stock_lib.analysis.ranking import percentage_change, rank_descending, round_decimal
from stock_lib.core.metrics import record_analytic
from stock_lib.core.models import (
    InvalidArgumentError,
    MomentumResult,
    PricePoint,
    StockMomentumResponse,
    sort_ascending,
)
from stock_lib.core.price_source import PriceSource

logger = logging.getLogger("analysis.momentum")

_ZERO = Decimal("0")


def window_label(minutes: int) -> str:
    return f"{minutes}m"


def window_momentum(points: list[PricePoint]) -> Decimal:
    """Percentage change across *points*; ``0.00`` when fewer than 2."""
    ordered = sort_ascending(points)
    if len(ordered) < 2:
        return round_decimal(_ZERO)
    return percentage_change(ordered[0].price, ordered[-1].price)


def validate_momentum_args(
    windows_minutes: Sequence[int], weights: Optional[Sequence[Decimal]]
) -> None:
    """Raise ``InvalidArgumentError`` unless windows are positive and weights line up."""
    if not windows_minutes:
        raise InvalidArgumentError("windows_minutes must not be empty")
    if any(w <= 0 for w in windows_minutes):
        raise InvalidArgumentError("every window must be a positive number of minutes")
    if weights is not None and len(weights) != len(windows_minutes):
        raise InvalidArgumentError(
            f"weights length ({len(weights)}) must match "
            f"windows_minutes length ({len(windows_minutes)})"
        )


def score_momentum(
    momentum_by_window: dict[str, Decimal],
    windows_minutes: Sequence[int],
    weights: Optional[Sequence[Decimal]],
) -> Decimal:
    if weights is None:
        return round_decimal(_ZERO)
    total = sum(
        (
            momentum_by_window[window_label(w)] * Decimal(str(weight))
            for w, weight in zip(windows_minutes, weights)
        ),
        _ZERO,
    )
    return round_decimal(total)


def momentum(
    symbols: Iterable[str],
    windows_minutes: Sequence[int],
    weights: Optional[Sequence[Decimal]] = None,
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
) -> StockMomentumResponse:
    """Score *symbols* by weighted momentum across *windows_minutes*."""
    windows_minutes = list(windows_minutes)
    weights = None if weights is None else [Decimal(str(w)) for w in weights]
    validate_momentum_args(windows_minutes, weights)
    record_analytic("momentum")

    as_of = evaluation_instant(now)
    symbol_list = unique_symbols(symbols)
    grid = fetch_grid(symbol_list, windows_minutes, source=source, now=as_of)

    results: list[MomentumResult] = []
    for symbol in symbol_list:
        by_window = {
            window_label(w): window_momentum(grid[(symbol, w)]) for w in windows_minutes
        }
        score = score_momentum(by_window, windows_minutes, weights)
        logger.debug("Momentum for %s: %s score=%s", symbol, by_window, score)
        results.append(
            MomentumResult(symbol=symbol, momentum_by_window=by_window, score=score)
        )

    return StockMomentumResponse(
        as_of_utc=as_of,
        results=rank_descending(results, key=lambda r: r.score),
    )
