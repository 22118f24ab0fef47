"""
Percentage growth over a trailing window, ranked highest first.

For each symbol the fetched series is taken oldest → newest:

    percentageGrowth = round((end - start) / start * 100, 2)

with growth defined as ``0.00`` when the start price is zero.  Symbols with
fewer than two points are excluded entirely rather than zero-filled.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from stock_lib.analysis.fetch import evaluation_instant, fetch_many
from stock_lib.analysis.ranking import percentage_change, rank_descending
from stock_lib.core.metrics import record_analytic, record_symbol_skipped
from stock_lib.core.models import (
    GrowthResult,
    InvalidArgumentError,
    PricePoint,
    StockGrowthResponse,
    sort_ascending,
    sort_descending,
)
from stock_lib.core.price_source import PriceSource

logger = logging.getLogger("analysis.growth")


def compute_growth(symbol: str, points: list[PricePoint]) -> Optional[GrowthResult]:
    """Growth result for one symbol, or ``None`` with fewer than 2 points."""
    ordered = sort_ascending(points)
    if len(ordered) < 2:
        return None

    start_price = ordered[0].price
    end_price = ordered[-1].price
    return GrowthResult(
        symbol=symbol,
        start_price=start_price,
        end_price=end_price,
        percentage_growth=percentage_change(start_price, end_price),
        prices=sort_descending(ordered),
    )


def growth(
    symbols: Iterable[str],
    window_minutes: int,
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
) -> StockGrowthResponse:
    """Rank *symbols* by percentage growth over the trailing *window_minutes*."""
    if window_minutes <= 0:
        raise InvalidArgumentError("window_minutes must be positive")
    record_analytic("growth")

    as_of = evaluation_instant(now)
    series_by_symbol = fetch_many(symbols, window_minutes, source=source, now=as_of)

    results: list[GrowthResult] = []
    for symbol, points in series_by_symbol.items():
        result = compute_growth(symbol, points)
        if result is None:
            logger.info("Insufficient data for %s: %d point(s)", symbol, len(points))
            record_symbol_skipped("growth", "insufficient_data")
            continue
        results.append(result)

    return StockGrowthResponse(
        window_minutes=window_minutes,
        as_of_utc=as_of,
        results=rank_descending(results, key=lambda r: r.percentage_growth),
    )
