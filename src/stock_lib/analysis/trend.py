"""
Linear trend of recent prices.

Fits an ordinary least-squares line through each symbol's trailing-window
closes (price against minutes elapsed) and ranks symbols by slope, steepest
uptrend first.  Symbols without enough data report a slope of ``0.0``.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from stock_lib.analysis.fetch import fetch_many
from stock_lib.analysis.ranking import SLOPE_PLACES, rank_descending, round_float
from stock_lib.analysis.series import linear_regression_slope
from stock_lib.core.metrics import record_analytic
from stock_lib.core.models import InvalidArgumentError, StockTrendResult
from stock_lib.core.price_source import PriceSource

logger = logging.getLogger("analysis.trend")


def trends(
    symbols: Iterable[str],
    window_minutes: int,
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
) -> list[StockTrendResult]:
    if window_minutes <= 0:
        raise InvalidArgumentError("window_minutes must be positive")
    record_analytic("trend")

    series_by_symbol = fetch_many(symbols, window_minutes, source=source, now=now)

    results = [
        StockTrendResult(
            symbol=symbol,
            prices=points,
            slope=round_float(linear_regression_slope(points), SLOPE_PLACES),
        )
        for symbol, points in series_by_symbol.items()
    ]
    logger.info("Analyzed trends for %d symbols over %dm", len(results), window_minutes)
    return rank_descending(results, key=lambda r: r.slope)
