"""
Recent snapshot and raw price reads.

    recent_snapshot(symbols, window)   -> one StockPriceResponse per symbol, newest first
    recent_prices(symbol, minutes)     -> a single symbol's intraday series, ascending
    price_history(symbol, start, end)  -> daily closes between two instants, ascending
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from stock_lib.analysis.fetch import evaluation_instant, fetch_many
from stock_lib.core.metrics import record_analytic
from stock_lib.core.models import (
    InvalidArgumentError,
    PricePoint,
    StockPriceResponse,
    sort_ascending,
    sort_descending,
)
from stock_lib.core.price_source import PriceSource, get_price_source

logger = logging.getLogger("analysis.snapshot")


def recent_snapshot(
    symbols: Iterable[str],
    window_minutes: int,
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
) -> list[StockPriceResponse]:
    """Group each symbol's recent prices, newest first.

    Every requested symbol appears, with an empty ``prices`` list when the
    source returned nothing.
    """
    if window_minutes <= 0:
        raise InvalidArgumentError("window_minutes must be positive")
    record_analytic("snapshot")

    series_by_symbol = fetch_many(symbols, window_minutes, source=source, now=now)
    return [
        StockPriceResponse(symbol=symbol, prices=sort_descending(points))
        for symbol, points in series_by_symbol.items()
    ]


def recent_prices(
    symbol: str,
    minutes: int,
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
) -> list[PricePoint]:
    if minutes <= 0:
        raise InvalidArgumentError("minutes must be positive")
    source = source or get_price_source()
    return sort_ascending(source.fetch_recent(symbol, minutes, evaluation_instant(now)))


def price_history(
    symbol: str,
    start: datetime,
    end: datetime,
    *,
    source: Optional[PriceSource] = None,
) -> list[PricePoint]:
    """Daily closes for *symbol* between *start* and *end*, oldest first."""
    if start > end:
        raise InvalidArgumentError("start must not be after end")
    source = source or get_price_source()
    return sort_ascending(source.fetch_series(symbol, start, end, interval="1d"))
