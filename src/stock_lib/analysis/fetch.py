"""
Fetch orchestrator — concurrent multi-symbol price retrieval.

Fans out one price-source call per symbol (or per ``(symbol, window)`` pair
for multi-window analytics) onto a bounded ``ThreadPoolExecutor`` and joins
them all before returning.  Results are keyed by symbol in request order,
so completion order never leaks into the output.

A call that raises, returns nothing or misses the optional time budget
yields an empty series for that key; callers treat that as "insufficient
data", never as a failure.  There are no retries and no caching.

Environment:
    FETCH_MAX_WORKERS      — thread-pool bound per request (default 8)
    FETCH_TIMEOUT_SECONDS  — overall fan-in budget, 0 disables (default 0)
"""

import logging
import os
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Optional

from stock_lib.core.models import PricePoint, sort_ascending
from stock_lib.core.price_source import PriceSource, get_price_source

logger = logging.getLogger("analysis.fetch")

_MAX_WORKERS = int(os.getenv("FETCH_MAX_WORKERS", "8"))
_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "0"))


def unique_symbols(symbols: Iterable[str]) -> list[str]:
    """De-duplicate *symbols*, keeping first-seen order."""
    return list(dict.fromkeys(symbols))


def evaluation_instant(now: Optional[datetime] = None) -> datetime:
    """Return *now* as a tz-aware UTC instant, defaulting to the current time."""
    if now is None:
        return datetime.now(tz=timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def fetch_grid(
    symbols: Iterable[str],
    windows_minutes: Iterable[int],
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> dict[tuple[str, int], list[PricePoint]]:
    """Fetch every ``(symbol, window)`` pair concurrently.

    All fetches share the evaluation instant *now* as their window end.
    Returns a mapping ``(symbol, window_minutes) -> ascending series`` with
    one entry per pair, in symbol-then-window order.
    """
    source = source or get_price_source()
    now = evaluation_instant(now)
    windows = list(dict.fromkeys(windows_minutes))
    pairs = [(symbol, window) for symbol in unique_symbols(symbols) for window in windows]

    results: dict[tuple[str, int], list[PricePoint]] = {pair: [] for pair in pairs}
    if not pairs:
        return results

    workers = max(1, min(max_workers or _MAX_WORKERS, len(pairs)))
    budget = _TIMEOUT_SECONDS if timeout is None else timeout

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="price-fetch")
    try:
        future_to_pair = {
            executor.submit(source.fetch_recent, symbol, window, now): (symbol, window)
            for symbol, window in pairs
        }
        done, not_done = wait(future_to_pair, timeout=budget if budget > 0 else None)

        for future in done:
            symbol, window = future_to_pair[future]
            try:
                points = future.result()
            except Exception as exc:
                logger.warning("Fetch failed for %s (%dm): %s", symbol, window, exc)
                continue
            if not points:
                logger.debug("No price data for %s (%dm)", symbol, window)
                continue
            results[(symbol, window)] = sort_ascending(list(points))

        for future in not_done:
            symbol, window = future_to_pair[future]
            future.cancel()
            logger.warning(
                "Fetch for %s (%dm) exceeded %.1fs budget, treating as no data",
                symbol,
                window,
                budget,
            )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return results


def fetch_many(
    symbols: Iterable[str],
    window_minutes: int,
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> dict[str, list[PricePoint]]:
    """Fetch each symbol's trailing *window_minutes* series concurrently.

    Returns ``symbol -> ascending series`` for every requested symbol;
    symbols with no data map to an empty list.
    """
    grid = fetch_grid(
        symbols,
        [window_minutes],
        source=source,
        now=now,
        max_workers=max_workers,
        timeout=timeout,
    )
    return {symbol: points for (symbol, _), points in grid.items()}
