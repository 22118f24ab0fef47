"""
Yahoo Finance price source
==========================
The only component that talks to the outside world.  Given a symbol and a
time range (or "last N minutes") it returns an ascending list of
``PricePoint`` built from Yahoo close prices, or an empty list on any
fetch/parse failure.  Callers never see provider exceptions.

  - Historical reads use daily bars (``interval="1d"``).
  - Recent reads use 1-minute bars; Yahoo only serves these for roughly
    the last 7 days.
  - Close prices are rounded to cents and stored as ``Decimal``.
  - Timestamps are normalised to UTC and clipped to the requested range.

Usage:
    from stock_lib.core.price_source import get_price_source

    source = get_price_source()
    points = source.fetch_recent("AAPL", window_minutes=30)

Environment:
    YAHOO_PREPOST  — "1" to include pre/post market bars (default "1")
"""

import logging
import os
import threading
import time
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Optional, Protocol

import pandas as pd
import yfinance as yf

from stock_lib.core.metrics import record_price_fetch
from stock_lib.core.models import PricePoint, sort_ascending

logger = logging.getLogger("price_source")

_CENTS = Decimal("0.01")
_PREPOST = os.getenv("YAHOO_PREPOST", "1").strip().lower() in ("1", "true", "yes")


class PriceSource(Protocol):
    """Interface the analytics core depends on."""

    def fetch_series(
        self, symbol: str, start: datetime, end: datetime, interval: str = "1d"
    ) -> list[PricePoint]: ...

    def fetch_recent(
        self, symbol: str, window_minutes: int, end: Optional[datetime] = None
    ) -> list[PricePoint]: ...


# ---------------------------------------------------------------------------
# DataFrame helpers
# ---------------------------------------------------------------------------


def _flatten_columns(df: "pd.DataFrame | None") -> pd.DataFrame:
    """Flatten MultiIndex columns returned by some yfinance versions."""
    if df is None or df.empty:
        return pd.DataFrame()
    result: pd.DataFrame = df.copy()
    if isinstance(result.columns, pd.MultiIndex):
        result.columns = pd.Index(
            [col[0] if isinstance(col, tuple) else col for col in result.columns]
        )
    mask = ~pd.Index(result.columns).duplicated(keep="first")
    result = result.loc[:, mask]
    result.columns = pd.Index([str(c) for c in result.columns])
    return result


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_utc(ts) -> datetime:
    stamp = pd.Timestamp(ts)
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize("UTC")
    else:
        stamp = stamp.tz_convert("UTC")
    return stamp.to_pydatetime()


def _to_price(value) -> Decimal | None:
    """Convert a close value to a cent-rounded Decimal, or None if missing."""
    if value is None or pd.isna(value):
        return None
    try:
        return Decimal(str(float(value))).quantize(_CENTS, rounding=ROUND_HALF_EVEN)
    except (InvalidOperation, ValueError, TypeError):
        return None


def frame_to_points(
    symbol: str,
    df: pd.DataFrame,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[PricePoint]:
    """Convert a yfinance history frame into ascending ``PricePoint`` objects.

    Rows with a missing close are dropped; rows outside ``[start, end]`` are
    clipped when bounds are given.
    """
    df = _flatten_columns(df)
    if df.empty:
        return []
    if "Close" not in df.columns:
        logger.warning("No close price data found for %s", symbol)
        return []

    points: list[PricePoint] = []
    for ts, close in df["Close"].items():
        price = _to_price(close)
        if price is None:
            continue
        when = _to_utc(ts)
        if start is not None and when < start:
            continue
        if end is not None and when > end:
            continue
        points.append(PricePoint(symbol=symbol, timestamp=when, price=price))
    return sort_ascending(points)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class YahooPriceSource:
    """Fetches close-price series from Yahoo Finance through ``yfinance``.

    Never raises: network errors, malformed payloads and missing columns
    are logged and surface as an empty list.
    """

    def __init__(self, prepost: Optional[bool] = None):
        self.prepost = _PREPOST if prepost is None else prepost

    def _history(
        self, symbol: str, start: datetime, end: datetime, interval: str
    ) -> pd.DataFrame:
        ticker = yf.Ticker(symbol)
        return ticker.history(
            start=start,
            end=end,
            interval=interval,
            prepost=self.prepost,
            auto_adjust=True,
            actions=False,
        )

    def fetch_series(
        self, symbol: str, start: datetime, end: datetime, interval: str = "1d"
    ) -> list[PricePoint]:
        """Return *symbol*'s closes between *start* and *end* (inclusive), ascending."""
        start = _ensure_utc(start)
        end = _ensure_utc(end)
        logger.info(
            "Getting stock prices for %s from %s to %s (%s)",
            symbol,
            start.isoformat(),
            end.isoformat(),
            interval,
        )
        started = time.perf_counter()
        try:
            # yfinance treats ``end`` as exclusive
            df = self._history(symbol, start, end + timedelta(seconds=1), interval)
            points = frame_to_points(symbol, df, start=start, end=end)
        except Exception as exc:
            logger.error("Error fetching data from Yahoo Finance for %s: %s", symbol, exc)
            record_price_fetch("error", time.perf_counter() - started)
            return []

        record_price_fetch("ok" if points else "empty", time.perf_counter() - started)
        logger.info("Retrieved %d price points for %s", len(points), symbol)
        return points

    def fetch_recent(
        self, symbol: str, window_minutes: int, end: Optional[datetime] = None
    ) -> list[PricePoint]:
        """Return 1-minute closes for the trailing *window_minutes* ending at *end*."""
        end = end or datetime.now(tz=timezone.utc)
        start = end - timedelta(minutes=window_minutes)
        return self.fetch_series(symbol, start, end, interval="1m")


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_source_instance: Optional[PriceSource] = None
_source_lock = threading.Lock()


def get_price_source() -> PriceSource:
    """Get or create the process-wide price source."""
    global _source_instance
    with _source_lock:
        if _source_instance is None:
            _source_instance = YahooPriceSource()
        return _source_instance


def set_price_source(source: Optional[PriceSource]) -> None:
    """Replace the process-wide price source (``None`` restores the default on next use)."""
    global _source_instance
    with _source_lock:
        _source_instance = source


def reset_price_source() -> None:
    """Reset the singleton (useful for testing)."""
    set_price_source(None)
