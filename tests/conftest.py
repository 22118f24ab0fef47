"""
Shared pytest fixtures for the stock analytics test suite.

Provides an in-memory price source that mirrors the real provider's
contract (ascending series, window clipping, empty list on failure) so
every test module can exercise the analytics without hitting the network.
"""

import os

# ---------------------------------------------------------------------------
# Disable rate limiting for most tests unless explicitly testing it.  Must
# be set before any stock_lib module reads its configuration.
# ---------------------------------------------------------------------------
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

import threading
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from stock_lib.core.models import PricePoint
from stock_lib.core.price_source import reset_price_source

# Fixed evaluation instant used by unit tests.
NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Synthetic data generators
# ---------------------------------------------------------------------------


def make_series(
    symbol: str,
    prices: list,
    *,
    end: datetime = NOW,
    step_minutes: float = 1.0,
) -> list[PricePoint]:
    """Build an ascending series whose last point sits exactly at *end*.

    Points are spaced *step_minutes* apart, so ``prices[i]`` is stamped
    ``(len(prices) - 1 - i) * step_minutes`` before *end*.
    """
    n = len(prices)
    return [
        PricePoint(
            symbol=symbol,
            timestamp=end - timedelta(minutes=step_minutes * (n - 1 - i)),
            price=Decimal(str(p)),
        )
        for i, p in enumerate(prices)
    ]


class FakePriceSource:
    """In-memory ``PriceSource`` with per-symbol canned series.

    - ``failures``: symbols whose fetch raises ``RuntimeError``
    - ``delays``:   per-symbol sleep in seconds before answering
    - ``by_window``: ``(symbol, window_minutes) -> series`` overrides for
      multi-window analytics; returned as-is without clipping
    """

    def __init__(
        self,
        series: dict[str, list[PricePoint]] | None = None,
        *,
        failures: set[str] | None = None,
        delays: dict[str, float] | None = None,
        by_window: dict[tuple[str, int], list[PricePoint]] | None = None,
    ):
        self.series = dict(series or {})
        self.failures = set(failures or ())
        self.delays = dict(delays or {})
        self.by_window = dict(by_window or {})
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def _answer(self, symbol: str, start: datetime, end: datetime) -> list[PricePoint]:
        delay = self.delays.get(symbol, 0.0)
        if delay:
            time.sleep(delay)
        if symbol in self.failures:
            raise RuntimeError(f"provider unavailable for {symbol}")
        return [p for p in self.series.get(symbol, []) if start <= p.timestamp <= end]

    def fetch_series(
        self, symbol: str, start: datetime, end: datetime, interval: str = "1d"
    ) -> list[PricePoint]:
        self._record("series", symbol, start, end, interval)
        return self._answer(symbol, start, end)

    def fetch_recent(
        self, symbol: str, window_minutes: int, end: datetime | None = None
    ) -> list[PricePoint]:
        end = end or datetime.now(tz=timezone.utc)
        self._record("recent", symbol, window_minutes, end)
        if (symbol, window_minutes) in self.by_window:
            if symbol in self.failures:
                raise RuntimeError(f"provider unavailable for {symbol}")
            return list(self.by_window[(symbol, window_minutes)])
        return self._answer(symbol, end - timedelta(minutes=window_minutes), end)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def fake_source():
    """An empty ``FakePriceSource``; tests fill ``.series`` as needed."""
    return FakePriceSource()


@pytest.fixture(autouse=True)
def _reset_price_source_singleton():
    """Never leak an injected price source between tests."""
    yield
    reset_price_source()
