"""
Data model for the stock analytics core.

Every entity here is request-scoped: built from freshly fetched series,
never mutated after construction (frozen dataclasses) and discarded once
the response has been serialised.

Prices are ``Decimal`` so that percentage growth stays exact across many
sequential computations.  Volatility and slope metrics are plain floats
since they go through ``log`` / ``sqrt`` / least squares.

``to_dict()`` on each result emits the wire field names consumed by API
clients (camelCase).
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


class InvalidArgumentError(ValueError):
    """Raised when an analytic is invoked with inputs that violate its preconditions."""


# ---------------------------------------------------------------------------
# Price data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PricePoint:
    """A single observed price for a symbol at a tz-aware instant."""

    symbol: str
    timestamp: datetime
    price: Decimal

    def to_dict(self) -> dict[str, Any]:
        """Historical/recent read shape: ``{symbol, date, price}``."""
        return {
            "symbol": self.symbol,
            "date": self.timestamp.isoformat(),
            "price": self.price,
        }


Series = list[PricePoint]


def sort_ascending(series: list[PricePoint]) -> list[PricePoint]:
    """Return *series* ordered by ascending timestamp."""
    return sorted(series, key=lambda p: p.timestamp)


def sort_descending(series: list[PricePoint]) -> list[PricePoint]:
    """Return *series* ordered by descending timestamp."""
    return sorted(series, key=lambda p: p.timestamp, reverse=True)


def _price_entries(series: list[PricePoint]) -> list[dict[str, Any]]:
    return [{"price": p.price, "timestamp": p.timestamp.isoformat()} for p in series]


# ---------------------------------------------------------------------------
# Recent snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockPriceResponse:
    """Recent prices for one symbol, newest first."""

    symbol: str
    prices: list[PricePoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "prices": _price_entries(self.prices)}


# ---------------------------------------------------------------------------
# Growth
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GrowthResult:
    symbol: str
    start_price: Decimal
    end_price: Decimal
    percentage_growth: Decimal
    prices: list[PricePoint] = field(default_factory=list)  # newest first

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "startPrice": self.start_price,
            "endPrice": self.end_price,
            "percentageGrowth": self.percentage_growth,
            "prices": _price_entries(self.prices),
        }


@dataclass(frozen=True)
class StockGrowthResponse:
    window_minutes: int
    as_of_utc: datetime
    results: list[GrowthResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "windowMinutes": self.window_minutes,
            "asOfUtc": self.as_of_utc.isoformat(),
            "results": [r.to_dict() for r in self.results],
        }


# ---------------------------------------------------------------------------
# Momentum
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MomentumResult:
    symbol: str
    momentum_by_window: dict[str, Decimal]  # "{minutes}m" -> % change
    score: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "momentum": dict(self.momentum_by_window),
            "score": self.score,
        }


@dataclass(frozen=True)
class StockMomentumResponse:
    as_of_utc: datetime
    results: list[MomentumResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "asOfUtc": self.as_of_utc.isoformat(),
            "results": [r.to_dict() for r in self.results],
        }


# ---------------------------------------------------------------------------
# Volatility spike
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VolatilitySpikeResult:
    symbol: str
    short_term_volatility: float
    baseline_volatility: float
    spike_factor: float
    price_change_percent: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "shortTermVolatility": self.short_term_volatility,
            "baselineVolatility": self.baseline_volatility,
            "spikeFactor": self.spike_factor,
            "priceChangePercent": self.price_change_percent,
        }


@dataclass(frozen=True)
class VolatilitySpikeResponse:
    window_minutes: int
    baseline_minutes: int
    as_of_utc: datetime
    results: list[VolatilitySpikeResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "windowMinutes": self.window_minutes,
            "baselineMinutes": self.baseline_minutes,
            "asOfUtc": self.as_of_utc.isoformat(),
            "results": [r.to_dict() for r in self.results],
        }


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockTrendResult:
    """Linear trend of one symbol's recent prices (slope in price units per minute)."""

    symbol: str
    prices: list[PricePoint] = field(default_factory=list)
    slope: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "prices": [p.to_dict() for p in self.prices],
            "slope": self.slope,
        }
