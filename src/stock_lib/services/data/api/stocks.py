"""
Stock analytics API router.

Binds request models, rejects malformed input before any analytic runs,
and serialises results.  All fetching and computation live in
``stock_lib.analysis``.

Endpoints (mounted under ``/stock``):
    ── Raw prices ──
    GET  /stock/{symbol}                   — Daily closes between two dates (default: last 30 days)
    GET  /stock/{symbol}/recent            — 1-minute closes for the last N minutes

    ── Analytics ──
    POST /stock/recent                     — Recent prices for many symbols, newest first
    POST /stock/growth                     — Percentage growth ranking
    POST /stock/momentum                   — Weighted multi-window momentum ranking
    POST /stock/volatility-spikes          — Short-term vs baseline volatility spikes
    POST /stock/trends                     — Linear trend slope ranking
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_validator

from stock_lib.analysis.growth import growth
from stock_lib.analysis.momentum import momentum
from stock_lib.analysis.snapshot import price_history, recent_prices, recent_snapshot
from stock_lib.analysis.trend import trends
from stock_lib.analysis.volatility import volatility_spikes
from stock_lib.core.models import InvalidArgumentError
from stock_lib.core.price_source import get_price_source
from stock_lib.services.data.api.rate_limit import (
    DEFAULT_LIMIT,
    HEAVY_LIMIT,
    get_limiter,
)
from stock_lib.services.data.api.responses import DecimalJSONResponse

logger = logging.getLogger("api.stocks")

router = APIRouter(tags=["Stocks"])
limiter = get_limiter()

_DEFAULT_HISTORY_DAYS = 30


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SymbolsRequest(BaseModel):
    """Base body carrying a list of ticker symbols."""

    symbols: list[str] = Field(..., min_length=1, description="Ticker symbols, e.g. ['AAPL', 'MSFT']")

    @field_validator("symbols")
    @classmethod
    def _clean_symbols(cls, value: list[str]) -> list[str]:
        cleaned = [s.strip().upper() for s in value if s and s.strip()]
        if not cleaned:
            raise ValueError("at least one non-blank symbol is required")
        return list(dict.fromkeys(cleaned))


class MultiSymbolRequest(SymbolsRequest):
    """Symbols plus a single trailing window."""

    windowMinutes: int = Field(5, gt=0, description="Trailing window in minutes")


class StockGrowthRequest(MultiSymbolRequest):
    """Request body for the growth ranking."""


class TrendAnalysisRequest(MultiSymbolRequest):
    """Request body for the trend ranking."""


class StockMomentumRequest(SymbolsRequest):
    """Request body for weighted multi-window momentum."""

    windowsMinutes: list[int] = Field(
        ..., min_length=1, description="Window durations in minutes, e.g. [5, 30]"
    )
    weights: Optional[list[Decimal]] = Field(
        None, description="One weight per window; omit for an unranked (score 0) result"
    )

    @field_validator("windowsMinutes")
    @classmethod
    def _positive_windows(cls, value: list[int]) -> list[int]:
        if any(w <= 0 for w in value):
            raise ValueError("every window must be a positive number of minutes")
        return value


class VolatilitySpikeRequest(MultiSymbolRequest):
    """Request body for volatility spike detection."""

    baselineMinutes: int = Field(60, gt=0, description="Baseline window in minutes")
    spikeThreshold: float = Field(2.0, gt=0, description="Minimum spike factor to report")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _bad_request(exc: Exception) -> HTTPException:
    logger.info("Rejected request: %s", exc)
    return HTTPException(status_code=400, detail=str(exc))


# ═══════════════════════════════════════════════════════════════════════════
# ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════


@router.post("/recent")
@limiter.limit(DEFAULT_LIMIT)
def get_recent_for_symbols(request: Request, body: MultiSymbolRequest):
    """Recent prices for each symbol, newest first; empty list when no data."""
    try:
        snapshot = recent_snapshot(body.symbols, body.windowMinutes, source=get_price_source())
    except InvalidArgumentError as exc:
        raise _bad_request(exc)
    return DecimalJSONResponse([entry.to_dict() for entry in snapshot])


@router.post("/growth")
@limiter.limit(DEFAULT_LIMIT)
def get_growth(request: Request, body: StockGrowthRequest):
    """Rank symbols by percentage growth over the window.

    Symbols with fewer than two prices in the window are omitted.
    """
    try:
        response = growth(body.symbols, body.windowMinutes, source=get_price_source())
    except InvalidArgumentError as exc:
        raise _bad_request(exc)
    return DecimalJSONResponse(response.to_dict())


@router.post("/momentum")
@limiter.limit(HEAVY_LIMIT)
def get_momentum(request: Request, body: StockMomentumRequest):
    """Rank symbols by weighted momentum across several windows."""
    if body.weights is not None and len(body.weights) != len(body.windowsMinutes):
        raise _bad_request(
            ValueError(
                f"weights length ({len(body.weights)}) must match "
                f"windowsMinutes length ({len(body.windowsMinutes)})"
            )
        )
    try:
        response = momentum(
            body.symbols,
            body.windowsMinutes,
            body.weights,
            source=get_price_source(),
        )
    except InvalidArgumentError as exc:
        raise _bad_request(exc)
    return DecimalJSONResponse(response.to_dict())


@router.post("/volatility-spikes")
@limiter.limit(HEAVY_LIMIT)
def get_volatility_spikes(request: Request, body: VolatilitySpikeRequest):
    """Report symbols whose short-term volatility spikes above their baseline."""
    if body.baselineMinutes <= body.windowMinutes:
        raise _bad_request(ValueError("baselineMinutes must be greater than windowMinutes"))
    try:
        response = volatility_spikes(
            body.symbols,
            body.windowMinutes,
            body.baselineMinutes,
            body.spikeThreshold,
            source=get_price_source(),
        )
    except InvalidArgumentError as exc:
        raise _bad_request(exc)
    return DecimalJSONResponse(response.to_dict())


@router.post("/trends")
@limiter.limit(DEFAULT_LIMIT)
def analyze_trends(request: Request, body: TrendAnalysisRequest):
    """Rank symbols by the slope of a least-squares fit through recent prices."""
    try:
        results = trends(body.symbols, body.windowMinutes, source=get_price_source())
    except InvalidArgumentError as exc:
        raise _bad_request(exc)
    return DecimalJSONResponse([r.to_dict() for r in results])


# ═══════════════════════════════════════════════════════════════════════════
# RAW PRICES
# ═══════════════════════════════════════════════════════════════════════════


@router.get("/{symbol}/recent")
@limiter.limit(DEFAULT_LIMIT)
def get_recent(
    request: Request,
    symbol: str,
    minutes: int = Query(5, ge=1, description="Minutes of 1-minute bars to fetch"),
):
    """1-minute closes for the last *minutes* minutes, oldest first."""
    points = recent_prices(symbol.strip().upper(), minutes, source=get_price_source())
    return DecimalJSONResponse([p.to_dict() for p in points])


@router.get("/{symbol}")
@limiter.limit(DEFAULT_LIMIT)
def get_history(
    request: Request,
    symbol: str,
    startDate: Optional[date] = Query(None, description="First day, YYYY-MM-DD (default: 30 days ago)"),
    endDate: Optional[date] = Query(None, description="Last day, YYYY-MM-DD (default: today)"),
):
    """Daily closes between two dates (inclusive), oldest first."""
    today = datetime.now(tz=timezone.utc).date()
    end_day = endDate or today
    start_day = startDate or (today - timedelta(days=_DEFAULT_HISTORY_DAYS))

    start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_day, time.max, tzinfo=timezone.utc)
    try:
        points = price_history(symbol.strip().upper(), start, end, source=get_price_source())
    except InvalidArgumentError as exc:
        raise _bad_request(exc)
    return DecimalJSONResponse([p.to_dict() for p in points])
