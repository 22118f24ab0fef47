"""
Volatility spike detection.

Compares the realised volatility of a short trailing window against the
older "baseline" part of a longer window and reports symbols whose ratio
(the spike factor) meets a threshold.

Per symbol, relative to one captured evaluation instant ``now``:

  1. Fetch one series covering ``baseline_minutes``; skip with < 2 points.
  2. Partition it:
       short-term = points with ts >= now - window_minutes
       baseline   = points with now - baseline_minutes <= ts < now - window_minutes
     The baseline deliberately excludes the short-term region.  Skip if
     either partition has < 2 points.
  3. Log returns per partition (non-positive prices dropped).
  4. Sample standard deviation (n - 1) of each; 0.0 with < 2 returns.
  5. Skip if baseline volatility < 1e-4.
  6. spike_factor = short / baseline; skip if below the threshold.
  7. priceChangePercent across the short-term partition (growth formula).
  8. Round: volatilities 4 dp, spike factor 1 dp, price change 2 dp.

Results are ranked by spike factor, highest first.  Skips are logged and
counted, never raised.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from stock_lib.analysis.fetch import evaluation_instant, fetch_many
from stock_lib.analysis.ranking import (
    SPIKE_FACTOR_PLACES,
    VOLATILITY_PLACES,
    percentage_change,
    rank_descending,
    round_float,
)
from stock_lib.analysis.series import log_returns, sample_std
from stock_lib.core.metrics import record_analytic, record_symbol_skipped
from stock_lib.core.models import (
    InvalidArgumentError,
    PricePoint,
    VolatilitySpikeResponse,
    VolatilitySpikeResult,
    sort_ascending,
)
from stock_lib.core.price_source import PriceSource

logger = logging.getLogger("analysis.volatility")

# Baseline volatility below this is treated as flat; dividing by it is unstable.
BASELINE_VOLATILITY_FLOOR = 1e-4


def validate_spike_args(
    window_minutes: int, baseline_minutes: int, spike_threshold: float
) -> None:
    if window_minutes <= 0:
        raise InvalidArgumentError("window_minutes must be positive")
    if baseline_minutes <= window_minutes:
        raise InvalidArgumentError("baseline_minutes must be greater than window_minutes")
    if spike_threshold <= 0:
        raise InvalidArgumentError("spike_threshold must be positive")


def partition_series(
    points: list[PricePoint],
    now: datetime,
    window_minutes: int,
    baseline_minutes: int,
) -> tuple[list[PricePoint], list[PricePoint]]:
    """Split an ascending series into ``(short_term, baseline)`` partitions."""
    short_term_start = now - timedelta(minutes=window_minutes)
    baseline_start = now - timedelta(minutes=baseline_minutes)

    short_term = [p for p in points if p.timestamp >= short_term_start]
    baseline = [p for p in points if baseline_start <= p.timestamp < short_term_start]
    return short_term, baseline


def spike_factor_for(
    short_term_volatility: float, baseline_volatility: float
) -> Optional[float]:
    """Unrounded short/baseline ratio, or ``None`` for a flat baseline.

    A baseline below ``BASELINE_VOLATILITY_FLOOR`` never yields a factor,
    whatever threshold the caller applies afterwards.
    """
    if baseline_volatility < BASELINE_VOLATILITY_FLOOR:
        return None
    return short_term_volatility / baseline_volatility


def evaluate_symbol(
    symbol: str,
    points: list[PricePoint],
    now: datetime,
    window_minutes: int,
    baseline_minutes: int,
    spike_threshold: float,
) -> Optional[VolatilitySpikeResult]:
    """Run steps 1–8 for one symbol; ``None`` when the symbol is skipped."""
    ordered = sort_ascending(points)
    if len(ordered) < 2:
        logger.warning("Insufficient data for %s", symbol)
        record_symbol_skipped("volatility", "insufficient_data")
        return None

    short_term, baseline = partition_series(ordered, now, window_minutes, baseline_minutes)
    if len(short_term) < 2 or len(baseline) < 2:
        logger.warning(
            "Insufficient data in windows for %s (short=%d, baseline=%d)",
            symbol,
            len(short_term),
            len(baseline),
        )
        record_symbol_skipped("volatility", "insufficient_window_data")
        return None

    short_term_volatility = sample_std(log_returns(short_term))
    baseline_volatility = sample_std(log_returns(baseline))

    factor = spike_factor_for(short_term_volatility, baseline_volatility)
    if factor is None:
        logger.warning(
            "Baseline volatility %.6f below floor for %s", baseline_volatility, symbol
        )
        record_symbol_skipped("volatility", "flat_baseline")
        return None
    if factor < spike_threshold:
        logger.debug("No spike for %s (factor=%.3f)", symbol, factor)
        record_symbol_skipped("volatility", "below_threshold")
        return None

    return VolatilitySpikeResult(
        symbol=symbol,
        short_term_volatility=round_float(short_term_volatility, VOLATILITY_PLACES),
        baseline_volatility=round_float(baseline_volatility, VOLATILITY_PLACES),
        spike_factor=round_float(factor, SPIKE_FACTOR_PLACES),
        price_change_percent=percentage_change(
            short_term[0].price, short_term[-1].price
        ),
    )


def volatility_spikes(
    symbols: Iterable[str],
    window_minutes: int,
    baseline_minutes: int,
    spike_threshold: float,
    *,
    source: Optional[PriceSource] = None,
    now: Optional[datetime] = None,
) -> VolatilitySpikeResponse:
    """Detect symbols whose short-term volatility spikes above their baseline."""
    validate_spike_args(window_minutes, baseline_minutes, spike_threshold)
    record_analytic("volatility")

    # One instant for both the fetch window and the partition boundaries.
    as_of = evaluation_instant(now)
    series_by_symbol = fetch_many(symbols, baseline_minutes, source=source, now=as_of)
    logger.info("Calculating volatility spikes for %d symbols", len(series_by_symbol))

    results: list[VolatilitySpikeResult] = []
    for symbol, points in series_by_symbol.items():
        result = evaluate_symbol(
            symbol, points, as_of, window_minutes, baseline_minutes, spike_threshold
        )
        if result is not None:
            results.append(result)

    return VolatilitySpikeResponse(
        window_minutes=window_minutes,
        baseline_minutes=baseline_minutes,
        as_of_utc=as_of,
        results=rank_descending(results, key=lambda r: r.spike_factor),
    )
