"""
stock_lib.analysis — Analytics engine over fetched price series.

Re-exports the public API from each sub-module so callers can do:

    from stock_lib.analysis import growth, momentum, volatility_spikes
"""

from stock_lib.analysis.fetch import fetch_grid, fetch_many
from stock_lib.analysis.growth import compute_growth, growth
from stock_lib.analysis.momentum import momentum, window_label, window_momentum
from stock_lib.analysis.ranking import (
    percentage_change,
    rank_descending,
    round_decimal,
    round_float,
)
from stock_lib.analysis.series import linear_regression_slope, log_returns, sample_std
from stock_lib.analysis.snapshot import price_history, recent_prices, recent_snapshot
from stock_lib.analysis.trend import trends
from stock_lib.analysis.volatility import (
    BASELINE_VOLATILITY_FLOOR,
    partition_series,
    spike_factor_for,
    volatility_spikes,
)

__all__ = [
    # fetch
    "fetch_grid",
    "fetch_many",
    # growth
    "compute_growth",
    "growth",
    # momentum
    "momentum",
    "window_label",
    "window_momentum",
    # ranking
    "percentage_change",
    "rank_descending",
    "round_decimal",
    "round_float",
    # series
    "linear_regression_slope",
    "log_returns",
    "sample_std",
    # snapshot
    "price_history",
    "recent_prices",
    "recent_snapshot",
    # trend
    "trends",
    # volatility
    "BASELINE_VOLATILITY_FLOOR",
    "partition_series",
    "spike_factor_for",
    "volatility_spikes",
]
