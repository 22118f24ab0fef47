"""
Price-series statistics used by the volatility and trend analytics.

Pure functions over ascending ``PricePoint`` sequences.  All math here is
binary floating point (NumPy) because it goes through ``log``, ``sqrt`` and
least squares, where Decimal precision buys nothing.

    log_returns(points)          -> list[float]
    sample_std(values)           -> float   (divides by n - 1)
    linear_regression_slope(pts) -> float   (price units per minute)
"""

from collections.abc import Sequence

import numpy as np

from stock_lib.core.models import PricePoint


def log_returns(points: Sequence[PricePoint]) -> list[float]:
    """Natural-log returns of consecutive prices.

    Pairs where either price is not strictly positive are dropped silently,
    so the result may be shorter than ``len(points) - 1``.
    """
    returns: list[float] = []
    for prev, curr in zip(points, points[1:]):
        prev_price = float(prev.price)
        curr_price = float(curr.price)
        if prev_price > 0 and curr_price > 0:
            returns.append(float(np.log(curr_price / prev_price)))
    return returns


def sample_std(values: Sequence[float]) -> float:
    """Sample standard deviation (``ddof=1``); 0.0 with fewer than 2 values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=1))


def linear_regression_slope(points: Sequence[PricePoint]) -> float:
    """Ordinary least-squares slope of price against minutes since the first point.

    Returns 0.0 with fewer than 2 points or when every point shares the
    same timestamp (the regression is undefined).
    """
    if len(points) < 2:
        return 0.0

    origin = points[0].timestamp
    x = np.array(
        [(p.timestamp - origin).total_seconds() / 60.0 for p in points], dtype=float
    )
    y = np.array([float(p.price) for p in points], dtype=float)

    x_centered = x - x.mean()
    denom = float(np.dot(x_centered, x_centered))
    if denom == 0.0:
        return 0.0
    return float(np.dot(x_centered, y - y.mean()) / denom)
