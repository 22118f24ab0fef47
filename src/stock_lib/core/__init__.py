"""
stock_lib.core — Data model, price source and logging.

    from stock_lib.core import PricePoint, get_price_source, setup_logging
"""

from stock_lib.core.logging_config import get_logger, setup_logging
from stock_lib.core.models import (
    GrowthResult,
    InvalidArgumentError,
    MomentumResult,
    PricePoint,
    StockGrowthResponse,
    StockMomentumResponse,
    StockPriceResponse,
    StockTrendResult,
    VolatilitySpikeResponse,
    VolatilitySpikeResult,
)
from stock_lib.core.price_source import (
    YahooPriceSource,
    get_price_source,
    reset_price_source,
    set_price_source,
)

__all__ = [
    # logging
    "get_logger",
    "setup_logging",
    # models
    "GrowthResult",
    "InvalidArgumentError",
    "MomentumResult",
    "PricePoint",
    "StockGrowthResponse",
    "StockMomentumResponse",
    "StockPriceResponse",
    "StockTrendResult",
    "VolatilitySpikeResponse",
    "VolatilitySpikeResult",
    # price source
    "YahooPriceSource",
    "get_price_source",
    "reset_price_source",
    "set_price_source",
]
