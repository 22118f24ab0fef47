"""
stock_lib — Time-windowed equity price analytics.

Sub-packages:

    # Core infrastructure
    from stock_lib.core.models import PricePoint, StockGrowthResponse
    from stock_lib.core.price_source import get_price_source
    from stock_lib.core.logging_config import setup_logging, get_logger

    # Analytics
    from stock_lib.analysis.fetch import fetch_many
    from stock_lib.analysis.growth import growth
    from stock_lib.analysis.momentum import momentum
    from stock_lib.analysis.volatility import volatility_spikes
    from stock_lib.analysis.trend import trends

    # HTTP service
    from stock_lib.services.data.main import app

Install in editable mode for development:

    pip install -e ".[test]"
"""

__version__ = "1.0.0"
