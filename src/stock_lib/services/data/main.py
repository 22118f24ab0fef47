"""
Stock Analytics Service — FastAPI
=================================
Stateless HTTP service that fetches recent equity prices from Yahoo Finance
and computes time-windowed analytics over them:
  - Recent price snapshots and historical daily closes
  - Percentage growth ranking
  - Weighted multi-window momentum
  - Volatility spike detection
  - Linear trend slopes

Usage (from project root):
    PYTHONPATH=src uvicorn stock_lib.services.data.main:app --host 0.0.0.0 --port 8000

Docker:
    ENV PYTHONPATH="/app/src"
    CMD ["uvicorn", "stock_lib.services.data.main:app", ...]
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from stock_lib import __version__


# ---------------------------------------------------------------------------
# Logging — structured via structlog
# ---------------------------------------------------------------------------
from stock_lib.core.logging_config import (  # noqa: E402  # pylint: disable=wrong-import-position
    get_logger,
    setup_logging,
)

setup_logging(service="stock-api")
logger = get_logger("stock_api")

# ---------------------------------------------------------------------------
# Routers — these live under src/stock_lib/services/data/api/
# ---------------------------------------------------------------------------
from stock_lib.core.price_source import get_price_source  # noqa: E402
from stock_lib.services.data.api.health import router as health_router  # noqa: E402
from stock_lib.services.data.api.metrics import PrometheusMiddleware  # noqa: E402
from stock_lib.services.data.api.metrics import router as metrics_router  # noqa: E402
from stock_lib.services.data.api.rate_limit import setup_rate_limiting  # noqa: E402
from stock_lib.services.data.api.responses import DecimalJSONResponse  # noqa: E402
from stock_lib.services.data.api.stocks import router as stocks_router  # noqa: E402


# ---------------------------------------------------------------------------
# Lifespan: log configuration on startup and shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info("  Stock API starting up (version=%s)", __version__)
    logger.info("=" * 60)

    source = get_price_source()
    logger.info(
        "service_configured",
        price_source=type(source).__name__,
        fetch_max_workers=os.getenv("FETCH_MAX_WORKERS", "8"),
        fetch_timeout_seconds=os.getenv("FETCH_TIMEOUT_SECONDS", "0"),
    )

    logger.info("  Stock API ready, accepting requests")

    yield

    logger.info("Stock API stopped")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Stock Analytics Service",
    description=(
        "Time-windowed equity analytics: recent snapshots, growth, "
        "momentum, volatility spikes and trend slopes over Yahoo Finance prices."
    ),
    version=__version__,
    lifespan=lifespan,
    default_response_class=DecimalJSONResponse,
)

# CORS — allow local dev origins, extend with CORS_ORIGINS (comma-separated)
_cors_origins = [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
    *[o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()],
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics middleware — records request count + latency
app.add_middleware(PrometheusMiddleware)

# slowapi-based per-client rate limits
setup_rate_limiting(app)

# ---------------------------------------------------------------------------
# Register routers
# ---------------------------------------------------------------------------
# Stocks: /stock/{symbol}, /stock/recent, /stock/growth, /stock/momentum, ...
app.include_router(stocks_router, prefix="/stock", tags=["Stocks"])

# Health: /health  (no prefix — top-level)
app.include_router(health_router, tags=["Health"])

# Prometheus metrics: /metrics/prometheus
app.include_router(metrics_router, tags=["Metrics"])


@app.get("/api/info")
def api_info():
    """Service info and links to docs."""
    return {
        "service": "stock-api",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "history": "/stock/{symbol}",
            "recent": "/stock/{symbol}/recent",
            "recent_many": "/stock/recent",
            "growth": "/stock/growth",
            "momentum": "/stock/momentum",
            "volatility_spikes": "/stock/volatility-spikes",
            "trends": "/stock/trends",
            "health": "/health",
            "metrics": "/metrics/prometheus",
        },
    }


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Run directly: python -m stock_lib.services.data.main
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    host = os.getenv("STOCK_API_HOST", "0.0.0.0")
    port = int(os.getenv("STOCK_API_PORT", "8000"))

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
    )
