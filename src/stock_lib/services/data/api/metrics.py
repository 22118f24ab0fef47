"""
Prometheus exposure for the stock API.

``PrometheusMiddleware`` records the HTTP families defined in
``stock_lib.core.metrics``; the price source and analytics record the rest
through that module's ``record_*`` helpers, re-exported here for callers
that already import from the API layer.  Scrape ``GET /metrics/prometheus``.
"""

import re
import time

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response as StarletteResponse

from stock_lib.core.metrics import (  # noqa: F401
    ANALYTICS_REQUESTS_TOTAL,
    ANALYTICS_SYMBOLS_SKIPPED_TOTAL,
    HTTP_REQUEST_DURATION,
    HTTP_REQUESTS_TOTAL,
    PRICE_FETCH_DURATION,
    PRICE_FETCHES_TOTAL,
    get_registry,
    record_analytic,
    record_price_fetch,
    record_symbol_skipped,
)

# ---------------------------------------------------------------------------
# Route labels
# ---------------------------------------------------------------------------

# The POST analytics share the /stock/ prefix with the per-symbol GETs.
_FIXED_STOCK_ROUTES = frozenset(
    {"recent", "growth", "momentum", "volatility-spikes", "trends"}
)
_STOCK_PATH = re.compile(r"^/stock/(?P<segment>[^/]+)(?P<rest>/.*)?$")


def _normalize_path(path: str) -> str:
    """Collapse ticker segments so ``path`` labels stay low-cardinality.

        /stock/AAPL         -> /stock/{symbol}
        /stock/AAPL/recent  -> /stock/{symbol}/recent
        /stock/growth       -> /stock/growth
    """
    if not path:
        return "/"
    match = _STOCK_PATH.match(path)
    if match is None or match["segment"] in _FIXED_STOCK_ROUTES and not match["rest"]:
        return path
    return "/stock/{symbol}" + (match["rest"] or "")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count and time every request under its normalised route label."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> StarletteResponse:
        labels = {"method": request.method, "path": _normalize_path(request.url.path)}
        status = "500"
        started = time.perf_counter()
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            HTTP_REQUEST_DURATION.labels(**labels).observe(time.perf_counter() - started)
            HTTP_REQUESTS_TOTAL.labels(status=status, **labels).inc()


router = APIRouter(tags=["Metrics"])


@router.get("/metrics/prometheus", response_class=Response, summary="Prometheus metrics")
def prometheus_metrics():
    """Text exposition of every metric in the service registry.

    Example ``prometheus.yml`` job::

        - job_name: stock-api
          metrics_path: /metrics/prometheus
          static_configs:
            - targets: ["stock-api:8000"]
    """
    return Response(content=generate_latest(get_registry()), media_type=CONTENT_TYPE_LATEST)
