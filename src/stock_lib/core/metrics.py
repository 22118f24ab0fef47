"""
Metric families shared by the analytics core and the HTTP layer.

Everything lives on a private ``CollectorRegistry`` so repeated imports in
tests never collide with ``prometheus_client``'s global registry:

    http_requests_total{method,path,status}              every HTTP response
    http_request_duration_seconds{method,path}           handler latency
    price_fetches_total{outcome}                         ok | empty | error
    price_fetch_duration_seconds                         one provider round-trip
    analytics_requests_total{analytic}                   snapshot, growth, momentum, ...
    analytics_symbols_skipped_total{analytic,reason}     symbols left out of a result

Only ``prometheus_client`` is imported here; the middleware and scrape
route that expose these live in ``services.data.api.metrics``.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram

_registry = CollectorRegistry()

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "HTTP responses served, by method, route and status code",
    labelnames=["method", "path", "status"],
    registry=_registry,
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Wall time from request received to response ready",
    labelnames=["method", "path"],
    # Analytics wait on N concurrent provider calls, so the tail runs long.
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    registry=_registry,
)

PRICE_FETCHES_TOTAL = Counter(
    "price_fetches_total",
    "Price-source fetches by outcome",
    labelnames=["outcome"],
    registry=_registry,
)

PRICE_FETCH_DURATION = Histogram(
    "price_fetch_duration_seconds",
    "Latency of a single price-source fetch",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=_registry,
)

ANALYTICS_REQUESTS_TOTAL = Counter(
    "analytics_requests_total",
    "Analytic invocations",
    labelnames=["analytic"],
    registry=_registry,
)

ANALYTICS_SYMBOLS_SKIPPED_TOTAL = Counter(
    "analytics_symbols_skipped_total",
    "Symbols excluded from an analytic's results",
    labelnames=["analytic", "reason"],
    registry=_registry,
)


def record_price_fetch(outcome: str, duration_seconds: float) -> None:
    PRICE_FETCHES_TOTAL.labels(outcome=outcome).inc()
    PRICE_FETCH_DURATION.observe(duration_seconds)


def record_analytic(analytic: str) -> None:
    ANALYTICS_REQUESTS_TOTAL.labels(analytic=analytic).inc()


def record_symbol_skipped(analytic: str, reason: str) -> None:
    ANALYTICS_SYMBOLS_SKIPPED_TOTAL.labels(analytic=analytic, reason=reason).inc()


def get_registry() -> CollectorRegistry:
    return _registry
