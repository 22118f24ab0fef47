"""
Tests for Prometheus Metrics and Rate Limiting
==============================================

Covers:

**Prometheus Metrics:**
  - Metric definitions: all expected metrics exist in registry
  - Record helpers: price fetches, analytic invocations, skipped symbols
  - Path normalization: symbol segments collapse, fixed analytics paths stay
  - PrometheusMiddleware: instruments requests automatically
  - /metrics/prometheus endpoint: returns Prometheus exposition format

**Rate Limiting:**
  - Client key derivation: X-Forwarded-For, or remote address
  - Rate limit handler: returns structured 429 JSON
  - setup_rate_limiting: installs limiter on app
  - Limiter singleton: get_limiter() returns same instance; reset_limiter() clears it
  - Integration: rate-limited endpoint returns 429 after exceeding limit
"""

import json
import os
from unittest.mock import MagicMock

import pytest

# Disable rate limiting for most tests unless explicitly testing it
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")


# ===========================================================================
# SECTION 1: Prometheus Metrics — Unit Tests
# ===========================================================================


class TestMetricDefinitions:
    """Verify all expected metrics are registered."""

    @pytest.mark.parametrize(
        "name",
        [
            "http_requests_total",
            "http_request_duration_seconds",
            "price_fetches_total",
            "price_fetch_duration_seconds",
            "analytics_requests_total",
            "analytics_symbols_skipped_total",
        ],
    )
    def test_metric_registered(self, name):
        from prometheus_client import generate_latest

        from stock_lib.services.data.api.metrics import get_registry

        # Labelled metrics only appear once observed; HELP lines always do.
        output = generate_latest(get_registry()).decode()
        assert f"# HELP {name}" in output

    def test_registry_is_not_global_default(self):
        from prometheus_client import REGISTRY

        from stock_lib.services.data.api.metrics import get_registry

        assert get_registry() is not REGISTRY


class TestMetricRecordHelpers:
    """Test the helper functions that record metric values."""

    def test_record_price_fetch_ok(self):
        from stock_lib.services.data.api.metrics import (
            PRICE_FETCHES_TOTAL,
            record_price_fetch,
        )

        before = PRICE_FETCHES_TOTAL.labels(outcome="ok")._value.get()
        record_price_fetch("ok", 0.12)
        assert PRICE_FETCHES_TOTAL.labels(outcome="ok")._value.get() == before + 1

    def test_record_price_fetch_observes_duration(self):
        from stock_lib.services.data.api.metrics import (
            PRICE_FETCH_DURATION,
            record_price_fetch,
        )

        before = PRICE_FETCH_DURATION._sum.get()
        record_price_fetch("empty", 0.5)
        assert PRICE_FETCH_DURATION._sum.get() == pytest.approx(before + 0.5)

    def test_record_analytic(self):
        from stock_lib.services.data.api.metrics import (
            ANALYTICS_REQUESTS_TOTAL,
            record_analytic,
        )

        before = ANALYTICS_REQUESTS_TOTAL.labels(analytic="growth")._value.get()
        record_analytic("growth")
        after = ANALYTICS_REQUESTS_TOTAL.labels(analytic="growth")._value.get()
        assert after == before + 1

    def test_record_symbol_skipped(self):
        from stock_lib.services.data.api.metrics import (
            ANALYTICS_SYMBOLS_SKIPPED_TOTAL,
            record_symbol_skipped,
        )

        labels = {"analytic": "volatility", "reason": "flat_baseline"}
        before = ANALYTICS_SYMBOLS_SKIPPED_TOTAL.labels(**labels)._value.get()
        record_symbol_skipped("volatility", "flat_baseline")
        after = ANALYTICS_SYMBOLS_SKIPPED_TOTAL.labels(**labels)._value.get()
        assert after == before + 1

    def test_analytics_record_their_invocation(self):
        from conftest import NOW, FakePriceSource, make_series
        from stock_lib.analysis.growth import growth
        from stock_lib.services.data.api.metrics import (
            ANALYTICS_REQUESTS_TOTAL,
            ANALYTICS_SYMBOLS_SKIPPED_TOTAL,
        )

        source = FakePriceSource({"AAA": make_series("AAA", [1])})
        calls_before = ANALYTICS_REQUESTS_TOTAL.labels(analytic="growth")._value.get()
        skipped = ANALYTICS_SYMBOLS_SKIPPED_TOTAL.labels(
            analytic="growth", reason="insufficient_data"
        )
        skipped_before = skipped._value.get()

        growth(["AAA"], 5, source=source, now=NOW)

        assert (
            ANALYTICS_REQUESTS_TOTAL.labels(analytic="growth")._value.get()
            == calls_before + 1
        )
        assert skipped._value.get() == skipped_before + 1


class TestCoreMetricsIsolation:
    """Analytics and the price source record metrics without the web stack."""

    def test_api_module_reexports_core_families(self):
        from stock_lib.core import metrics as core_metrics
        from stock_lib.services.data.api import metrics as api_metrics

        assert api_metrics.HTTP_REQUESTS_TOTAL is core_metrics.HTTP_REQUESTS_TOTAL
        assert api_metrics.record_analytic is core_metrics.record_analytic
        assert api_metrics.get_registry() is core_metrics.get_registry()

    def test_analytics_import_without_fastapi(self):
        import subprocess
        import sys
        from pathlib import Path

        import stock_lib

        src_dir = str(Path(stock_lib.__file__).resolve().parents[1])
        script = (
            "import sys\n"
            "import stock_lib.analysis.growth, stock_lib.analysis.momentum\n"
            "import stock_lib.analysis.volatility, stock_lib.analysis.snapshot\n"
            "import stock_lib.analysis.trend, stock_lib.core.price_source\n"
            "print(sorted(m for m in ('fastapi', 'starlette') if m in sys.modules))\n"
        )
        env = {**os.environ, "PYTHONPATH": src_dir}
        out = subprocess.run(
            [sys.executable, "-c", script], capture_output=True, text=True, env=env, check=True
        )
        assert out.stdout.strip() == "[]"


class TestPathNormalization:
    """Test _normalize_path reduces cardinality."""

    def test_empty_path(self):
        from stock_lib.services.data.api.metrics import _normalize_path

        assert _normalize_path("") == "/"

    def test_health_unchanged(self):
        from stock_lib.services.data.api.metrics import _normalize_path

        assert _normalize_path("/health") == "/health"

    def test_symbol_normalized(self):
        from stock_lib.services.data.api.metrics import _normalize_path

        assert _normalize_path("/stock/AAPL") == "/stock/{symbol}"

    def test_symbol_recent_normalized(self):
        from stock_lib.services.data.api.metrics import _normalize_path

        assert _normalize_path("/stock/MSFT/recent") == "/stock/{symbol}/recent"

    @pytest.mark.parametrize(
        "path",
        [
            "/stock/recent",
            "/stock/growth",
            "/stock/momentum",
            "/stock/volatility-spikes",
            "/stock/trends",
        ],
    )
    def test_analytics_paths_unchanged(self, path):
        from stock_lib.services.data.api.metrics import _normalize_path

        assert _normalize_path(path) == path

    def test_non_matching_path_unchanged(self):
        from stock_lib.services.data.api.metrics import _normalize_path

        assert _normalize_path("/api/info") == "/api/info"


# ===========================================================================
# SECTION 2: Prometheus Middleware — Integration Tests
# ===========================================================================


# ===========================================================================
# SECTION 2: Prometheus Middleware and scrape endpoint
# ===========================================================================


def _count(method: str, path: str, status: str) -> float:
    from stock_lib.services.data.api.metrics import HTTP_REQUESTS_TOTAL

    return HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=status)._value.get()


@pytest.fixture()
def instrumented_client():
    """Stub stock routes behind PrometheusMiddleware, plus the scrape router."""
    from fastapi import FastAPI
    from fastapi.testclient import TestClient

    from stock_lib.services.data.api.metrics import PrometheusMiddleware
    from stock_lib.services.data.api.metrics import router as metrics_router

    stub = FastAPI()
    stub.add_middleware(PrometheusMiddleware)
    stub.include_router(metrics_router)

    @stub.post("/stock/growth")
    def stub_growth():
        return []

    @stub.get("/stock/{symbol}/recent")
    def stub_recent(symbol: str):
        return [{"symbol": symbol}]

    @stub.get("/stock/{symbol}")
    def stub_series(symbol: str):
        if symbol == "CRASH":
            raise RuntimeError("provider exploded")
        return [{"symbol": symbol}]

    return TestClient(stub, raise_server_exceptions=False)


class TestPrometheusMiddleware:
    def test_counts_fixed_analytics_route(self, instrumented_client):
        before = _count("POST", "/stock/growth", "200")
        assert instrumented_client.post("/stock/growth").status_code == 200
        assert _count("POST", "/stock/growth", "200") == before + 1

    def test_tickers_share_one_series(self, instrumented_client):
        before = _count("GET", "/stock/{symbol}", "200")
        for ticker in ("AAPL", "MSFT", "NVDA"):
            instrumented_client.get(f"/stock/{ticker}")
        assert _count("GET", "/stock/{symbol}", "200") == before + 3

    def test_recent_subpath_keeps_suffix(self, instrumented_client):
        before = _count("GET", "/stock/{symbol}/recent", "200")
        instrumented_client.get("/stock/TSLA/recent")
        assert _count("GET", "/stock/{symbol}/recent", "200") == before + 1

    def test_unhandled_error_counted_as_500(self, instrumented_client):
        before = _count("GET", "/stock/{symbol}", "500")
        assert instrumented_client.get("/stock/CRASH").status_code == 500
        assert _count("GET", "/stock/{symbol}", "500") == before + 1

    def test_duration_observed(self, instrumented_client):
        from stock_lib.services.data.api.metrics import HTTP_REQUEST_DURATION

        hist = HTTP_REQUEST_DURATION.labels(method="POST", path="/stock/growth")
        before = hist._sum.get()
        instrumented_client.post("/stock/growth")
        assert hist._sum.get() > before


class TestPrometheusEndpoint:
    def test_scrape_is_text_exposition(self, instrumented_client):
        resp = instrumented_client.get("/metrics/prometheus")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")

    def test_scrape_reflects_earlier_traffic(self, instrumented_client):
        instrumented_client.get("/stock/AMZN")
        body = instrumented_client.get("/metrics/prometheus").text
        assert 'path="/stock/{symbol}"' in body
        assert "price_fetches_total" in body

    def test_repeated_scrapes_stay_healthy(self, instrumented_client):
        codes = {instrumented_client.get("/metrics/prometheus").status_code for _ in range(4)}
        assert codes == {200}


# ===========================================================================
# SECTION 3: Rate Limiting — Unit Tests
# ===========================================================================


def _fake_request(*, forwarded: str | None = None, peer: str = "127.0.0.1") -> MagicMock:
    request = MagicMock()
    request.headers = {"x-forwarded-for": forwarded} if forwarded is not None else {}
    request.client.host = peer
    request.method = "POST"
    request.url.path = "/stock/momentum"
    return request


class TestClientKeyFunction:
    @pytest.mark.parametrize(
        "forwarded,peer,expected",
        [
            ("198.51.100.7, 10.1.1.1", "172.18.0.2", "ip:198.51.100.7"),
            ("203.0.113.50", "172.18.0.2", "ip:203.0.113.50"),
            (" , 198.51.100.9", "172.18.0.2", "ip:198.51.100.9"),
            (None, "192.0.2.44", "ip:192.0.2.44"),
            ("", "192.0.2.45", "ip:192.0.2.45"),
        ],
    )
    def test_key(self, forwarded, peer, expected):
        from stock_lib.services.data.api.rate_limit import _client_key_func

        assert _client_key_func(_fake_request(forwarded=forwarded, peer=peer)) == expected


class TestLimiterLifecycle:
    def test_limiter_is_shared(self):
        from stock_lib.services.data.api.rate_limit import get_limiter

        assert get_limiter() is get_limiter()

    def test_reset_forces_rebuild(self):
        from stock_lib.services.data.api.rate_limit import get_limiter, reset_limiter

        original = get_limiter()
        reset_limiter()
        try:
            assert get_limiter() is not original
        finally:
            reset_limiter()

    def test_limits_relaxed_when_disabled(self):
        from stock_lib.services.data.api.rate_limit import (
            _DISABLED_LIMIT,
            DEFAULT_LIMIT,
            HEAVY_LIMIT,
            PUBLIC_LIMIT,
            is_rate_limiting_enabled,
        )

        assert not is_rate_limiting_enabled()
        assert {PUBLIC_LIMIT, DEFAULT_LIMIT, HEAVY_LIMIT} == {_DISABLED_LIMIT}

    def test_setup_wires_app_state(self):
        from fastapi import FastAPI
        from slowapi.errors import RateLimitExceeded

        from stock_lib.services.data.api.rate_limit import get_limiter, setup_rate_limiting

        api = FastAPI()
        assert setup_rate_limiting(api) is api.state.limiter is get_limiter()
        assert RateLimitExceeded in api.exception_handlers


class TestRateLimitHandler:
    @pytest.fixture()
    def response(self):
        from slowapi.errors import RateLimitExceeded

        from stock_lib.services.data.api.rate_limit import _rate_limit_handler

        limit = MagicMock()
        limit.error_message = None
        limit.limit = "10 per 1 minute"
        return _rate_limit_handler(_fake_request(), RateLimitExceeded(limit))

    def test_status_and_header(self, response):
        assert response.status_code == 429
        assert response.headers["retry-after"] == "10 per 1 minute"

    def test_body_shape(self, response):
        body = json.loads(response.body)
        assert body == {
            "error": "rate_limit_exceeded",
            "detail": "Rate limit exceeded: 10 per 1 minute",
            "retry_after": "10 per 1 minute",
        }


# ===========================================================================
# SECTION 4: Rate Limiting — end to end
# ===========================================================================


class TestRateLimitIntegration:
    BUDGET = 3

    @pytest.fixture()
    def throttled(self):
        """A momentum-shaped route with a tiny dedicated budget."""
        from fastapi import FastAPI, Request
        from fastapi.testclient import TestClient
        from slowapi import Limiter
        from slowapi.errors import RateLimitExceeded

        from stock_lib.services.data.api.metrics import PrometheusMiddleware
        from stock_lib.services.data.api.rate_limit import (
            _client_key_func,
            _rate_limit_handler,
        )

        limiter = Limiter(key_func=_client_key_func, storage_uri="memory://")
        api = FastAPI()
        api.add_middleware(PrometheusMiddleware)
        api.state.limiter = limiter
        api.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]

        @api.post("/stock/momentum")
        @limiter.limit(f"{self.BUDGET}/minute")
        def momentum(request: Request):
            return []

        return TestClient(api)

    def _burn(self, client, **headers):
        return [client.post("/stock/momentum", headers=headers).status_code for _ in range(self.BUDGET)]

    def test_budget_then_429(self, throttled):
        assert self._burn(throttled) == [200] * self.BUDGET
        blocked = throttled.post("/stock/momentum")
        assert blocked.status_code == 429
        assert blocked.json()["error"] == "rate_limit_exceeded"

    def test_forwarded_clients_have_own_budget(self, throttled):
        self._burn(throttled, **{"X-Forwarded-For": "198.51.100.1"})
        first = throttled.post("/stock/momentum", headers={"X-Forwarded-For": "198.51.100.1"})
        second = throttled.post("/stock/momentum", headers={"X-Forwarded-For": "198.51.100.2"})
        assert (first.status_code, second.status_code) == (429, 200)

    def test_rejections_counted_in_metrics(self, throttled):
        self._burn(throttled)
        before = _count("POST", "/stock/momentum", "429")
        throttled.post("/stock/momentum")
        assert _count("POST", "/stock/momentum", "429") == before + 1
