"""
Per-client rate limiting (slowapi).

Three buckets, each a slowapi limit string read from the environment:

    PUBLIC_LIMIT   RATE_LIMIT_PUBLIC   (60/minute)  health probe
    DEFAULT_LIMIT  RATE_LIMIT_DEFAULT  (30/minute)  single-window analytics, raw reads
    HEAVY_LIMIT    RATE_LIMIT_HEAVY    (10/minute)  momentum and volatility spikes,
                                                    which fan out symbols × windows

``RATE_LIMIT_ENABLED=0`` keeps the limiter wired in but swaps every bucket
for a ceiling no client will reach.  ``RATE_LIMIT_STORAGE`` selects the
slowapi/limits storage backend (``memory://`` by default; point several
replicas at one ``redis://`` URI to share counters).

Routers decorate handlers with the bucket they belong to; the handler
must accept ``request: Request``::

    limiter = get_limiter()

    @router.post("/momentum")
    @limiter.limit(HEAVY_LIMIT)
    def get_momentum(request: Request, body: StockMomentumRequest): ...

and ``main.py`` calls ``setup_rate_limiting(app)`` once.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

logger = logging.getLogger("api.rate_limit")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


_ENABLED = _env_flag("RATE_LIMIT_ENABLED", "1")
_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE") or "memory://"

# Ceiling used for every bucket while limiting is switched off.
_DISABLED_LIMIT = "999999/second"

_CONFIGURED = {
    "public": os.getenv("RATE_LIMIT_PUBLIC", "60/minute"),
    "default": os.getenv("RATE_LIMIT_DEFAULT", "30/minute"),
    "heavy": os.getenv("RATE_LIMIT_HEAVY", "10/minute"),
}


def _get_effective_limit(configured: str) -> str:
    return configured if _ENABLED else _DISABLED_LIMIT


PUBLIC_LIMIT = _get_effective_limit(_CONFIGURED["public"])
DEFAULT_LIMIT = _get_effective_limit(_CONFIGURED["default"])
HEAVY_LIMIT = _get_effective_limit(_CONFIGURED["heavy"])


def _client_key_func(request: Request) -> str:
    """Bucket key: the first ``X-Forwarded-For`` hop behind a proxy, else the peer address."""
    hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",")]
    client = next((h for h in hops if h), None) or get_remote_address(request)
    return f"ip:{client}"


_limiter: Optional[Limiter] = None


def get_limiter() -> Limiter:
    """Process-wide ``Limiter``; routers decorate with it at import time."""
    global _limiter
    if _limiter is None:
        _limiter = Limiter(
            key_func=_client_key_func,
            default_limits=[DEFAULT_LIMIT],
            storage_uri=_STORAGE_URI,
            strategy="fixed-window",
        )
        logger.info("Created rate limiter (storage=%s)", _STORAGE_URI)
    return _limiter


def reset_limiter() -> None:
    """Forget the current limiter so the next ``get_limiter()`` builds a new one."""
    global _limiter
    _limiter = None


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with a JSON body and ``Retry-After`` instead of slowapi's plain text."""
    limit = str(exc.detail or "unknown")
    logger.warning(
        "Rate limit %s hit by %s on %s %s",
        limit,
        _client_key_func(request),
        request.method,
        request.url.path,
    )
    return JSONResponse(
        {
            "error": "rate_limit_exceeded",
            "detail": f"Rate limit exceeded: {limit}",
            "retry_after": limit,
        },
        status_code=429,
        headers={"Retry-After": limit},
    )


def setup_rate_limiting(app: FastAPI) -> Limiter:
    """Attach the limiter to ``app.state`` and register the 429 handler."""
    limiter = get_limiter()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    logger.info(
        "Rate limiting %s: public=%s default=%s heavy=%s",
        "enabled" if _ENABLED else "disabled",
        PUBLIC_LIMIT,
        DEFAULT_LIMIT,
        HEAVY_LIMIT,
    )
    return limiter


def is_rate_limiting_enabled() -> bool:
    return _ENABLED
