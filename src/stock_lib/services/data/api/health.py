"""
Health check API router.

Provides:
    GET /health  — Service health check (price source, fetch pool, rate limiting)
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

from stock_lib import __version__
from stock_lib.core.price_source import get_price_source
from stock_lib.services.data.api.rate_limit import (
    PUBLIC_LIMIT,
    get_limiter,
    is_rate_limiting_enabled,
)

logger = logging.getLogger("api.health")

router = APIRouter(tags=["Health"])
limiter = get_limiter()


def _price_source_status() -> dict[str, Any]:
    try:
        source = get_price_source()
        return {"status": "ok", "provider": type(source).__name__}
    except Exception as exc:
        logger.error("Price source unavailable: %s", exc)
        return {"status": "error", "error": str(exc)}


@router.get("/health")
@limiter.limit(PUBLIC_LIMIT)
def health(request: Request):
    """Service health check.

    The service keeps no state between requests, so health reflects only
    whether the price source can be constructed plus static configuration.
    """
    price_source = _price_source_status()

    return {
        "status": "ok" if price_source["status"] == "ok" else "degraded",
        "version": __version__,
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "components": {
            "price_source": price_source,
            "fetch_pool": {
                "max_workers": int(os.getenv("FETCH_MAX_WORKERS", "8")),
                "timeout_seconds": float(os.getenv("FETCH_TIMEOUT_SECONDS", "0")),
            },
            "rate_limiting": {"enabled": is_rate_limiting_enabled()},
        },
    }
