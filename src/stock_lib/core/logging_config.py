"""
Structured logging for the stock analytics service.

One call to ``setup_logging()`` at process start wires ``structlog`` and
the stdlib ``logging`` tree to a single stderr handler.  Library modules
keep using ``logging.getLogger("analysis.growth")`` and friends; their
records are rendered by the same structlog formatter as events emitted
through ``get_logger()``.

    from stock_lib.core.logging_config import setup_logging, get_logger

    setup_logging(service="stock-api")
    log = get_logger("stock_api")
    log.info("growth_computed", symbols=3, window_minutes=5)

Environment:
    LOG_LEVEL   — root level name (default ``INFO``)
    LOG_FORMAT  — ``console`` (coloured when attached to a TTY) or ``json``
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

# Third-party loggers that are chatty at INFO (per-request access lines,
# per-download yfinance chatter, connection-pool debug).
_NOISY_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "urllib3",
    "yfinance",
    "peewee",
)


def _pre_chain() -> list[structlog.types.Processor]:
    """Processors applied to every event, structlog-native or stdlib."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _install_root_handler(formatter: logging.Formatter, level: int) -> None:
    """Replace whatever handlers the root logger has with one stderr handler."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(
    *,
    service: str = "stock-api",
    level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Configure process-wide logging.

    ``level`` and ``log_format`` override ``LOG_LEVEL`` / ``LOG_FORMAT``.
    Safe to call more than once; each call replaces the previous setup and
    rebinds ``service`` on every subsequent event.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt = (log_format or os.getenv("LOG_FORMAT", "console")).lower()

    pre_chain = _pre_chain()
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(fmt),
        ],
    )
    _install_root_handler(formatter, getattr(logging, level_name, logging.INFO))

    structlog.configure(
        processors=pre_chain
        + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service)


def get_logger(name: str | None = None, **context: Any) -> structlog.stdlib.BoundLogger:
    """Structured logger for *name*, pre-bound with any *context* key/values."""
    log = structlog.get_logger(name)
    return log.bind(**context) if context else log
