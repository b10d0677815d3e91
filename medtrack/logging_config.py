"""Structured logging for the API, the CLI and the storage backends.

Events are snake_case names with keyword fields. Request-scoped values
(request id, caller, case) are held in structlog context variables and
merged into every event logged while the request is handled.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog

from medtrack.config import get_settings

# Chatty third-party loggers, kept at WARNING unless medtrack itself logs more quietly
LIBRARY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "uvicorn.access")


def _log_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _processors(json_output: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return processors


def setup_logging() -> None:
    """Configure structlog and the standard library root logger from settings.

    Production writes one JSON object per line; other environments use the
    console renderer.
    """
    settings = get_settings()
    level = _log_level(settings.medtrack_log_level)

    structlog.configure(
        processors=_processors(settings.medtrack_env == "production"),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a named structured logger."""
    return structlog.get_logger(name)


def bind_request_context(request_id: str, user_id: Optional[str] = None, **values: Any) -> None:
    """Start a fresh logging context for one request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, user_id=user_id or "-", **values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
