"""Structlog-based logging helpers."""

from __future__ import annotations

import logging
import sys
from typing import Any, Protocol

import structlog


class BrokerLogger(Protocol):
    """Logger surface a caller may hand to the broker.

    Only ``warning`` and ``error`` are required. Levels the logger lacks are
    served by structlog, see :func:`resolve_logger`.
    """

    def warning(self, event: str, **kw: Any) -> Any: ...

    def error(self, event: str, **kw: Any) -> Any: ...


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure structlog for JSON-friendly, trace-aware logs."""

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        timestamper,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.EventRenamer("message"),
    ]

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=shared_processors
        + [
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_LEVELS = ("debug", "info", "warning", "error")


class _FallbackLogger:
    """Routes the levels a custom logger lacks to a structlog logger."""

    def __init__(self, logger: Any, fallback: Any) -> None:
        self._logger = logger
        self._fallback = fallback

    def __getattr__(self, level: str) -> Any:
        method = getattr(self._logger, level, None)
        if method is None and level == "warning":
            method = getattr(self._logger, "warn", None)
        if not callable(method):
            return getattr(self._fallback, level)
        return method


def resolve_logger(logger: BrokerLogger | None, name: str) -> Any:
    """Return a logger answering every level the broker logs at."""

    if logger is None:
        return structlog.get_logger(name)
    if all(callable(getattr(logger, level, None)) for level in _LEVELS):
        return logger
    return _FallbackLogger(logger, structlog.get_logger(name))


def bind_trace(**kwargs: Any) -> None:
    """Attach contextual trace metadata to the current context."""

    structlog.contextvars.bind_contextvars(**kwargs)
