"""Structured logging for opswatch.

Every module logs through ``get_logger(component)``.  ``setup_logging`` is
called once by the app: JSON lines by default, or a human-readable console
renderer when ``OPSWATCH_LOG_FORMAT=console`` (or ``auto`` on a terminal).
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

LOG_FORMATS = ("json", "console", "auto")


def _renderer(fmt: str, stream: TextIO) -> structlog.types.Processor:
    if fmt == "console" or (fmt == "auto" and stream.isatty()):
        return structlog.dev.ConsoleRenderer(colors=stream.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(level: str = "info", fmt: str = "json", stream: TextIO | None = None) -> None:
    """Configure structlog to write one event per line to *stream* (stderr)."""
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {fmt}. Must be one of {LOG_FORMATS}")
    out = stream if stream is not None else sys.stderr
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            _renderer(fmt, out),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger bound with ``component``."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
