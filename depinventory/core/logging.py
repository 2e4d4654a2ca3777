"""Structured logging for the CLI: structlog events rendered through stdlib handlers."""

from __future__ import annotations

import logging
import os
import sys

import structlog

_NOISY_LOGGERS = ("asyncio",)


def _renderer(fmt: str) -> list[structlog.types.Processor]:
    if fmt == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    # ConsoleRenderer prints tracebacks itself
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route structlog and stdlib logging to a single stderr handler.

    Explicit arguments win over DEPINVENTORY_LOG_LEVEL (default INFO) and
    DEPINVENTORY_LOG_FORMAT (``console`` or ``json``).  stdout is left for
    the run summary.
    """
    log_level = (level or os.environ.get("DEPINVENTORY_LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.environ.get("DEPINVENTORY_LOG_FORMAT", "console")).lower()

    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(log_level)
    logging.getLogger("depinventory").setLevel(log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def shutdown_logging() -> None:
    """Flush and close every handler; call once at process end."""
    logging.shutdown()
