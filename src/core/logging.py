"""Structured logging via structlog — JSON off-TTY, console on a terminal."""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(*, level: int = logging.INFO, json: bool | None = None) -> None:
    """Configure structlog once at process startup.

    ``json=None`` picks the renderer from the TTY; pass ``True`` to force
    JSON lines (e.g. when the rebalancer runs under a scheduler).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    use_json = not sys.stderr.isatty() if json is None else json
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=shared_processors,
    )

    # stdlib root logger, so requests/urllib3 records share the format
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
