"""Structured logging setup for remex."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

__all__ = ["configure_logging", "get_logger"]


def configure_logging(level: int | str = logging.INFO, json: bool = False, stream: TextIO | None = None) -> None:
    """Route structlog through stdlib logging with a console or JSON renderer.

    Libraries embedding remex may skip this and configure logging themselves;
    remex only emits through structlog loggers named after its modules.

    Args:
        level: Minimum level, as a logging constant or name
        json: Render one JSON object per line instead of colored console output
        stream: Output stream, stderr by default
    """
    if isinstance(level, str):
        level = logging.getLevelNamesMapping()[level.upper()]

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: Any = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    remex_logger = logging.getLogger("remex")
    remex_logger.handlers.clear()
    remex_logger.addHandler(handler)
    remex_logger.setLevel(level)
    remex_logger.propagate = False


def get_logger(name: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger with bound context.

    Args:
        name: Logger name (typically the module name)
        **context: Additional context to bind (e.g., host, remote)

    Returns:
        BoundLogger with context
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
