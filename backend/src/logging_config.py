"""
Structured logging setup for diffsense.

Library code only calls ``structlog.get_logger``; applications embedding the
engine call ``configure_logging`` once at startup.
"""

from __future__ import annotations

import logging

import structlog

PACKAGE_LOGGER = "diffsense"


def _resolve_level(verbose: bool, level: str | None) -> int:
    name = (level or ("DEBUG" if verbose else "INFO")).upper()
    resolved = logging.getLevelNamesMapping().get(name)
    if resolved is None:
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logging(verbose: bool = False, level: str | None = None) -> None:
    """
    Configure structlog for the classification engine.

    Verbose mode renders colored console output at DEBUG; otherwise events are
    emitted as JSON lines at INFO. ``level`` overrides the level name and only
    applies to the ``diffsense`` loggers, leaving the host's root level alone.
    """
    numeric_level = _resolve_level(verbose, level)
    renderer = structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s")
    logging.getLogger(PACKAGE_LOGGER).setLevel(numeric_level)
