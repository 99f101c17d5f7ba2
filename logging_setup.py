"""Structured logging setup."""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(mode: str = "production") -> logging.Logger:
    """Configure structlog and the stdlib root logger.

    ``development`` renders everything from DEBUG up to the console;
    ``production`` keeps the terminal quiet and shows WARNING and above.
    """
    level = logging.DEBUG if mode == "development" else logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    processors = [
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]
    if mode == "development":
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for logger_name in ("websockets",):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return root_logger
