"""Structured logging for provisioning runs and deploy actions.

Console output for interactive registrations, JSON when the listener's
journal is shipped elsewhere. Records go to stderr; stdout carries the CLI's
status lines and, inside a deploy action, nothing at all.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator

import structlog


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog and route stdlib logging through the same stream.

    Args:
        json_output: Render JSON lines instead of the coloured console format.
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)


@contextmanager
def hook_context(app_id: str, **extra: str) -> Iterator[None]:
    """Attach `hook_id` (and any `extra` keys) to every record logged inside."""
    with structlog.contextvars.bound_contextvars(hook_id=app_id, **extra):
        yield


def get_logger(name: str) -> structlog.BoundLogger:
    """Logger bound with the module name (pass __name__)."""
    return structlog.get_logger(name)
