"""structlog setup shared by the API and the CLI."""

import logging
import sys

import structlog

from instaflix.config import settings


def _stderr_logger(*args) -> structlog.PrintLogger:
    # Looked up per logger so swapped streams (pytest, CliRunner) are honoured.
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: int = logging.INFO) -> None:
    """Route structlog output to stderr.

    JSON lines outside development, a colourless console renderer otherwise.
    Request IDs bound by RequestIdMiddleware are merged in from contextvars.
    """
    if settings.environment == "development":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
