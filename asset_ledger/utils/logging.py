"""Logging configuration for the asset ledger."""

import logging
import sys

import structlog
from rich.console import Console
from rich.logging import RichHandler

from .config import get_settings


def setup_logging() -> None:
    """Set up structured logging with Rich formatting."""
    app = get_settings().app
    level = getattr(logging, app.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if app.development
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    if app.development:
        rich_handler = RichHandler(
            console=Console(stderr=True), show_time=True, show_path=True, markup=True
        )
        logging.basicConfig(level=level, format="%(message)s", handlers=[rich_handler])


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a configured logger."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
