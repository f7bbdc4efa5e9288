"""Logging configuration.

Every record carries a ``session_id`` attribute taken from the current
context, so log lines from the endpoint, the agent loop, the tools and the
clients can be correlated per chat session without threading the id through
each call.
"""

import logging
import os
import sys
from contextvars import ContextVar

from pydantic import BaseModel

NO_SESSION = "-"

session_id_var: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(session_id)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


class SessionContextFilter(logging.Filter):
    """Stamp records with the session id bound to the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = session_id_var.get()
        return True


def bind_session_id(session_id: str) -> None:
    """Bind ``session_id`` to log records emitted from the current context.

    Each request and each streaming response runs in its own task, so the
    binding ends with the task.
    """
    session_id_var.set(session_id or NO_SESSION)


def get_session_id() -> str:
    return session_id_var.get()


def _add_session_filter(target: logging.Logger | logging.Handler) -> None:
    if not any(isinstance(f, SessionContextFilter) for f in target.filters):
        target.addFilter(SessionContextFilter())


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging configuration for the application."""
    if config is None:
        config = LogConfig()

    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,  # Override any existing configuration
    )

    # Records from third-party loggers reach the root handler without passing our loggers
    for handler in logging.getLogger().handlers:
        _add_session_filter(handler)

    # Provider SDK and HTTP client logs are noisy at INFO
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Records from the returned logger carry the bound session id.

    Args:
        name: Module name (typically __name__)
        level: Explicit level; falls back to the LOG_LEVEL environment variable

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level if level else os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())
    _add_session_filter(logger)

    return logger
