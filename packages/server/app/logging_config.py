"""
Centralized logging configuration for the slashgate server package.

Format: LEVEL: timestamp : package.file.function.lineno : log-line
Example: INFO: 2024-02-17 13:01:23 : server.slack.pairing.upsert_pairing_request.131 : slack pairing: created request for U024BE7LH

Usage:
    from app.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "asyncio")


def _location(record: logging.LogRecord) -> str:
    """'app.slack.pipeline' + handle + 131 -> 'server.slack.pipeline.handle.131'."""
    module = record.name
    if module == "app":
        module = "server"
    elif module.startswith("app."):
        module = "server." + module[4:]

    filename = record.filename[:-3] if record.filename.endswith(".py") else record.filename
    # If module already ends with filename, don't duplicate
    if module.endswith(f".{filename}"):
        return f"{module}.{record.funcName}.{record.lineno}"
    return f"{module}.{filename}.{record.funcName}.{record.lineno}"


class SlashgateFormatter(logging.Formatter):
    """LEVEL: timestamp : location : message (UTC timestamps, tracebacks appended)."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{record.levelname}: {timestamp} : {_location(record)} : {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: Optional[int] = None, stream: Optional[object] = None) -> None:
    """
    Configure root logging for the server. Call once at startup (main.py lifespan).

    Args:
        level: Logging level (default: from LOG_LEVEL env var, fallback INFO)
        stream: Output stream (default: sys.stdout)
    """
    if level is None:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        level = getattr(logging, env_level, logging.INFO)
    if stream is None:
        stream = sys.stdout

    handler = logging.StreamHandler(stream)
    handler.setFormatter(SlashgateFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    app_logger = logging.getLogger("app")
    app_logger.setLevel(level)
    app_logger.propagate = True

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module (pass __name__)."""
    return logging.getLogger(name)
