"""Logging configuration for the consumer."""

import json
import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from ams_consumer.config import Settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class TextFormatter(logging.Formatter):
    """Plain-text formatter that appends ``log_event`` details as compact JSON."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        details = getattr(record, "details", None)
        if details:
            line = f"{line} - {json.dumps(details, default=str, separators=(',', ':'))}"
        return line


def setup_logging(settings: Settings) -> None:
    """Configure process logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        formatter = jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s",
            timestamp=True,
        )
    else:
        formatter = TextFormatter(TEXT_FORMAT)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Lambda reuses the process across invocations; don't stack handlers
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # Set log levels for third-party libraries
    for name in ("boto3", "botocore", "urllib3", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


def log_event(logger: logging.Logger, level: int, step: str, **details: Any) -> None:
    """Log a pipeline step with structured details."""
    logger.log(level, step, extra={"details": details})
