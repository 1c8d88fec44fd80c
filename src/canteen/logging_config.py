"""
Structured logging configuration.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger


def configure_logging(app_name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Configure structured logging for the application.

    The ``canteen`` package logger shares the handler so that service modules
    (which log under ``canteen.*``) end up in the same JSON stream.

    Args:
        app_name: Name of the application
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger(app_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    for name in ("canteen", "canteen_api", "audit"):
        package_logger = logging.getLogger(name)
        if name != app_name and not package_logger.handlers:
            package_logger.setLevel(level)
            package_logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (typically __name__)
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds contextual information to all log messages.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs
