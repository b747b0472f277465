"""
bootstrap/log_setup.py - Logging setup for engine hosts

The engine itself only writes to module-level loggers under "dynparams.*";
hosts call setup_logging() once to decide where those lines go.
"""

from __future__ import annotations
from typing import Optional, TYPE_CHECKING
import json
import logging
import sys

if TYPE_CHECKING:
    from .config import LoggingConfig

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        parameter = getattr(record, "parameter", None)
        if parameter is not None:
            payload["parameter"] = parameter
        return json.dumps(payload)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = False,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Configure the "dynparams" logger hierarchy.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        json_format: Use JSON format for logs
        fmt: Format string for plain-text logs

    Returns:
        The configured "dynparams" logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = JSONFormatter() if json_format else logging.Formatter(fmt)

    package_logger = logging.getLogger("dynparams")
    package_logger.setLevel(log_level)

    # Replace handlers from a previous call
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    package_logger.addHandler(console_handler)

    # File handler
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        package_logger.addHandler(file_handler)

    return package_logger


def setup_logging_from_config(config: "LoggingConfig") -> logging.Logger:
    """Configure logging from a LoggingConfig."""
    return setup_logging(
        level=config.level,
        log_file=config.log_file,
        json_format=config.json_logs,
        fmt=config.format,
    )
