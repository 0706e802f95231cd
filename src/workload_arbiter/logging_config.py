"""
Logging setup for the CLI and API entry points.

Library code never configures logging; it only asks for named loggers.
Entry points call configure_logging() once.
"""

import json
import logging
from datetime import datetime

PACKAGE_LOGGER = "workload_arbiter"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str | int = "INFO", json_output: bool = False) -> logging.Logger:
    """Install a single stream handler on the package logger."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level if isinstance(level, int) else level.upper())
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(DEFAULT_FORMAT))
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger
