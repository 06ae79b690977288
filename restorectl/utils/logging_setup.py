"""Logging configuration for the CLI process.

Library modules only call ``logging.getLogger(__name__)``; the CLI wires
handlers once at startup from the ``logging`` config section.
"""

import json
import logging
import sys
from pathlib import Path

from restorectl.cli.config import LoggingConfig

ROOT_LOGGER = "restorectl"
TEXT_FORMAT = "%(levelname)s:%(name)s:%(message)s"


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(config: LoggingConfig, verbose: bool = False) -> logging.Logger:
    """Attach handlers to the ``restorectl`` logger.

    Args:
        config: Logging section of the loaded configuration.
        verbose: Force DEBUG regardless of the configured level.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter
    if config.format == "json":
        formatter = JsonLineFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if verbose else config.level.upper())
    logger.propagate = False
    return logger
