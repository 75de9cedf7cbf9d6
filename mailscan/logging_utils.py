import json
import logging
import sys
from typing import Optional

from mailscan.config import settings

PACKAGE_LOGGER = "mailscan"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": settings.APP_NAME,
        }
        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log)


def _build_formatter(fmt: str) -> logging.Formatter:
    if fmt.lower() == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    return logging.Formatter(DEFAULT_FORMAT, DATE_FORMAT)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None, force: bool = False) -> logging.Logger:
    """
    Attach a stderr handler to the package logger. Called once by the app
    lifespan and the CLI; modules only call logging.getLogger(__name__).

    The root logger is left alone so uvicorn keeps its own handlers.
    stderr keeps `mailscan analyze` stdout pure JSON.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.handlers and not force:
        return package_logger

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_build_formatter(fmt or settings.LOG_FORMAT))
    package_logger.addHandler(handler)

    level_name = (level or settings.LOG_LEVEL).upper()
    package_logger.setLevel(getattr(logging, level_name, logging.INFO))
    package_logger.propagate = False
    return package_logger
