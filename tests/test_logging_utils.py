import json
import logging

import pytest

from mailscan.logging_utils import PACKAGE_LOGGER, JsonFormatter, configure_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    for handler in saved[0]:
        logger.removeHandler(handler)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    for handler in saved[0]:
        logger.addHandler(handler)
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_json_formatter_emits_one_object_per_record():
    record = logging.LogRecord(
        name="mailscan.core.risk_scorer",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Scored %s",
        args=("bank.com",),
        exc_info=None,
    )
    line = JsonFormatter().format(record)

    data = json.loads(line)
    assert data["level"] == "WARNING"
    assert data["logger"] == "mailscan.core.risk_scorer"
    assert data["message"] == "Scored bank.com"
    assert data["service"]
    assert "exc_info" not in data


def test_configure_logging_is_idempotent(package_logger):
    configure_logging(level="debug")
    configure_logging(level="error")

    assert len(package_logger.handlers) == 1
    assert package_logger.level == logging.DEBUG
    assert package_logger.propagate is False


def test_force_replaces_handler(package_logger):
    configure_logging(fmt="text")
    first = package_logger.handlers[0]

    configure_logging(level="WARNING", fmt="json", force=True)

    assert package_logger.handlers != [first]
    assert len(package_logger.handlers) == 1
    assert isinstance(package_logger.handlers[0].formatter, JsonFormatter)
    assert package_logger.level == logging.WARNING


def test_root_logger_is_left_alone(package_logger):
    root_handlers = list(logging.getLogger().handlers)
    configure_logging()
    assert logging.getLogger().handlers == root_handlers
