"""Logging setup."""

import logging
import sys

import pytest

from chatgpt_bridge.config import BridgeConfig
from chatgpt_bridge.log import LOGGER_NAME, setup_logging


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in logger.handlers:
        if handler not in saved[0]:
            handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_stderr_by_default():
    logger = setup_logging(BridgeConfig())
    assert len(logger.handlers) == 1
    handler = logger.handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    assert handler.stream is sys.stderr
    assert logger.level == logging.INFO
    assert logger.propagate is False


@pytest.mark.parametrize("level, expected", [
    ("debug", logging.DEBUG),
    ("warn", logging.WARNING),
    ("error", logging.ERROR),
])
def test_levels(level, expected):
    assert setup_logging(BridgeConfig(log_level=level)).level == expected


def test_debug_flag_wins():
    assert setup_logging(BridgeConfig(debug=True, log_level="error")).level == logging.DEBUG


def test_repeat_calls_replace_handlers():
    setup_logging(BridgeConfig())
    logger = setup_logging(BridgeConfig())
    assert len(logger.handlers) == 1


def test_file_logging(tmp_path):
    log_file = tmp_path / "nested" / "chatgpt.log"
    logger = setup_logging(BridgeConfig(log_to_file=True, log_file=str(log_file)))
    logging.getLogger(LOGGER_NAME + ".orchestrator").info("Sending prompt")
    for handler in logger.handlers:
        handler.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "[INFO] Sending prompt" in content
    assert content.startswith("[")
