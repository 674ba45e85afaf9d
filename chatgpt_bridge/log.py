"""Logging setup. stdout belongs to the tool protocol, so logs go to stderr or a file."""

import logging
import os
import sys

from .config import BridgeConfig

LOGGER_NAME = "chatgpt_bridge"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(config: BridgeConfig) -> logging.Logger:
    """Configure the package logger from config and return it.

    Safe to call more than once: previously installed handlers are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if config.log_to_file:
        log_dir = os.path.dirname(os.path.abspath(config.log_file))
        os.makedirs(log_dir, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if config.debug else _LEVELS.get(config.log_level, logging.INFO))
    logger.propagate = False
    return logger
