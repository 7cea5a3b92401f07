"""Logging setup for prematch.

Every module logs through a child of the ``prematch`` logger
(``get_logger("core.hash_matcher")`` -> ``prematch.core.hash_matcher``), so a
single call to :func:`setup_logger` at start-up configures all of them.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from prematch.utils.constants import APP_NAME

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(
    log_level: str = "INFO",
    log_file: str | None = None,
) -> logging.Logger:
    """Configure and return the application logger.

    Safe to call more than once: the console handler is installed once, a
    file handler is added once per distinct path, and the level of every
    handler is reset to *log_level*.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
            Unknown names fall back to INFO.
        log_file: Optional path to a log file. If None, logs only to console.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(APP_NAME)
    level = _resolve_level(log_level)
    logger.setLevel(level)

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).resolve()
        known = {
            Path(h.baseFilename)
            for h in logger.handlers
            if isinstance(h, logging.FileHandler)
        }
        if log_path not in known:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger


def get_logger(module_name: str | None = None) -> logging.Logger:
    """Get a child logger for a specific module.

    Args:
        module_name: Dotted module name (e.g. 'core.correlation_driver').

    Returns:
        Logger instance.
    """
    base = logging.getLogger(APP_NAME)
    if module_name:
        return base.getChild(module_name)
    return base
