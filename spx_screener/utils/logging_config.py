"""Logging setup for the SPX screener.

Scan tables go to stdout, so log records always go to stderr (plus an
optional file). Console lines are short; file lines carry the module and
line number.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "spx_screener"

CONSOLE_FORMAT = '%(asctime)s %(levelname)-7s %(name)s: %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty dependencies of the market data providers
THIRD_PARTY_LOGGERS = ('yfinance', 'urllib3', 'peewee')


def resolve_level(log_level: str | int) -> int:
    """Turn 'debug', 'INFO' or a numeric level into a logging level.

    Raises:
        ValueError: If the name is not a logging level
    """
    if isinstance(log_level, int):
        return log_level
    level = logging.getLevelName(str(log_level).strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    return level


def setup_logging(
    log_level: str | int = "WARNING",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    third_party_level: str | int = "ERROR",
) -> logging.Logger:
    """Configure the ``spx_screener`` logger.

    Args:
        log_level: Level for screener modules (DEBUG, INFO, WARNING, ...)
        log_file: Optional path to log file; parent directories are created
        log_format: Overrides the console format
        third_party_level: Level applied to yfinance/urllib3 loggers

    Returns:
        The configured ``spx_screener`` logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG", log_file="logs/screener.log")
        >>> logger.info("Scanning %s for %d DTE", "^SPX", 1)
    """
    level = resolve_level(log_level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Re-running setup (CLI tests, Streamlit reruns) must not stack handlers
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(log_format or CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, mode='a')
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False

    quiet = resolve_level(third_party_level)
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the screener namespace (``get_logger("runner")`` -> ``spx_screener.runner``)."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)
