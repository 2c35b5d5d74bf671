import logging
import os
import sys


def _configure_logging() -> logging.Logger:
    """Configure the package logger once; child module loggers propagate to it."""

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    level_name = os.getenv("CASHGAME_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = _configure_logging()
