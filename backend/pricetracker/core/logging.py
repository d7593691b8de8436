"""Logging configuration"""
import logging
import sys

from pricetracker.core.config import settings


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the package logger with a single stdout handler."""
    logger = logging.getLogger("pricetracker")

    if logger.handlers:
        return logger

    logger.setLevel(level or settings.LOG_LEVEL)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)

    return logger
