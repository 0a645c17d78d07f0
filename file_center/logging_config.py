"""
Library logging configuration.

This module provides unified logging configuration for the file center.
Every module obtains the same named logger so that puts, deletions and
garbage collection summaries end up in a single, consistently formatted
stream.
"""
import logging
import sys

from file_center.config import settings


def setup_logging() -> logging.Logger:
    """
    Configure and return the file center logger.

    The logger outputs to stdout with a structured format including:
    - Timestamp
    - Logger name
    - Log level
    - Message

    The level is taken from the LOG_LEVEL setting and falls back to INFO
    when the configured name is unknown.

    Returns:
        logging.Logger: Configured logger instance
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logger = logging.getLogger("file_center")
    logger.setLevel(level)

    # Prevent duplicate handlers if called multiple times
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
