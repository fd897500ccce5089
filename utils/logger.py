"""
utils/logger.py
Simple logging wrapper for PortProbe
"""

import logging
import sys
from typing import Union


def get_logger(name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually the "portprobe" root)
        level: Logging level, int or name such as "DEBUG" (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    # Format: LEVEL - message
    formatter = logging.Formatter(
        '%(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def set_level(level: Union[int, str], name: str = "portprobe") -> None:
    """Change the level of a logger and all of its handlers."""
    logger = get_logger(name)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


# Default logger instance
log = get_logger("portprobe")


__all__ = ["get_logger", "set_level", "log"]
