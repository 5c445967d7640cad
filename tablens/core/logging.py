"""Logging setup. stdout carries command output, so logs go to stderr."""

from __future__ import annotations

import sys

from loguru import logger

_FORMAT = "<dim>{time:HH:mm:ss.SSS}</dim> <level>{level: <7}</level> {name}: {message}"


def configure_logging(level: str = "WARNING") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_FORMAT, colorize=None)
