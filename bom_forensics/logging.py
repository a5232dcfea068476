# bom_forensics/logging.py
"""
Logging setup using Loguru.

Library modules only log through ``loguru.logger``; sinks are installed here,
by the CLI. Corruption found while walking a BOM tree is logged at WARNING.
"""
from __future__ import annotations

import sys

from loguru import logger


def configure_logging(*, debug: bool = False) -> None:
    """Configure loguru logging sinks.

    Args:
        debug: Enable verbose debug logging (table sizes, timings, skipped blocks).
    """
    logger.remove()
    level = "DEBUG" if debug else "INFO"
    fmt = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> "
        "| <level>{level: <8}</level> "
        "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> "
        "- <level>{message}</level>"
    )
    logger.add(sys.stderr, level=level, format=fmt, enqueue=True, backtrace=debug, diagnose=debug)
