"""
Utility helpers: directory setup and logging config.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "course_extract"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def ensure_dirs(*paths: Path) -> None:
    """Ensure each directory exists."""
    for p in paths:
        Path(p).mkdir(parents=True, exist_ok=True)


def init_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger: console handler + optional rotating file handler.

    `level` and `log_file` fall back to COURSE_EXTRACT_LOG_LEVEL and
    COURSE_EXTRACT_LOG_FILE. Calling this twice replaces the handlers.
    """
    level_name = level or os.getenv("COURSE_EXTRACT_LOG_LEVEL", "INFO")
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    log_file = log_file or os.getenv("COURSE_EXTRACT_LOG_FILE") or None

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False  # avoid duplicate logs if root has handlers

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    # Console
    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(ch)

    # File (rotating)
    if log_file:
        path = Path(log_file)
        ensure_dirs(path.parent)
        fh = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=5)
        fh.setLevel(log_level)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(fh)

    return logger
