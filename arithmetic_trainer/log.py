"""Logging configuration."""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "ARITH_TRAINER_LOG_LEVEL"


class TextFormatter(logging.Formatter):
    """Human-readable text log formatter"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: str | None = None) -> None:
    """Configure the package logger; level falls back to the environment, then WARNING."""

    name = (level or os.environ.get(LOG_LEVEL_ENV) or "WARNING").upper()
    log_level = getattr(logging, name, logging.WARNING)
    if not isinstance(log_level, int):
        log_level = logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(TextFormatter())
    handler.setLevel(log_level)

    logger = logging.getLogger("arithmetic_trainer")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(log_level)
