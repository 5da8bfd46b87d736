"""Process-wide logging setup."""

from __future__ import annotations

import logging
import os

_ROOT_LOGGER_NAME = "epub_reader"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> logging.Logger:
    """Configure the package logger once and return it.

    The level defaults to ``LOG_LEVEL`` from the environment. Calling this
    again only adjusts the level when one is passed explicitly.
    """

    global _configured
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        logger.setLevel(_coerce_level(level or os.getenv("LOG_LEVEL", "INFO")))
        _configured = True
    elif level:
        logger.setLevel(_coerce_level(level))
    return logger


def _coerce_level(value: str) -> int:
    resolved = logging.getLevelName(str(value).strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


__all__ = ["configure_logging"]
