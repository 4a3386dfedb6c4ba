from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .profiles import _work_dir

LOG_LEVEL_ENV = "DOCMERGE_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MAX_LOG_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 3

_LOGGER: logging.Logger | None = None


def parse_level(name: str) -> int:
    """Map a level name such as ``debug`` to its numeric value."""

    value = logging.getLevelName(name.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {name}")
    return value


def get_logger(log_dir: Path | None = None) -> logging.Logger:
    """Return the ``docmerge`` logger, configuring it on first use.

    Records go to ``work/logs/app.log`` (rotated) and to stderr so that
    command output on stdout stays machine readable. The initial level comes
    from ``DOCMERGE_LOG_LEVEL`` and defaults to INFO.
    """
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    base = Path(log_dir) if log_dir is not None else _work_dir() / "logs"
    base.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("docmerge")
    logger.setLevel(parse_level(os.getenv(LOG_LEVEL_ENV, "INFO")))
    logger.propagate = False

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = RotatingFileHandler(
        base / "app.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    logger.addHandler(console)

    _LOGGER = logger
    return logger


def set_level(name: str) -> logging.Logger:
    logger = get_logger()
    logger.setLevel(parse_level(name))
    return logger
