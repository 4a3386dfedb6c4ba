"""
RESPONSIBILITIES
- Provide an adapter-local logger helper reusing the core logging setup.
PROCESS OVERVIEW
1. Callers request get_logger(name).
2. The core docmerge logger is configured once (file + console handlers).
3. A child logger scoped under ``docmerge.io`` is returned.
"""

from __future__ import annotations

import logging
from pathlib import Path

from docmerge.core.logger import get_logger as core_get_logger


def get_logger(name: str, log_dir: Path | None = None) -> logging.Logger:
    """Return a namespaced logger for adapter modules."""

    base_logger = core_get_logger(log_dir)
    return base_logger.getChild(f"io.{name}")
