"""Rotating file logging shared by the planner services."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.settings import LOGGING

ROOT_LOGGER = "planner"


def _ensure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        path = Path(LOGGING.log_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = RotatingFileHandler(
                path,
                maxBytes=LOGGING.max_bytes,
                backupCount=LOGGING.backup_count,
                encoding="utf-8",
            )
        except OSError:
            # read-only data dir: keep logging, just not to disk
            handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOGGING.format))
        root.addHandler(handler)
        root.setLevel(LOGGING.level.upper())
    return root


def get_logger(name: str) -> logging.Logger:
    """Return ``planner.<name>`` with the shared file handler attached once."""

    _ensure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


__all__ = ["get_logger"]
