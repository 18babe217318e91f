# src/logging/handlers.py — v2
"""Handlers and filters shared by the console and file log outputs."""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from quartocache.logging.context import get_context

_SIZE_RE = re.compile(r"^(\d+)\s*(B|KB|MB|GB)?$", re.IGNORECASE)
_SIZE_MULTIPLIERS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}

CONTEXT_FIELDS = ("repo_id", "commit", "document", "stage")


class RenderContextFilter(logging.Filter):
    """Copy the current render context onto each record.

    Values are captured when the record is created, so a record handed to
    another thread still carries the repo/commit/document/stage it was
    logged under. Attributes set explicitly via `extra=` are kept.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_context()
        for field in CONTEXT_FIELDS:
            if getattr(record, field, None) is None:
                setattr(record, field, getattr(ctx, field))
        return True


def parse_size(size_str: str) -> int:
    """Parse '10MB', '512 kb' or a plain byte count into bytes."""
    match = _SIZE_RE.match(size_str.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    unit = (match.group(2) or "B").upper()
    return int(match.group(1)) * _SIZE_MULTIPLIERS[unit]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 30,
) -> RotatingFileHandler:
    """Size-rotated UTF-8 log file; the parent directory is created.

    The file itself is opened on the first record, not at setup.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
        delay=True,
    )
    handler.addFilter(RenderContextFilter())
    return handler
