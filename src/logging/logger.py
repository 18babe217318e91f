# src/logging/logger.py — v2
"""Logger factory and the two output formats.

json: one object per line, render context nested under "context".
text: `2024-05-01 10:00:00 [INFO    ] quartocache.cache.manager [42:doc.qmd@1a2b3c4d5e] (PARSE) - msg`
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from quartocache.logging.handlers import CONTEXT_FIELDS, RenderContextFilter, create_rotating_handler

ROOT_LOGGER = "quartocache"


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Context stamped by RenderContextFilter, or read now if the record has none."""
    if not hasattr(record, "stage"):
        RenderContextFilter().filter(record)
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _record_context(record)
        if context:
            entry["context"] = context
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line format for terminals."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = None

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        line = f"{self.formatTime(record)} [{record.levelname:8s}] {record.name}"
        if "repo_id" in context:
            target = context["repo_id"]
            if "document" in context:
                target += f":{context['document']}"
            if "commit" in context:
                target += f"@{context['commit'][:10]}"
            line += f" [{target}]"
        if "stage" in context:
            line += f" ({context['stage']})"
        line += f" - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Logger below the package root; configuration comes from setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """(Re)configure the package root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional rotating log file in addition to stderr.
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.addFilter(RenderContextFilter())
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = create_rotating_handler(log_file, rotation=rotation, retention=retention)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
