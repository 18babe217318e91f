# src/rendering/chunk_options.py — v1
"""Helpers for reading Quarto chunk headers and `#|` cell options."""

from __future__ import annotations

import logging
import re
from typing import Any

import yaml

from quartocache.core.errors import MalformedInputError

logger = logging.getLogger(__name__)

# "{r}", "{python echo=false}", "{r, fig-cap='x'}", "{ojs}"
_ENGINE_RE = re.compile(r"^\{\s*([A-Za-z][\w.+-]*)")
_CELL_OPTION_RE = re.compile(r"^\s*#\|\s?(.*)$")


def chunk_engine(info: str) -> str | None:
    """Engine named by a braced fence info string, lowercased; None otherwise.

    Plain info strings such as "python" mark display-only code, not a chunk.
    Raw blocks ("{=html}") have no engine.
    """
    match = _ENGINE_RE.match(info.strip())
    if match is None:
        return None
    return match.group(1).lower()


def parse_cell_options(code: str) -> dict[str, Any]:
    """Read leading `#| key: value` lines of a chunk as a YAML mapping.

    Returns {} when there are none or they do not form a mapping (logged).
    """
    option_lines: list[str] = []
    for line in code.splitlines():
        match = _CELL_OPTION_RE.match(line)
        if match is None:
            break
        option_lines.append(match.group(1))
    if not option_lines:
        return {}

    try:
        data = yaml.safe_load("\n".join(option_lines))
    except yaml.YAMLError as exc:
        logger.warning("Ignoring cell options: %s", MalformedInputError(str(exc)))
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring cell options: %s",
            MalformedInputError(f"expected a mapping, got {type(data).__name__}"),
        )
        return {}
    return {str(k): _json_safe(v) for k, v in data.items()}


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
