# src/extraction/frontmatter.py — v1
"""Leading YAML front-matter: split it off the markdown body and load it."""

from __future__ import annotations

import json
import logging
from typing import Any

import yaml

from quartocache.core.errors import MalformedInputError

logger = logging.getLogger(__name__)

_OPEN_FENCE = "---"
_CLOSE_FENCES = ("---", "...")


def split_front_matter(text: str) -> tuple[dict[str, Any], str, int]:
    """Separate front-matter from the markdown body.

    Args:
        text: Document text (comment appendix already removed).

    Returns:
        (metadata, body, body_line_offset). body_line_offset is the number of
        source lines consumed by the front-matter block. Without a complete
        leading block, metadata is empty and body is the text unchanged.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].lstrip("\ufeff").rstrip() != _OPEN_FENCE:
        return {}, text, 0

    for index in range(1, len(lines)):
        if lines[index].rstrip() in _CLOSE_FENCES:
            raw_yaml = "".join(lines[1:index])
            body = "".join(lines[index + 1:])
            return load_metadata(raw_yaml), body, index + 1

    return {}, text, 0


def load_metadata(raw_yaml: str) -> dict[str, Any]:
    """Parse a front-matter block into JSON-compatible metadata.

    Malformed YAML, or YAML that is not a mapping, yields {} (logged).
    """
    try:
        data = yaml.safe_load(raw_yaml)
    except yaml.YAMLError as exc:
        _report(MalformedInputError(f"front-matter is not valid YAML: {exc}"))
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        _report(MalformedInputError(f"front-matter is a {type(data).__name__}, not a mapping"))
        return {}

    # Dates and other YAML scalars become their string form so a tree loaded
    # back from the cache equals the freshly parsed one.
    try:
        return json.loads(json.dumps(data, default=str))
    except (TypeError, ValueError) as exc:
        _report(MalformedInputError(f"front-matter cannot be serialized: {exc}"))
        return {}


def _report(error: MalformedInputError) -> None:
    logger.warning("Using empty metadata: %s", error)
