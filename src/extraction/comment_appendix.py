# src/extraction/comment_appendix.py — v1
"""Split a raw .qmd source into body text and its trailing comment appendix.

Appendix layout (must be the last thing in the file):

    <!-- Comments Appendix -->
    <div id="quartorium-comments" style="display:none;">
    ```json
    {"comments": [{"id": "c1", "author": "...", "body": "..."}]}
    ```
    </div>

The remaining text is exactly the bytes before the marker, so character
offsets of inline comment markers in the body are unchanged.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from pydantic import ValidationError

from quartocache.core.errors import MalformedInputError
from quartocache.core.models import Comment

logger = logging.getLogger(__name__)

APPENDIX_MARKER = "<!-- Comments Appendix -->"
APPENDIX_DIV_ID = "quartorium-comments"

_APPENDIX_BODY_RE = re.compile(
    r"\A\s*<div\b[^>]*\bid=[\"']" + APPENDIX_DIV_ID + r"[\"'][^>]*>\s*"
    r"```json[ \t]*\r?\n(?P<payload>.*?)\r?\n[ \t]*```\s*</div>\s*\Z",
    re.DOTALL,
)


def extract_comments(raw_text: str) -> tuple[list[Comment], str]:
    """Extract the trailing comment appendix.

    Args:
        raw_text: Full document source.

    Returns:
        (comments in appendix order, remaining text). When the appendix is
        absent or malformed, ([], raw_text) is returned unchanged.
    """
    start = raw_text.rfind(APPENDIX_MARKER)
    if start == -1:
        return [], raw_text

    tail = raw_text[start + len(APPENDIX_MARKER):]
    match = _APPENDIX_BODY_RE.match(tail)
    if match is None:
        _report(MalformedInputError("comment appendix is not a trailing JSON block"))
        return [], raw_text

    try:
        payload = json.loads(match.group("payload"))
    except json.JSONDecodeError as exc:
        _report(MalformedInputError(f"comment appendix JSON is invalid: {exc}"))
        return [], raw_text

    entries = payload.get("comments") if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        _report(MalformedInputError("comment appendix has no 'comments' list"))
        return [], raw_text

    return _load_comments(entries), raw_text[:start]


def _load_comments(entries: list[Any]) -> list[Comment]:
    comments: list[Comment] = []
    seen: set[str] = set()
    for position, item in enumerate(entries):
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            logger.warning("Skipping comment #%d without an id", position)
            continue
        item = {**item, "id": str(item["id"])}
        try:
            comment = Comment.model_validate(item)
        except ValidationError as exc:
            comment = _with_defaults(item, exc)
            if comment is None:
                continue
        if comment.id in seen:
            logger.warning("Duplicate comment id %r, keeping the first entry", comment.id)
            continue
        seen.add(comment.id)
        comments.append(comment)
    return comments


def _with_defaults(item: dict[str, Any], exc: ValidationError) -> Comment | None:
    """Retry validation with the offending top-level fields dropped."""
    bad = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
    bad.discard("id")
    if not bad:
        logger.warning("Skipping malformed comment %r: %s", item["id"], exc)
        return None
    logger.warning(
        "Comment %r has malformed field(s) %s, using defaults", item["id"], ", ".join(sorted(bad))
    )
    try:
        return Comment.model_validate({k: v for k, v in item.items() if k not in bad})
    except ValidationError as retry_exc:
        logger.warning("Skipping malformed comment %r: %s", item["id"], retry_exc)
        return None


def render_comments_appendix(comments: Iterable[Comment]) -> str:
    """Serialize comments back into the appendix block format."""
    items = [
        c.model_dump(by_alias=True, exclude={"anchor_text"}, exclude_none=True)
        for c in comments
    ]
    payload = json.dumps({"comments": items}, indent=2, ensure_ascii=False)
    return (
        f"{APPENDIX_MARKER}\n"
        f'<div id="{APPENDIX_DIV_ID}" style="display:none;">\n'
        f"```json\n{payload}\n```\n"
        "</div>\n"
    )


def append_comments_appendix(body: str, comments: Iterable[Comment]) -> str:
    """Attach an appendix to body text (replacing none: body must be appendix-free)."""
    comments = list(comments)
    if not comments:
        return body
    return f"{body.rstrip()}\n\n{render_comments_appendix(comments)}"


def _report(error: MalformedInputError) -> None:
    logger.warning("Ignoring comment appendix: %s", error)
