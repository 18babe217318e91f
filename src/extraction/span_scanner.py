# src/extraction/span_scanner.py — v1
"""Scanner for inline comment spans: [<text>]{.comment ref="<id>"}.

A plain-text run is split into segments, each either plain text or the inner
text of a comment span tagged with its comment id. Matches never overlap, are
found left to right, and the first '[' that starts a complete span wins.

The span grammar is matched by a small state machine instead of a regular
expression:

    '['  INNER  ']'  '{.comment'  SPACE+  'ref="'  ID  '"'  '}'

INNER is one or more characters other than ']'; ID is one or more characters
other than '"'. The syntax is part of the cache format: changing it requires
bumping TREE_FORMAT_VERSION.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import NamedTuple

_CLASS_TOKEN = "{.comment"
_REF_TOKEN = 'ref="'


class SpanSegment(NamedTuple):
    text: str
    comment_id: str | None = None


class _State(Enum):
    INNER = auto()
    CLASS = auto()
    SPACE = auto()
    REF = auto()
    ID = auto()
    CLOSE = auto()


class _SpanMatch(NamedTuple):
    inner: str
    comment_id: str
    end: int


def scan_comment_spans(text: str) -> list[SpanSegment]:
    """Split text into plain and comment-marked segments.

    Empty plain segments are never emitted; concatenating the text of the
    segments with their markers restored gives back the input.
    """
    segments: list[SpanSegment] = []
    plain_start = 0
    pos = 0
    while True:
        open_at = text.find("[", pos)
        if open_at == -1:
            break
        match = _match_span(text, open_at)
        if match is None:
            pos = open_at + 1
            continue
        if open_at > plain_start:
            segments.append(SpanSegment(text[plain_start:open_at]))
        segments.append(SpanSegment(match.inner, match.comment_id))
        plain_start = pos = match.end

    if plain_start < len(text):
        segments.append(SpanSegment(text[plain_start:]))
    return segments


def _match_span(text: str, start: int) -> _SpanMatch | None:
    """Try to match a complete span whose '[' is at text[start]."""
    state = _State.INNER
    n = len(text)
    i = start + 1
    inner_start = i
    inner_end = id_start = -1
    saw_space = False

    while i < n:
        ch = text[i]
        if state is _State.INNER:
            if ch == "]":
                if i == inner_start:
                    return None
                inner_end = i
                state = _State.CLASS
            i += 1
        elif state is _State.CLASS:
            if not text.startswith(_CLASS_TOKEN, i):
                return None
            i += len(_CLASS_TOKEN)
            state = _State.SPACE
        elif state is _State.SPACE:
            if ch.isspace():
                saw_space = True
                i += 1
            elif not saw_space:
                return None
            else:
                state = _State.REF
        elif state is _State.REF:
            if not text.startswith(_REF_TOKEN, i):
                return None
            i += len(_REF_TOKEN)
            id_start = i
            state = _State.ID
        elif state is _State.ID:
            if ch == '"':
                if i == id_start:
                    return None
                state = _State.CLOSE
                id_end = i
            i += 1
        else:  # _State.CLOSE
            if ch != "}":
                return None
            return _SpanMatch(text[inner_start:inner_end], text[id_start:id_end], i + 1)

    return None
