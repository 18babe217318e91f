# tests/unit/extraction/test_unit_comment_appendix.py — v1
"""Tests for extraction/comment_appendix.py — trailing comment appendix."""

from __future__ import annotations

import json

from quartocache.core.models import Comment, CommentReply
from quartocache.extraction.comment_appendix import (
    APPENDIX_MARKER,
    append_comments_appendix,
    extract_comments,
    render_comments_appendix,
)

BODY = '# T\n\nHello [world]{.comment ref="c1"}\n'


def _appendix(payload: str) -> str:
    return (
        f"{APPENDIX_MARKER}\n"
        '<div id="quartorium-comments" style="display:none;">\n'
        f"```json\n{payload}\n```\n"
        "</div>\n"
    )


class TestExtractComments:
    def test_no_appendix(self):
        assert extract_comments(BODY) == ([], BODY)

    def test_remaining_is_prefix_before_marker(self):
        raw = BODY + "\n" + _appendix('{"comments": [{"id": "c1", "body": "hi"}]}')
        comments, remaining = extract_comments(raw)
        assert remaining == BODY + "\n"
        assert raw.startswith(remaining)
        assert [c.id for c in comments] == ["c1"]
        assert comments[0].body == "hi"

    def test_preserves_order_and_unknown_fields(self):
        payload = json.dumps(
            {"comments": [{"id": "b", "resolvedBy": "x"}, {"id": "a", "thread": [{"body": "re"}]}]}
        )
        comments, _ = extract_comments(BODY + _appendix(payload))
        assert [c.id for c in comments] == ["b", "a"]
        assert comments[0].model_extra == {"resolvedBy": "x"}
        assert comments[1].thread[0].body == "re"

    def test_numeric_ids_become_strings(self):
        comments, _ = extract_comments(BODY + _appendix('{"comments": [{"id": 5}]}'))
        assert comments[0].id == "5"

    def test_skips_entries_without_id_and_duplicates(self):
        payload = '{"comments": [{"body": "no id"}, {"id": "c1", "body": "first"}, {"id": "c1", "body": "second"}, "junk"]}'
        comments, _ = extract_comments(BODY + _appendix(payload))
        assert [(c.id, c.body) for c in comments] == [("c1", "first")]

    def test_bare_list_payload(self):
        comments, _ = extract_comments(BODY + _appendix('[{"id": "c1"}]'))
        assert [c.id for c in comments] == ["c1"]

    def test_malformed_field_falls_back_to_default(self):
        payload = json.dumps(
            {"comments": [{"id": "c1", "body": "kept", "thread": "not a list", "status": ["x"]}]}
        )
        comments, _ = extract_comments(BODY + _appendix(payload))
        assert [(c.id, c.body, c.thread, c.status) for c in comments] == [("c1", "kept", [], "open")]

    def test_malformed_thread_keeps_comment(self):
        raw = BODY + _appendix(json.dumps({"comments": [{"id": "c1", "thread": 3}]}))
        comments, remaining = extract_comments(raw)
        assert remaining == BODY
        assert [c.id for c in comments] == ["c1"]

    def test_invalid_json_falls_back(self, caplog):
        raw = BODY + _appendix("{oops")
        assert extract_comments(raw) == ([], raw)
        assert "Ignoring comment appendix" in caplog.text

    def test_text_after_appendix_is_malformed(self):
        raw = BODY + _appendix('{"comments": []}') + "\nMore prose\n"
        assert extract_comments(raw) == ([], raw)

    def test_missing_comments_key(self):
        raw = BODY + _appendix('{"notes": []}')
        assert extract_comments(raw) == ([], raw)

    def test_last_marker_wins(self):
        quoted = f"Docs mention `{APPENDIX_MARKER}` inline.\n\n"
        raw = quoted + _appendix('{"comments": [{"id": "c9"}]}')
        comments, remaining = extract_comments(raw)
        assert [c.id for c in comments] == ["c9"]
        assert remaining == quoted


class TestRenderAppendix:
    def test_round_trip(self):
        comments = [
            Comment(id="c1", author="Ana", body="Why?", thread=[CommentReply(author="Bo", body="Because")]),
            Comment(id="c2", status="resolved"),
        ]
        raw = append_comments_appendix(BODY, comments)
        parsed, remaining = extract_comments(raw)
        assert parsed == comments
        assert remaining.rstrip() == BODY.rstrip()

    def test_anchor_text_not_written(self):
        block = render_comments_appendix([Comment(id="c1", anchor_text="world")])
        assert "anchor" not in block

    def test_no_comments_leaves_body(self):
        assert append_comments_appendix(BODY, []) == BODY
