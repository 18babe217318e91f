# src/extraction/qmd_parser.py — v1
"""Quarto (.qmd) body to document tree.

Pipeline per document:
  1. front-matter split off and attached as doc.attrs.yaml
  2. markdown body tokenized with markdown-it-py (CommonMark + tables)
  3. top-level executable chunks rendered through the chunk renderer, one at a
     time in source order, and emitted as quartoBlock nodes
  4. headings emitted with flattened text
  5. paragraphs emitted with comment spans turned into marked text runs

Known limitations (kept visible, not silently emulated):
  - lists, blockquotes, tables, thematic breaks and raw HTML blocks are not
    converted; they are left out of content and listed in doc.attrs.omitted
  - link reference definitions are not resolved; a paragraph of `[label]: url`
    lines is omitted as "reference" and `[label]` stays literal text, so a
    comment span whose text matches a label is still a comment span
  - inline formatting (emphasis, strong, links, inline code) is flattened to
    its text; headings are flattened to plain text entirely
The parser never touches the filesystem or the cache.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Sequence

from markdown_it import MarkdownIt
from markdown_it.token import Token
from pydantic import BaseModel, Field

from quartocache.core.errors import ChunkExecutionError
from quartocache.core.models import (
    BlockNode,
    ChunkError,
    CodeBlockAttrs,
    CodeBlockNode,
    Comment,
    CommentMark,
    CommentMarkAttrs,
    Document,
    DocumentAttrs,
    HeadingAttrs,
    HeadingNode,
    ImageAttrs,
    ImageNode,
    OmittedBlock,
    ParagraphNode,
    QuartoBlockAttrs,
    QuartoBlockNode,
    RenderWarning,
    TextNode,
)
from quartocache.extraction.comment_appendix import extract_comments
from quartocache.extraction.frontmatter import split_front_matter
from quartocache.extraction.span_scanner import scan_comment_spans
from quartocache.rendering.base_chunk_renderer import BaseChunkRenderer
from quartocache.rendering.chunk_options import chunk_engine, parse_cell_options

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE_ENGINES = ("r", "python", "julia", "ojs", "bash", "sh", "sql", "mermaid", "dot")

# Inline tokens whose content is kept as literal text.
_LITERAL_INLINE = frozenset({"text", "text_special", "code_inline", "html_inline"})
_BREAK_INLINE = frozenset({"softbreak", "hardbreak"})
# A paragraph made only of `[label]: destination` lines.
_REFERENCE_DEFS = re.compile(r"\A(?:[ ]{0,3}\[[^\]\n]+\]:[ \t]*\S.*(?:\n|\Z))+\Z")


class ParseResult(BaseModel):
    """Tree, comments (with anchors filled in) and localized warnings."""

    document: Document
    comments: list[Comment] = Field(default_factory=list)
    warnings: list[RenderWarning] = Field(default_factory=list)


class QmdParser:
    """Convert appendix-free .qmd text into a Document."""

    def __init__(
        self,
        renderer: BaseChunkRenderer,
        executable_engines: Sequence[str] = DEFAULT_EXECUTABLE_ENGINES,
    ) -> None:
        self._renderer = renderer
        self._engines = frozenset(e.lower() for e in executable_engines)
        # Reference definitions would turn `[text]{.comment ...}` into a shortcut link.
        self._md = MarkdownIt("commonmark").enable("table").disable("reference")

    async def parse(self, text: str, comments: Sequence[Comment] = ()) -> ParseResult:
        """Parse document text (comment appendix already removed).

        Args:
            text: Remaining text returned by extract_comments.
            comments: Comment set from the appendix, used to resolve marks.

        Returns:
            ParseResult with nodes in source order.
        """
        metadata, body, line_offset = split_front_matter(text)
        state = _ParseState({c.id for c in comments})
        tokens = self._md.parse(body)

        content: list[BlockNode] = []
        omitted: list[OmittedBlock] = []
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            if tok.type == "heading_open":
                content.append(_heading(tok, tokens[i + 1]))
                i += 3
            elif tok.type == "paragraph_open" and _REFERENCE_DEFS.match(tokens[i + 1].content):
                omitted.append(_omitted(tok, line_offset, block_type="reference"))
                i += 3
            elif tok.type == "paragraph_open":
                paragraph = _paragraph(tokens[i + 1], state)
                if paragraph.content:
                    content.append(paragraph)
                i += 3
            elif tok.type == "fence":
                content.append(await self._fence(tok, state, line_offset))
                i += 1
            elif tok.type == "code_block":
                content.append(CodeBlockNode(attrs=CodeBlockAttrs(code=_strip_final_newline(tok.content))))
                i += 1
            else:
                end = _block_end(tokens, i)
                omitted.append(_omitted(tok, line_offset))
                i = end + 1

        if omitted:
            logger.info(
                "Omitted %d unsupported block(s): %s",
                len(omitted),
                ", ".join(sorted({b.block_type for b in omitted})),
            )

        document = Document(
            content=content,
            attrs=DocumentAttrs(yaml=metadata, omitted=omitted),
        )
        return ParseResult(
            document=document,
            comments=state.anchored(comments),
            warnings=state.warnings + state.unreferenced(comments),
        )

    async def _fence(self, tok: Token, state: _ParseState, line_offset: int) -> BlockNode:
        info = tok.info.strip()
        code = _strip_final_newline(tok.content)
        engine = chunk_engine(info)
        if engine is None or engine not in self._engines:
            language = info.split()[0] if info else None
            return CodeBlockNode(attrs=CodeBlockAttrs(language=language, code=code))

        attrs = QuartoBlockAttrs(
            code=code,
            chunk_options=info,
            engine=engine,
            cell_options=parse_cell_options(code),
        )
        try:
            attrs.html_output = await self._renderer.render(code, info)
        except ChunkExecutionError as exc:
            attrs.error = ChunkError(kind="execution", message=str(exc), exit_code=exc.exit_code)
            attrs.html_output = _error_html(str(exc), exc.stderr)
        except Exception as exc:  # noqa: BLE001 - any renderer failure stays local to its chunk
            logger.exception("Chunk renderer %s raised unexpectedly", self._renderer.name)
            attrs.error = ChunkError(kind=type(exc).__name__, message=str(exc))
            attrs.html_output = _error_html(str(exc))

        if attrs.error is not None:
            line = tok.map[0] + 1 + line_offset if tok.map else None
            label = attrs.cell_options.get("label")
            ref = str(label) if label else (f"line {line}" if line else None)
            logger.warning("Chunk %s (%s) failed: %s", ref, engine, attrs.error.message)
            state.warnings.append(
                RenderWarning(code="chunk_failed", message=attrs.error.message, ref=ref)
            )
        return QuartoBlockNode(attrs=attrs)


async def qmd_to_tree(
    raw_text: str,
    renderer: BaseChunkRenderer,
    executable_engines: Sequence[str] = DEFAULT_EXECUTABLE_ENGINES,
) -> ParseResult:
    """Extract the comment appendix from raw source and parse the rest."""
    comments, remaining = extract_comments(raw_text)
    return await QmdParser(renderer, executable_engines).parse(remaining, comments)


class _ParseState:
    """Per-document bookkeeping for comment marks and warnings."""

    def __init__(self, known_ids: set[str]) -> None:
        self.known_ids = known_ids
        self.anchors: dict[str, str] = {}
        self.warnings: list[RenderWarning] = []

    def mark(self, text: str, comment_id: str) -> TextNode:
        resolved = comment_id in self.known_ids
        if not resolved:
            logger.warning("Comment span references unknown comment id %r", comment_id)
            self.warnings.append(
                RenderWarning(
                    code="dangling_comment_ref",
                    message=f"no appendix entry for comment {comment_id!r}",
                    ref=comment_id,
                )
            )
        self.anchors.setdefault(comment_id, text)
        mark = CommentMark(attrs=CommentMarkAttrs(comment_id=comment_id, resolved=resolved))
        return TextNode(text=text, marks=[mark])

    def anchored(self, comments: Sequence[Comment]) -> list[Comment]:
        return [
            c.model_copy(update={"anchor_text": self.anchors[c.id]}) if c.id in self.anchors else c
            for c in comments
        ]

    def unreferenced(self, comments: Sequence[Comment]) -> list[RenderWarning]:
        return [
            RenderWarning(
                code="unreferenced_comment",
                message=f"comment {c.id!r} has no span in the document",
                ref=c.id,
            )
            for c in comments
            if c.id not in self.anchors
        ]


def _heading(open_tok: Token, inline: Token) -> HeadingNode:
    level = int(open_tok.tag[1:])
    parts: list[str] = []
    for child in inline.children or []:
        if child.type in _LITERAL_INLINE:
            parts.append(child.content)
        elif child.type in _BREAK_INLINE:
            parts.append(" ")
        elif child.type == "image":
            parts.append(child.content)
    text = "".join(parts)
    return HeadingNode(
        attrs=HeadingAttrs(level=level),
        content=[TextNode(text=text)] if text else [],
    )


def _paragraph(inline: Token, state: _ParseState) -> ParagraphNode:
    """Build paragraph content from consecutive plain-text runs and images.

    Text, breaks and the text inside formatting/link tokens are merged into one
    run, which is then scanned for comment spans. Images end the current run.
    """
    content: list[TextNode | ImageNode] = []
    run: list[str] = []

    def flush() -> None:
        text = "".join(run)
        run.clear()
        for segment in scan_comment_spans(text):
            if segment.comment_id is None:
                content.append(TextNode(text=segment.text))
            else:
                content.append(state.mark(segment.text, segment.comment_id))

    for child in inline.children or []:
        if child.type in _LITERAL_INLINE:
            run.append(child.content)
        elif child.type in _BREAK_INLINE:
            run.append("\n")
        elif child.type == "image":
            flush()
            content.append(
                ImageNode(
                    attrs=ImageAttrs(
                        src=str(child.attrGet("src") or ""),
                        alt=child.content,
                        title=_optional_str(child.attrGet("title")),
                    )
                )
            )
        # *_open / *_close formatting and link tokens carry no text of their own.
    flush()
    return ParagraphNode(content=content)


def _block_end(tokens: list[Token], start: int) -> int:
    """Index of the token closing the block opened at start (start itself if leaf)."""
    tok = tokens[start]
    if tok.nesting != 1:
        return start
    close_type = tok.type.removesuffix("_open") + "_close"
    for j in range(start + 1, len(tokens)):
        if tokens[j].type == close_type and tokens[j].level == tok.level:
            return j
    return len(tokens) - 1


def _omitted(tok: Token, line_offset: int, block_type: str | None = None) -> OmittedBlock:
    block_type = block_type or tok.type.removesuffix("_open")
    if tok.map:
        return OmittedBlock(
            block_type=block_type,
            start_line=tok.map[0] + 1 + line_offset,
            end_line=tok.map[1] + line_offset,
        )
    return OmittedBlock(block_type=block_type)


def _error_html(message: str, stderr: str = "") -> str:
    details = f"\n{html.escape(stderr.strip())}" if stderr.strip() else ""
    return f'<pre class="quarto-chunk-error">{html.escape(message)}{details}</pre>'


def _strip_final_newline(text: str) -> str:
    return text[:-1] if text.endswith("\n") else text


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
