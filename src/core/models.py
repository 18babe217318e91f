# src/core/models.py — v1
"""Shared Pydantic domain models: the rendered document tree and comments.

Node kinds form a closed set discriminated on ``type``. JSON field names are
camelCase (``commentId``, ``htmlOutput``) to match the editor schema; Python
attributes stay snake_case.
"""

from __future__ import annotations

from typing import Annotated, Any, Iterator, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TreeModel(BaseModel):
    """Base for all tree models: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === INLINE NODES ===


class CommentMarkAttrs(TreeModel):
    comment_id: str
    resolved: bool = True


class CommentMark(TreeModel):
    """Links a text run to a comment appendix entry."""

    type: Literal["comment"] = "comment"
    attrs: CommentMarkAttrs


class TextNode(TreeModel):
    type: Literal["text"] = "text"
    text: str
    marks: list[CommentMark] = Field(default_factory=list)

    @property
    def comment_id(self) -> str | None:
        for mark in self.marks:
            if mark.type == "comment":
                return mark.attrs.comment_id
        return None


class ImageAttrs(TreeModel):
    src: str
    alt: str = ""
    title: str | None = None
    original_src: str | None = None
    warning: str | None = None


class ImageNode(TreeModel):
    type: Literal["image"] = "image"
    attrs: ImageAttrs


InlineNode = Annotated[TextNode | ImageNode, Field(discriminator="type")]


# === BLOCK NODES ===


class HeadingAttrs(TreeModel):
    level: int = Field(ge=1, le=6)


class HeadingNode(TreeModel):
    """Heading with flattened plain-text content (inline formatting dropped)."""

    type: Literal["heading"] = "heading"
    attrs: HeadingAttrs
    content: list[TextNode] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(node.text for node in self.content)


class ParagraphNode(TreeModel):
    type: Literal["paragraph"] = "paragraph"
    content: list[InlineNode] = Field(default_factory=list)


class ChunkError(TreeModel):
    """Failure payload captured in place of a chunk's rendered output."""

    kind: str
    message: str
    exit_code: int | None = None


class QuartoBlockAttrs(TreeModel):
    code: str
    chunk_options: str
    engine: str
    cell_options: dict[str, Any] = Field(default_factory=dict)
    html_output: str = ""
    error: ChunkError | None = None


class QuartoBlockNode(TreeModel):
    """Executable code chunk with its source and rendered output."""

    type: Literal["quartoBlock"] = "quartoBlock"
    attrs: QuartoBlockAttrs


class CodeBlockAttrs(TreeModel):
    language: str | None = None
    code: str


class CodeBlockNode(TreeModel):
    """Non-executable code listing, kept verbatim."""

    type: Literal["codeBlock"] = "codeBlock"
    attrs: CodeBlockAttrs


BlockNode = Annotated[
    HeadingNode | ParagraphNode | QuartoBlockNode | CodeBlockNode,
    Field(discriminator="type"),
]


# === DOCUMENT ===


class OmittedBlock(TreeModel):
    """Markdown block dropped from the tree because its kind is unsupported."""

    block_type: str
    start_line: int | None = None
    end_line: int | None = None


class DocumentAttrs(TreeModel):
    yaml: dict[str, Any] = Field(default_factory=dict)
    omitted: list[OmittedBlock] = Field(default_factory=list)


class Document(TreeModel):
    """Root of the rendered tree. Front-matter lives in attrs, never in content."""

    type: Literal["doc"] = "doc"
    content: list[BlockNode] = Field(default_factory=list)
    attrs: DocumentAttrs = Field(default_factory=DocumentAttrs)

    def iter_inline(self) -> Iterator[TextNode | ImageNode]:
        """Yield every inline node of every paragraph, in source order."""
        for block in self.content:
            if isinstance(block, ParagraphNode):
                yield from block.content

    def iter_images(self) -> Iterator[ImageNode]:
        for node in self.iter_inline():
            if isinstance(node, ImageNode):
                yield node

    def comment_refs(self) -> list[str]:
        """Comment ids referenced by marks, in order of appearance."""
        return [
            node.comment_id
            for node in self.iter_inline()
            if isinstance(node, TextNode) and node.comment_id is not None
        ]


# === COMMENTS ===


class CommentReply(TreeModel):
    model_config = ConfigDict(extra="allow")

    author: str | None = None
    timestamp: str | int | float | None = None
    body: str = ""


class Comment(TreeModel):
    """Review comment from the trailing appendix. Unknown fields are preserved."""

    model_config = ConfigDict(extra="allow")

    id: str
    author: str | None = None
    timestamp: str | int | float | None = None
    status: str = "open"
    body: str = ""
    thread: list[CommentReply] = Field(default_factory=list)
    anchor_text: str | None = None


# === WARNINGS ===


WarningCode = Literal[
    "dangling_comment_ref",
    "unreferenced_comment",
    "chunk_failed",
    "asset_missing",
    "asset_outside_repository",
    "asset_conflict",
]


class RenderWarning(TreeModel):
    """Localized, non-fatal problem recorded during a render."""

    code: WarningCode
    message: str
    ref: str | None = None
