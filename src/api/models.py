# src/api/models.py — v2
"""API-level models: RenderRequest, RenderResponse, DocumentListing."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from quartocache.core.models import Comment, Document, RenderWarning, TreeModel

RenderStatus = Literal["ok", "not_found", "repository_error", "render_failed"]


class RenderRequest(BaseModel):
    """One document to render from a local repository."""

    repo_id: str
    repo_path: Path
    file_path: str
    ref: str | None = None


class RenderResponse(TreeModel):
    """Return value of facade.render_document().

    Serialized with camelCase names like the document tree. status/http_status
    distinguish a missing document from a failed render.
    Chunk and asset failures stay inside the document and do not change status.
    """

    status: RenderStatus
    http_status: int
    document: Document | None = None
    comments: list[Comment] = Field(default_factory=list)
    warnings: list[RenderWarning] = Field(default_factory=list)
    commit: str | None = None
    cache_hit: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class DocumentListing(TreeModel):
    """Documents present in a repository at one commit."""

    commit: str
    documents: list[str] = Field(default_factory=list)
