# src/cache/models.py — v1
"""Cache domain models: CacheEntry, RenderOutcome."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from quartocache.core.models import Comment, Document, RenderWarning, TreeModel

# Bump whenever the serialized tree changes meaning (e.g. comment marker
# syntax). Entries written with another version are re-rendered.
TREE_FORMAT_VERSION = 1


class CacheEntry(TreeModel):
    """One rendered document at one commit. Written once, never patched."""

    key: str
    repo_id: str
    file_path: str
    commit: str
    format_version: int = TREE_FORMAT_VERSION
    document: Document
    comments: list[Comment] = Field(default_factory=list)
    warnings: list[RenderWarning] = Field(default_factory=list)
    created_at: datetime


class RenderOutcome(BaseModel):
    """What the cache manager hands back for a render request."""

    entry: CacheEntry
    cache_hit: bool
    cache_path: Path
