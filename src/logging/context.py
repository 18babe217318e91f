# src/logging/context.py — v1
"""Contextual logging support: attach repo_id, commit, document and stage to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per render request.
_repo_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "repo_id", default=None
)
_commit: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "commit", default=None
)
_document: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    repo_id: str | None = None
    commit: str | None = None
    document: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        repo_id=_repo_id.get(),
        commit=_commit.get(),
        document=_document.get(),
        stage=_stage.get(),
    )


def set_document_context(repo_id: str, document: str, commit: str | None = None) -> None:
    """Set request-level context (called once per render request)."""
    _repo_id.set(repo_id)
    _document.set(document)
    _commit.set(commit)


def set_commit_context(commit: str) -> None:
    _commit.set(commit)


def set_stage_context(stage: str | None) -> None:
    """Set the current render stage (RESOLVE_COMMIT, PARSE, ...)."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _repo_id.set(None)
    _commit.set(None)
    _document.set(None)
    _stage.set(None)
