# src/api/facade.py — v2
"""Public API facade: render a document, list documents.

Usage:
    from quartocache.api.facade import render_document
    response = await render_document(RenderRequest(repo_id="42", repo_path=path, file_path="doc.qmd"))

Fatal errors are turned into a status instead of an exception:
  NotFoundError        -> not_found         404
  RepositoryStateError -> repository_error  409
  anything else        -> render_failed     500
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from quartocache.api.models import DocumentListing, RenderRequest, RenderResponse
from quartocache.cache.manager import RenderCacheManager
from quartocache.config.settings import Settings
from quartocache.core.errors import NotFoundError, QuartoCacheError, RepositoryStateError
from quartocache.logging.context import clear_context
from quartocache.rendering.base_chunk_renderer import BaseChunkRenderer
from quartocache.repository.snapshot_reader import GitSnapshotReader

logger = logging.getLogger(__name__)


async def render_document(
    request: RenderRequest,
    settings: Settings | None = None,
    renderer: BaseChunkRenderer | None = None,
    manager: RenderCacheManager | None = None,
) -> RenderResponse:
    """Render (or load from cache) one document and report the outcome.

    Args:
        request: Repository, document path and optional ref.
        settings: Global settings. Loaded from .env if None.
        renderer: Chunk renderer override. Built from settings if None.
        manager: Long-lived manager to reuse. Built from settings if None;
            servers should pass one so single-flight spans requests.

    Returns:
        RenderResponse; never raises for request-level failures.
    """
    if manager is None:
        manager = RenderCacheManager.from_settings(settings or Settings(), renderer=renderer)

    try:
        outcome = await manager.render(
            request.repo_id, request.repo_path, request.file_path, request.ref
        )
    except NotFoundError as exc:
        logger.info("Document not found: %s", exc)
        return RenderResponse(status="not_found", http_status=404, commit=exc.commit, error=str(exc))
    except RepositoryStateError as exc:
        logger.warning("Repository error: %s", exc)
        return RenderResponse(status="repository_error", http_status=409, error=str(exc))
    except (QuartoCacheError, ValueError) as exc:
        logger.error("Render failed: %s", exc)
        return RenderResponse(status="render_failed", http_status=500, error=str(exc))
    finally:
        clear_context()

    entry = outcome.entry
    return RenderResponse(
        status="ok",
        http_status=200,
        document=entry.document,
        comments=entry.comments,
        warnings=entry.warnings,
        commit=entry.commit,
        cache_hit=outcome.cache_hit,
    )


async def list_documents(
    repo_path: str | Path,
    ref: str | None = None,
    settings: Settings | None = None,
) -> DocumentListing:
    """List documents at ref (default HEAD).

    Raises:
        RepositoryStateError: Repository missing, empty, or ref unresolvable.
    """
    settings = settings or Settings()
    reader = GitSnapshotReader()

    def _list() -> DocumentListing:
        commit = reader.resolve_head(repo_path) if ref is None else reader.resolve_ref(repo_path, ref)
        documents = reader.list_documents_at(repo_path, commit, settings.document_extension)
        return DocumentListing(commit=commit, documents=documents)

    return await asyncio.to_thread(_list)
