# src/cache/manager.py — v1
"""Rendering cache manager: commit-addressed render-or-load for one document.

Per request:
  RESOLVE_COMMIT -> CHECK_CACHE -> HIT: return stored entry
                                 MISS: READ_SOURCE -> EXTRACT_COMMENTS -> PARSE
                                       -> MATERIALIZE_ASSETS -> PERSIST -> return

Concurrent misses on one cache key share a single execution (SingleFlight);
different keys never wait on each other. A hit performs reads only. On a miss
the returned entry is decoded from the exact bytes that were persisted, so a
later hit returns the same content.

Typed errors (RepositoryStateError, NotFoundError, CacheWriteError) propagate
unchanged; anything unexpected is wrapped in RenderError naming the stage.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, Sequence

from quartocache.assets.materializer import AssetMaterializer
from quartocache.cache.base_cache_store import BaseCacheStore
from quartocache.cache.json_store import JsonCacheStore
from quartocache.cache.keys import doc_cache_key, normalize_document_path, validate_repo_id
from quartocache.cache.models import TREE_FORMAT_VERSION, CacheEntry, RenderOutcome
from quartocache.cache.single_flight import SingleFlight
from quartocache.config.settings import CacheConfig, Settings
from quartocache.core.errors import NotFoundError, QuartoCacheError, RenderError
from quartocache.extraction.comment_appendix import extract_comments
from quartocache.extraction.qmd_parser import DEFAULT_EXECUTABLE_ENGINES, QmdParser
from quartocache.logging.context import (
    set_commit_context,
    set_document_context,
    set_stage_context,
)
from quartocache.rendering.base_chunk_renderer import BaseChunkRenderer
from quartocache.rendering.renderer_factory import create_chunk_renderer
from quartocache.repository.snapshot_reader import GitSnapshotReader

logger = logging.getLogger(__name__)


class RenderStage(str, Enum):
    RESOLVE_COMMIT = "RESOLVE_COMMIT"
    CHECK_CACHE = "CHECK_CACHE"
    READ_SOURCE = "READ_SOURCE"
    EXTRACT_COMMENTS = "EXTRACT_COMMENTS"
    PARSE = "PARSE"
    MATERIALIZE_ASSETS = "MATERIALIZE_ASSETS"
    PERSIST = "PERSIST"


class RenderCacheManager:
    """Serve rendered documents from the cache, rendering on a miss.

    Usage:
        manager = RenderCacheManager(config, GitSnapshotReader(), EchoChunkRenderer())
        outcome = await manager.render("42", "/srv/repos/42", "reports/q3.qmd")
    """

    def __init__(
        self,
        config: CacheConfig,
        reader: GitSnapshotReader,
        renderer: BaseChunkRenderer,
        store: BaseCacheStore | None = None,
        executable_engines: Sequence[str] = DEFAULT_EXECUTABLE_ENGINES,
    ) -> None:
        self._config = config
        self._reader = reader
        self._renderer = renderer
        self._store = store or JsonCacheStore(config.rendered_docs_dir)
        self._parser = QmdParser(renderer, executable_engines)
        self._materializer = AssetMaterializer(config, reader)
        self._flight: SingleFlight[RenderOutcome] = SingleFlight()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        renderer: BaseChunkRenderer | None = None,
    ) -> RenderCacheManager:
        """Build a manager with the configured cache layout and chunk renderer."""
        return cls(
            config=CacheConfig.from_settings(settings),
            reader=GitSnapshotReader(),
            renderer=renderer or create_chunk_renderer(settings),
            executable_engines=settings.executable_engines_list,
        )

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def store(self) -> BaseCacheStore:
        return self._store

    async def render(
        self,
        repo_id: str | int,
        repo_path: str | Path,
        file_path: str,
        ref: str | None = None,
    ) -> RenderOutcome:
        """Return the rendered document for file_path at ref (default HEAD).

        Args:
            repo_id: Stable repository identifier used in cache names.
            repo_path: Local path of the git repository.
            file_path: Repository-relative document path.
            ref: Branch, tag or commit; None means the active branch tip.

        Raises:
            RepositoryStateError: Repository missing, empty, or ref unresolvable.
            NotFoundError: Document absent at the resolved commit.
            CacheWriteError: Entry or asset could not be persisted.
            RenderError: Unexpected failure, with the stage it happened in.
        """
        repo_id = validate_repo_id(repo_id)
        try:
            file_path = normalize_document_path(file_path)
        except ValueError as exc:
            raise NotFoundError(file_path) from exc
        set_document_context(repo_id, file_path)

        with _stage(RenderStage.RESOLVE_COMMIT):
            commit = await asyncio.to_thread(self._resolve_commit, repo_path, ref)
        set_commit_context(commit)
        key = doc_cache_key(repo_id, file_path, commit)

        with _stage(RenderStage.CHECK_CACHE):
            cached = await self._lookup(key)
        if cached is not None:
            logger.info("Cache hit: %s", key)
            set_stage_context(None)
            return RenderOutcome(entry=cached, cache_hit=True, cache_path=self._store.entry_path(key))

        if self._flight.in_flight(key):
            logger.info("Cache miss, waiting for in-flight render: %s", key)
        else:
            logger.info("Cache miss: %s", key)
        outcome = await self._flight.do(
            key, lambda: self._render_miss(key, repo_id, repo_path, file_path, commit)
        )
        set_stage_context(None)
        return outcome

    # --- internals ---

    def _resolve_commit(self, repo_path: str | Path, ref: str | None) -> str:
        if ref is None:
            return self._reader.resolve_head(repo_path)
        return self._reader.resolve_ref(repo_path, ref)

    async def _lookup(self, key: str) -> CacheEntry | None:
        entry = await self._store.get(key)
        if entry is None:
            return None
        if entry.format_version != TREE_FORMAT_VERSION:
            logger.info(
                "Ignoring cache entry %s written with tree format %d (current %d)",
                key,
                entry.format_version,
                TREE_FORMAT_VERSION,
            )
            return None
        return entry

    async def _render_miss(
        self,
        key: str,
        repo_id: str,
        repo_path: str | Path,
        file_path: str,
        commit: str,
    ) -> RenderOutcome:
        # A render for this key may have finished between the lookup and
        # joining the flight.
        cached = await self._lookup(key)
        if cached is not None:
            return RenderOutcome(entry=cached, cache_hit=True, cache_path=self._store.entry_path(key))

        with _stage(RenderStage.READ_SOURCE):
            raw = await asyncio.to_thread(self._reader.read_file_at, repo_path, commit, file_path)
            text = raw.decode("utf-8", errors="replace")

        with _stage(RenderStage.EXTRACT_COMMENTS):
            comments, remaining = extract_comments(text)

        with _stage(RenderStage.PARSE):
            parsed = await self._parser.parse(remaining, comments)

        with _stage(RenderStage.MATERIALIZE_ASSETS):
            document, asset_warnings = await self._materializer.materialize(
                repo_id, repo_path, commit, file_path, parsed.document
            )

        entry = CacheEntry(
            key=key,
            repo_id=repo_id,
            file_path=file_path,
            commit=commit,
            document=document,
            comments=parsed.comments,
            warnings=parsed.warnings + asset_warnings,
            created_at=datetime.now(timezone.utc),
        )

        with _stage(RenderStage.PERSIST):
            payload = await self._store.put(key, entry)
            stored = CacheEntry.model_validate_json(payload)

        logger.info(
            "Rendered %s at %s: %d blocks, %d comments, %d warnings",
            file_path,
            commit[:10],
            len(stored.document.content),
            len(stored.comments),
            len(stored.warnings),
        )
        return RenderOutcome(entry=stored, cache_hit=False, cache_path=self._store.entry_path(key))


@contextmanager
def _stage(stage: RenderStage) -> Iterator[None]:
    """Tag logs with the stage and wrap untyped failures in RenderError."""
    set_stage_context(stage.value)
    try:
        yield
    except QuartoCacheError:
        raise
    except Exception as exc:
        logger.exception("Unexpected failure during %s", stage.value)
        raise RenderError(stage.value, exc) from exc
