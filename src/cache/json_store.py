# src/cache/json_store.py — v2
"""JSON file-based cache store for rendered documents.

Stores each cache entry as an individual JSON file under the rendered-docs
root, named `<key>.json`. Writes are atomic (temp file + rename).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from quartocache.cache.base_cache_store import BaseCacheStore
from quartocache.cache.keys import CACHE_ENTRY_EXTENSION
from quartocache.cache.models import CacheEntry
from quartocache.core.errors import CacheWriteError
from quartocache.storage.local_writer import LocalWriter

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path) -> None:
        self._root = Path(cache_root).expanduser()
        self._writer = LocalWriter()

    @property
    def root(self) -> Path:
        return self._root

    def entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self._root / f"{key}{CACHE_ENTRY_EXTENSION}"

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        payload = await self.get_bytes(key)
        if payload is None:
            return None
        try:
            return CacheEntry.model_validate_json(payload)
        except (ValidationError, ValueError) as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

    async def get_bytes(self, key: str) -> bytes | None:
        path = self.entry_path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, NotADirectoryError):
            return None

    async def put(self, key: str, entry: CacheEntry) -> bytes:
        """Store a cache entry atomically."""
        path = self.entry_path(key)
        payload = entry.model_dump_json(by_alias=True, indent=2).encode("utf-8")
        try:
            await asyncio.to_thread(self._writer.write, path, payload)
        except OSError as e:
            raise CacheWriteError(str(path), e) from e
        logger.debug("Cache entry written: %s (%d bytes)", path.name, len(payload))
        return payload

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._writer.exists, self.entry_path(key))

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        await asyncio.to_thread(self._writer.remove, self.entry_path(key))

    async def list_keys(self) -> list[str]:
        """List all cached entry keys."""
        names = await asyncio.to_thread(self._writer.list_dir, self._root)
        return [
            name[: -len(CACHE_ENTRY_EXTENSION)]
            for name in names
            if name.endswith(CACHE_ENTRY_EXTENSION) and not name.startswith(".")
        ]
