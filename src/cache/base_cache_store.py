# src/cache/base_cache_store.py — v1
"""Abstract cache store interface for rendered documents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from quartocache.cache.models import CacheEntry


class BaseCacheStore(ABC):
    """Unified interface for rendered-document storage backends."""

    @abstractmethod
    def entry_path(self, key: str) -> Path:
        """Location of the entry for a key (whether or not it exists)."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key; None when absent or unreadable."""

    @abstractmethod
    async def get_bytes(self, key: str) -> bytes | None:
        """Raw serialized entry, exactly as persisted."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> bytes:
        """Store a cache entry atomically and return the bytes written."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Whether a complete entry is stored for key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a cache entry (out-of-band eviction only)."""

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """List keys of all stored entries."""
