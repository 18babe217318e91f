# src/cache/eviction.py — v1
"""Out-of-band cache eviction.

Entries are never patched or removed by the render path; these helpers are
for operators (CLI `reset`) and tests. They must not run while renders for
the affected keys are in flight.
"""

from __future__ import annotations

import logging

from quartocache.cache.keys import CACHE_ENTRY_EXTENSION, validate_commit, validate_repo_id
from quartocache.config.settings import CacheConfig
from quartocache.storage.local_writer import LocalWriter

logger = logging.getLogger(__name__)


def reset_cache(config: CacheConfig) -> int:
    """Empty the rendered-docs and assets directories. Returns entries removed."""
    writer = LocalWriter()
    removed = 0
    for name in writer.list_dir(config.rendered_docs_dir):
        writer.remove(config.rendered_docs_dir / name)
        if name.endswith(CACHE_ENTRY_EXTENSION):
            removed += 1
    for name in writer.list_dir(config.assets_dir):
        writer.remove(config.assets_dir / name)
    logger.info("Cache reset: %d rendered entries removed from %s", removed, config.cache_root)
    return removed


def evict_repository(config: CacheConfig, repo_id: str | int) -> int:
    """Remove every entry and asset of one repository."""
    repo_id = validate_repo_id(repo_id)
    writer = LocalWriter()
    removed = _remove_entries(config, writer, repo_id, commit=None)
    writer.remove(config.assets_dir / repo_id)
    logger.info("Evicted repository %s: %d entries", repo_id, removed)
    return removed


def evict_commit(config: CacheConfig, repo_id: str | int, commit: str) -> int:
    """Remove entries and assets of one repository at one commit."""
    repo_id = validate_repo_id(repo_id)
    commit = validate_commit(commit)
    writer = LocalWriter()
    removed = _remove_entries(config, writer, repo_id, commit=commit)
    writer.remove(config.assets_dir / repo_id / commit)
    logger.info("Evicted %s@%s: %d entries", repo_id, commit[:10], removed)
    return removed


def _remove_entries(
    config: CacheConfig, writer: LocalWriter, repo_id: str, commit: str | None
) -> int:
    removed = 0
    for name in writer.list_dir(config.rendered_docs_dir):
        if not name.endswith(CACHE_ENTRY_EXTENSION):
            continue
        # <repoId>-<md5>-<commit>; repo ids may themselves contain '-'.
        parts = name[: -len(CACHE_ENTRY_EXTENSION)].rsplit("-", 2)
        if len(parts) != 3 or parts[0] != repo_id:
            continue
        if commit is not None and parts[2] != commit:
            continue
        if writer.remove(config.rendered_docs_dir / name):
            removed += 1
    return removed
