# src/assets/materializer.py — v1
"""Copy commit-scoped image assets into the served asset cache.

For every local image in a document tree:
  - the reference is resolved against the document's directory in the repo
    (a leading '/' means repository root)
  - the blob is read from the commit, never from the working tree
  - the bytes are written to <assets>/<repoId>/<commit>/<stem>_files/<name>
    with temp-then-rename, unless an identical file is already there
  - the node's src is rewritten to the served URL and the original kept

Asset names are the path relative to the document directory, with a leading
'<stem>_files/' dropped. References that leave the document directory are
stored under '_repo/<repository path>'. The same path is the fallback when
the short name is taken: by another reference of this document, or on disk
with different bytes by a document sharing the stem. A node is only rewritten
to a file holding exactly its blob. Remote, protocol-relative and data: URLs
are left as they are.

Failures are per asset: the node gets a warning, the render carries on.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from pathlib import Path
from urllib.parse import unquote, urlsplit

from quartocache.cache.keys import asset_dir_name, asset_url, derive_asset_dir
from quartocache.config.settings import CacheConfig
from quartocache.core.errors import CacheWriteError, NotFoundError, RepositoryStateError
from quartocache.core.models import Document, ImageNode, RenderWarning
from quartocache.repository.snapshot_reader import GitSnapshotReader
from quartocache.storage.local_writer import LocalWriter

logger = logging.getLogger(__name__)

OUTSIDE_DOCUMENT_PREFIX = "_repo"


class AssetMaterializer:
    """Materialize image assets of one document at one commit."""

    def __init__(self, config: CacheConfig, reader: GitSnapshotReader) -> None:
        self._config = config
        self._reader = reader
        self._writer = LocalWriter()

    async def materialize(
        self,
        repo_id: str,
        repo_path: str | Path,
        commit: str,
        document_path: str,
        document: Document,
    ) -> tuple[Document, list[RenderWarning]]:
        """Return a rewritten copy of document plus per-asset warnings.

        The input document is not modified.
        """
        return await asyncio.to_thread(
            self._materialize_sync, repo_id, repo_path, commit, document_path, document
        )

    def _materialize_sync(
        self,
        repo_id: str,
        repo_path: str | Path,
        commit: str,
        document_path: str,
        document: Document,
    ) -> tuple[Document, list[RenderWarning]]:
        tree = document.model_copy(deep=True)
        images = list(tree.iter_images())
        if not images:
            return tree, []

        asset_dir = derive_asset_dir(
            self._config.assets_dir, repo_id, document_path, commit, self._config.asset_dir_suffix
        )
        repo_files = set(self._reader.list_files_at(repo_path, commit))
        warnings: list[RenderWarning] = []
        claimed: dict[str, str] = {}
        written = 0

        for node in images:
            src = node.attrs.src
            if not src or _is_remote(src):
                continue

            repo_relative = _repo_relative(document_path, src)
            if repo_relative is None:
                warnings.append(_flag(node, "asset_outside_repository", f"{src!r} leaves the repository"))
                continue
            if repo_relative not in repo_files:
                warnings.append(_flag(node, "asset_missing", f"{src!r} is not in commit {commit[:10]}"))
                continue

            try:
                data = self._reader.read_file_at(repo_path, commit, repo_relative)
            except (NotFoundError, RepositoryStateError) as exc:
                warnings.append(_flag(node, "asset_missing", str(exc)))
                continue

            name, is_new = self._place(asset_dir, document_path, repo_relative, data, claimed)
            if name is None:
                warnings.append(
                    _flag(node, "asset_conflict", f"{src!r} collides with a different materialized file")
                )
                continue
            if is_new:
                written += 1

            node.attrs.original_src = src
            node.attrs.src = asset_url(
                self._config.asset_route,
                repo_id,
                commit,
                document_path,
                name,
                self._config.asset_dir_suffix,
            )

        if written:
            logger.info("Materialized %d asset(s) into %s", written, asset_dir)
        return tree, warnings

    def _place(
        self,
        asset_dir: Path,
        document_path: str,
        repo_relative: str,
        data: bytes,
        claimed: dict[str, str],
    ) -> tuple[str | None, bool]:
        """Pick a name holding exactly `data` and write it if needed.

        The short name is tried first, then `_repo/<repository path>`. A name
        is unusable when another reference of this document claimed it or the
        file on disk holds different bytes (written by a document with the
        same stem). Returns (name, newly_written); name is None if both fail.
        """
        for name in dict.fromkeys(
            (self._asset_name(document_path, repo_relative), _fallback_name(repo_relative))
        ):
            if claimed.get(name, repo_relative) != repo_relative:
                continue
            target = asset_dir / name
            if self._writer.has_content(target, data):
                claimed[name] = repo_relative
                return name, False
            if self._writer.exists(target) or target.is_dir():
                logger.info("Asset %s holds different bytes, trying another name", target)
                continue
            try:
                self._writer.write(target, data)
            except OSError as exc:
                raise CacheWriteError(str(target), exc) from exc
            claimed[name] = repo_relative
            return name, True
        return None, False

    def _asset_name(self, document_path: str, repo_relative: str) -> str:
        doc_dir = posixpath.dirname(document_path)
        if doc_dir:
            if not repo_relative.startswith(f"{doc_dir}/"):
                return _fallback_name(repo_relative)
            name = repo_relative[len(doc_dir) + 1:]
        else:
            name = repo_relative
        own_dir = f"{asset_dir_name(document_path, self._config.asset_dir_suffix)}/"
        if name.startswith(own_dir) and len(name) > len(own_dir):
            name = name[len(own_dir):]
        return name


def _fallback_name(repo_relative: str) -> str:
    return f"{OUTSIDE_DOCUMENT_PREFIX}/{repo_relative}"


def _is_remote(src: str) -> bool:
    if src.startswith("//"):
        return True
    parts = urlsplit(src)
    return bool(parts.scheme) or bool(parts.netloc)


def _repo_relative(document_path: str, src: str) -> str | None:
    """Repository path of an image reference, or None if it leaves the repo."""
    path = unquote(urlsplit(src).path).replace("\\", "/")
    if path.startswith("/"):
        joined = path.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(document_path), path)
    normalized = posixpath.normpath(joined)
    if normalized in (".", "") or normalized == ".." or normalized.startswith("../"):
        return None
    return normalized


def _flag(node: ImageNode, code: str, message: str) -> RenderWarning:
    logger.warning("Asset not materialized: %s", message)
    node.attrs.warning = message
    return RenderWarning(code=code, message=message, ref=node.attrs.src)
