# src/cache/keys.py — v1
"""Deterministic cache keys and paths for rendered documents and their assets.

Everything here is pure: the same (repo_id, file_path, commit) always maps to
the same paths, across processes and machines. No clock, pid or random input.

Layout under the cache root:
    rendered_docs/<repoId>-<md5(filePath)>-<commit>.json
    assets/<repoId>/<commit>/<documentStem>_files/<asset>
Served asset URL:
    /<asset-route>/<repoId>/<commit>/<documentStem>_files/<asset>
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path, PurePosixPath
from urllib.parse import quote

DEFAULT_ASSET_DIR_SUFFIX = "_files"
CACHE_ENTRY_EXTENSION = ".json"

_COMMIT_RE = re.compile(r"^[0-9a-f]{40}$|^[0-9a-f]{64}$")
_UNSAFE_REPO_ID_RE = re.compile(r"[/\\\x00]")


def path_hash(file_path: str) -> str:
    """Fixed-length hash of a normalized document path (not security relevant)."""
    normalized = normalize_document_path(file_path)
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()  # noqa: S324


def normalize_document_path(file_path: str) -> str:
    """Return a repository-relative POSIX path.

    Raises:
        ValueError: If the path is empty, absolute, or escapes the repository.
    """
    raw = file_path.replace("\\", "/").strip()
    if not raw or raw.startswith("/"):
        raise ValueError(f"Document path must be repository-relative: {file_path!r}")
    parts: list[str] = []
    for part in PurePosixPath(raw).parts:
        if part == ".":
            continue
        if part == "..":
            raise ValueError(f"Document path escapes the repository: {file_path!r}")
        parts.append(part)
    if not parts:
        raise ValueError(f"Document path must name a file: {file_path!r}")
    return "/".join(parts)


def validate_repo_id(repo_id: str | int) -> str:
    value = str(repo_id)
    if not value or value in (".", "..") or _UNSAFE_REPO_ID_RE.search(value):
        raise ValueError(f"Unsafe repository id: {repo_id!r}")
    return value


def validate_commit(commit: str) -> str:
    value = commit.strip().lower()
    if not _COMMIT_RE.match(value):
        raise ValueError(f"Not a full commit hash: {commit!r}")
    return value


def document_stem(file_path: str) -> str:
    """Base name without extension: 'reports/doc.qmd' -> 'doc'."""
    return PurePosixPath(normalize_document_path(file_path)).stem


def asset_dir_name(file_path: str, suffix: str = DEFAULT_ASSET_DIR_SUFFIX) -> str:
    return f"{document_stem(file_path)}{suffix}"


def doc_cache_key(repo_id: str | int, file_path: str, commit: str) -> str:
    """Cache key `<repoId>-<hash(filePath)>-<commit>`."""
    return f"{validate_repo_id(repo_id)}-{path_hash(file_path)}-{validate_commit(commit)}"


def derive_doc_cache_key(
    rendered_root: Path, repo_id: str | int, file_path: str, commit: str
) -> Path:
    """Path of the cache entry file for one document at one commit."""
    return Path(rendered_root) / f"{doc_cache_key(repo_id, file_path, commit)}{CACHE_ENTRY_EXTENSION}"


def derive_asset_dir(
    assets_root: Path,
    repo_id: str | int,
    file_name: str,
    commit: str,
    suffix: str = DEFAULT_ASSET_DIR_SUFFIX,
) -> Path:
    """Commit-scoped asset directory for one document."""
    return (
        Path(assets_root)
        / validate_repo_id(repo_id)
        / validate_commit(commit)
        / asset_dir_name(file_name, suffix)
    )


def asset_url(
    route: str,
    repo_id: str | int,
    commit: str,
    file_path: str,
    asset_name: str,
    suffix: str = DEFAULT_ASSET_DIR_SUFFIX,
) -> str:
    """Served URL of a materialized asset. Needs no state lookup to compute."""
    asset = quote(normalize_document_path(asset_name), safe="/")
    return "/".join(
        [
            route.rstrip("/"),
            quote(validate_repo_id(repo_id), safe=""),
            validate_commit(commit),
            quote(asset_dir_name(file_path, suffix), safe=""),
            asset,
        ]
    )


def resolve_asset_file(
    assets_root: Path,
    repo_id: str | int,
    commit: str,
    dir_name: str,
    asset_name: str,
    suffix: str = DEFAULT_ASSET_DIR_SUFFIX,
) -> Path:
    """Map the components of a served asset URL back to a file path.

    Raises:
        ValueError: If any component is malformed or would leave the
            commit's asset directory.
    """
    if not dir_name.endswith(suffix) or "/" in dir_name or dir_name in (".", ".."):
        raise ValueError(f"Not an asset directory name: {dir_name!r}")
    relative = normalize_document_path(asset_name)
    return (
        Path(assets_root)
        / validate_repo_id(repo_id)
        / validate_commit(commit)
        / dir_name
        / relative
    )
