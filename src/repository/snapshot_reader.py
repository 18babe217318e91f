# src/repository/snapshot_reader.py — v1
"""pygit2-backed read access to a local repository at a given commit.

Reads only what is already present locally: no clone, fetch or pull. All
lookups go through commit objects, never through the working tree, so the
checkout state of the repository does not affect what is read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pygit2

from quartocache.cache.keys import normalize_document_path
from quartocache.core.errors import NotFoundError, RepositoryStateError

logger = logging.getLogger(__name__)


class GitSnapshotReader:
    """Resolve refs and read blobs/trees at a commit.

    A fresh pygit2.Repository is opened per call, so one reader can be shared
    by concurrent requests running in worker threads.
    """

    def resolve_head(self, repo_path: str | Path) -> str:
        """Resolve HEAD (the active branch tip) to a full commit hash.

        Raises:
            RepositoryStateError: Not a repository, or HEAD is unborn (empty repo).
        """
        repo = self._open(repo_path)
        if repo.head_is_unborn:
            raise RepositoryStateError(str(repo_path), "HEAD has no commits")
        try:
            commit = repo.head.peel(pygit2.Commit)
        except (pygit2.GitError, KeyError, ValueError) as exc:
            raise RepositoryStateError(str(repo_path), f"cannot resolve HEAD: {exc}") from exc
        return str(commit.id)

    def resolve_ref(self, repo_path: str | Path, ref: str) -> str:
        """Resolve a branch, tag, revspec or commit hash to a full commit hash.

        Raises:
            RepositoryStateError: The ref does not name a commit.
        """
        repo = self._open(repo_path)
        return str(self._commit(repo, repo_path, ref).id)

    def read_file_at(self, repo_path: str | Path, ref: str, file_path: str) -> bytes:
        """Return the blob content of file_path at ref.

        Raises:
            RepositoryStateError: The ref cannot be resolved.
            NotFoundError: The path is absent at that commit or is a directory.
        """
        repo = self._open(repo_path)
        commit = self._commit(repo, repo_path, ref)
        try:
            path = normalize_document_path(file_path)
        except ValueError as exc:
            raise NotFoundError(file_path, str(commit.id)) from exc
        try:
            entry = commit.tree[path]
        except KeyError as exc:
            raise NotFoundError(path, str(commit.id)) from exc
        obj = repo[entry.id]
        if not isinstance(obj, pygit2.Blob):
            raise NotFoundError(path, str(commit.id))
        return obj.data

    def list_files_at(self, repo_path: str | Path, ref: str) -> list[str]:
        """All blob paths (POSIX, repository-relative) in the tree at ref, sorted."""
        repo = self._open(repo_path)
        commit = self._commit(repo, repo_path, ref)
        return sorted(_walk_tree(repo, commit.tree, ""))

    def list_documents_at(
        self, repo_path: str | Path, ref: str, extension: str = ".qmd"
    ) -> list[str]:
        """Paths of all documents with the given extension at ref."""
        suffix = extension.lower()
        return [
            path
            for path in self.list_files_at(repo_path, ref)
            if path.lower().endswith(suffix)
        ]

    # --- internals ---

    @staticmethod
    def _open(repo_path: str | Path) -> pygit2.Repository:
        try:
            return pygit2.Repository(str(repo_path))
        except (pygit2.GitError, KeyError, ValueError) as exc:
            raise RepositoryStateError(str(repo_path), f"not a git repository: {exc}") from exc

    @staticmethod
    def _commit(repo: pygit2.Repository, repo_path: str | Path, ref: str) -> pygit2.Commit:
        try:
            obj = repo.revparse_single(ref)
            return obj.peel(pygit2.Commit)
        except (pygit2.GitError, KeyError, ValueError) as exc:
            raise RepositoryStateError(str(repo_path), f"cannot resolve ref {ref!r}: {exc}") from exc


def _walk_tree(repo: pygit2.Repository, tree: pygit2.Tree, prefix: str) -> Iterator[str]:
    for entry in tree:
        path = f"{prefix}{entry.name}"
        if entry.type_str == "tree":
            yield from _walk_tree(repo, repo[entry.id], f"{path}/")
        elif entry.type_str == "blob":
            yield path
