# src/core/errors.py — v1
"""Error taxonomy shared by the reader, parser, materializer and cache manager.

Fatal to a request: RepositoryStateError, NotFoundError, CacheWriteError,
RenderError. Captured per node and never fatal: ChunkExecutionError.
Recovered locally with defaults: MalformedInputError.
"""

from __future__ import annotations


class QuartoCacheError(Exception):
    """Base class for all quartocache errors."""


class RepositoryStateError(QuartoCacheError):
    """Repository missing, not initialized, or ref cannot be resolved."""

    def __init__(self, repo_path: str, message: str) -> None:
        self.repo_path = repo_path
        super().__init__(f"{repo_path}: {message}")


class NotFoundError(QuartoCacheError):
    """Document or asset absent at the resolved commit."""

    def __init__(self, path: str, commit: str | None = None) -> None:
        self.path = path
        self.commit = commit
        where = f" at {commit}" if commit else ""
        super().__init__(f"{path!r} not found{where}")


class ChunkExecutionError(QuartoCacheError):
    """The chunk renderer failed for a single chunk."""

    def __init__(self, message: str, exit_code: int | None = None, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


class CacheWriteError(QuartoCacheError):
    """A cache entry or asset could not be persisted."""

    def __init__(self, path: str, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")


class MalformedInputError(QuartoCacheError):
    """Front-matter or comment appendix could not be parsed."""


class RenderError(QuartoCacheError):
    """Unexpected failure at a named cache manager stage."""

    def __init__(self, stage: str, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Render failed during {stage}: {cause}")
