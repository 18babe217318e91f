# src/rendering/base_chunk_renderer.py — v1
"""Abstract interface of the external chunk execution engine."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseChunkRenderer(ABC):
    """Turns one code chunk into HTML output.

    Implementations may be slow and may fail; failures are raised as
    ChunkExecutionError (or any exception) and captured by the parser into
    the chunk's node, never aborting the document.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs."""

    @abstractmethod
    async def render(self, code: str, chunk_options: str) -> str:
        """Execute code with the chunk header options and return HTML."""
