# src/rendering/renderer_factory.py — v1
"""Factory: instantiate the chunk renderer from configuration."""

from __future__ import annotations

from quartocache.config.settings import Settings
from quartocache.rendering.base_chunk_renderer import BaseChunkRenderer
from quartocache.rendering.echo_renderer import EchoChunkRenderer


def create_chunk_renderer(settings: Settings) -> BaseChunkRenderer:
    """Create the chunk renderer selected by CHUNK_RENDERER.

    Raises:
        ValueError: If the renderer type is not supported.
    """
    if settings.chunk_renderer == "echo":
        return EchoChunkRenderer()

    if settings.chunk_renderer == "subprocess":
        from quartocache.rendering.subprocess_renderer import SubprocessChunkRenderer

        return SubprocessChunkRenderer(
            command=settings.chunk_render_command,
            timeout_s=settings.chunk_render_timeout_s,
        )

    raise ValueError(f"Unsupported chunk renderer: {settings.chunk_renderer!r}")
