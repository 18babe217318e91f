# src/rendering/echo_renderer.py — v1
"""Non-executing renderer: shows the chunk source as an HTML listing."""

from __future__ import annotations

import html

from quartocache.rendering.base_chunk_renderer import BaseChunkRenderer
from quartocache.rendering.chunk_options import chunk_engine


class EchoChunkRenderer(BaseChunkRenderer):
    """Renders the escaped source instead of executing it."""

    @property
    def name(self) -> str:
        return "echo"

    async def render(self, code: str, chunk_options: str) -> str:
        engine = chunk_engine(chunk_options) or "text"
        return (
            f'<pre class="quarto-chunk-source"><code class="language-{html.escape(engine)}">'
            f"{html.escape(code)}</code></pre>"
        )
