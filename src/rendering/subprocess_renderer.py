# src/rendering/subprocess_renderer.py — v1
"""Renderer that runs an external command (by default `quarto render`) per chunk.

Each chunk is written to a one-chunk .qmd file in a private temporary
directory; the command's stdout is the rendered HTML.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import tempfile
from pathlib import Path

from quartocache.core.errors import ChunkExecutionError
from quartocache.rendering.base_chunk_renderer import BaseChunkRenderer

logger = logging.getLogger(__name__)

_STDERR_TAIL = 2000


class SubprocessChunkRenderer(BaseChunkRenderer):
    """Execute chunks through a command template containing `{input}`."""

    def __init__(self, command: str, timeout_s: float = 120.0) -> None:
        self._argv = shlex.split(command)
        if not any("{input}" in arg for arg in self._argv):
            raise ValueError("render command must contain an {input} placeholder")
        self._timeout_s = timeout_s

    @property
    def name(self) -> str:
        return f"subprocess:{Path(self._argv[0]).name}"

    async def render(self, code: str, chunk_options: str) -> str:
        with tempfile.TemporaryDirectory(prefix="quartocache-chunk-") as workdir:
            source = Path(workdir) / "chunk.qmd"
            source.write_text(_chunk_document(code, chunk_options), encoding="utf-8")
            argv = [arg.replace("{input}", str(source)) for arg in self._argv]
            return await self._run(argv, workdir)

    async def _run(self, argv: list[str], workdir: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=workdir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ChunkExecutionError(f"cannot start {argv[0]!r}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._timeout_s)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise ChunkExecutionError(
                f"chunk timed out after {self._timeout_s:g}s"
            ) from exc

        err_text = stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL:]
        if proc.returncode != 0:
            raise ChunkExecutionError(
                f"{Path(argv[0]).name} exited with status {proc.returncode}",
                exit_code=proc.returncode,
                stderr=err_text,
            )
        if err_text.strip():
            logger.debug("Chunk renderer stderr: %s", err_text.strip())
        return stdout.decode("utf-8", errors="replace")


def _chunk_document(code: str, chunk_options: str) -> str:
    return f"```{chunk_options}\n{code.rstrip()}\n```\n"
