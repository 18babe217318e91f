# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides throwaway git repositories built with pygit2, an isolated cache
layout under tmp_path, and a counting chunk renderer. No network, no quarto.
"""

from __future__ import annotations

import asyncio
import itertools
from pathlib import Path

import pygit2
import pytest

from quartocache.config.settings import CacheConfig
from quartocache.core.errors import ChunkExecutionError
from quartocache.core.models import Comment
from quartocache.extraction.comment_appendix import append_comments_appendix
from quartocache.rendering.base_chunk_renderer import BaseChunkRenderer

# PNG signature followed by arbitrary payload; only byte identity matters.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(256))

SAMPLE_BODY = """---
title: Quarterly report
author: Ana
---

# Results

Hello [world]{.comment ref="c1"}

```{python}
#| label: fig-sales
print("sales")
```

![Sales chart](img/sales.png)
"""


def make_document(body: str = SAMPLE_BODY, comments: list[Comment] | None = None) -> str:
    """Document source: body plus a comment appendix."""
    if comments is None:
        comments = [Comment(id="c1", author="Ana", body="Which world?")]
    return append_comments_appendix(body, comments)


# === Git repositories ===


class GitRepoBuilder:
    """Create commits and branches in a throwaway repository."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.mkdir(parents=True, exist_ok=True)
        self.repo = pygit2.init_repository(str(path), initial_head="main")
        self._clock = itertools.count(1_700_000_000, 60)

    def commit(
        self,
        files: dict[str, str | bytes],
        message: str = "update",
        remove: tuple[str, ...] = (),
    ) -> str:
        """Write files into the working tree, stage them and commit on HEAD."""
        index = self.repo.index
        index.read()
        for rel, content in files.items():
            target = self.path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content.encode("utf-8") if isinstance(content, str) else content)
            index.add(rel)
        for rel in remove:
            index.remove(rel)
            (self.path / rel).unlink()
        index.write()
        tree = index.write_tree()
        sig = pygit2.Signature("Test Author", "test@example.com", next(self._clock), 0)
        parents = [] if self.repo.head_is_unborn else [self.repo.head.target]
        return str(self.repo.create_commit("HEAD", sig, sig, message, tree, parents))

    def create_branch(self, name: str) -> None:
        head = self.repo[self.repo.head.target]
        self.repo.branches.local.create(name, head)

    def checkout(self, name: str) -> None:
        self.repo.checkout(f"refs/heads/{name}")

    @property
    def head(self) -> str:
        return str(self.repo.head.target)


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepoBuilder:
    """Empty repository (unborn HEAD on 'main')."""
    return GitRepoBuilder(tmp_path / "repo")


@pytest.fixture
def doc_repo(git_repo: GitRepoBuilder) -> GitRepoBuilder:
    """Repository with one commented document, one chunk and one image."""
    git_repo.commit(
        {
            "reports/q3.qmd": make_document(),
            "reports/img/sales.png": PNG_BYTES,
            "README.md": "# repo\n",
        },
        message="initial",
    )
    return git_repo


# === Cache ===


@pytest.fixture
def cache_config(tmp_path: Path) -> CacheConfig:
    return CacheConfig.under(tmp_path / "cache")


# === Chunk renderer ===


class CountingRenderer(BaseChunkRenderer):
    """Renderer that records every call instead of executing code.

    Args:
        fail_on: Raise ChunkExecutionError for code containing this text.
        delay: Seconds to sleep per chunk (simulates slow execution).
        gate: When set, each render waits for this event before returning.
    """

    def __init__(
        self,
        fail_on: str | None = None,
        delay: float = 0.0,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_on = fail_on
        self.delay = delay
        self.gate = gate
        self.started = asyncio.Event()

    @property
    def name(self) -> str:
        return "counting"

    async def render(self, code: str, chunk_options: str) -> str:
        self.calls.append((code, chunk_options))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on is not None and self.fail_on in code:
            raise ChunkExecutionError("boom", exit_code=1, stderr="Traceback: boom")
        return f'<div class="cell-output">{len(self.calls)}</div>'


@pytest.fixture
def renderer() -> CountingRenderer:
    return CountingRenderer()
