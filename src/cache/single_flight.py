# src/cache/single_flight.py — v1
"""Per-key single-flight execution for concurrent cache misses.

The first caller for a key starts the work as its own task; later callers for
the same key await that task instead of starting another. Callers await
through asyncio.shield, so a caller that goes away does not cancel work other
callers (or the cache) are waiting for. The key is released when the task
finishes, successfully or not. Different keys never share anything.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Registry of in-flight tasks keyed by string."""

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[T]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn once per key at a time and share its result with all waiters."""
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))
        else:
            logger.debug("Joining in-flight render for %s", key)
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[T]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the outcome as retrieved when every waiter has gone away.
        if not task.cancelled():
            task.exception()
