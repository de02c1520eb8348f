"""
Single Flight
=============

Collapses concurrent computations of the same key into one task.

The first caller for a key starts the computation; later callers await the
same task. Each caller waits through ``asyncio.shield`` so one caller being
cancelled does not cancel the shared work. When the last waiter leaves
before completion, the task is cancelled and the key forgotten.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class _Call(Generic[V]):
    task: asyncio.Task[V]
    waiters: int = 0


class SingleFlight(Generic[K, V]):
    """Per-key in-flight deduplication. Only keys in flight hold state."""

    def __init__(self) -> None:
        self._calls: dict[K, _Call[V]] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def in_flight(self, key: K) -> bool:
        return key in self._calls

    async def do(self, key: K, fn: Callable[[], Coroutine[Any, Any, V]]) -> V:
        """
        Run ``fn`` once for every concurrent caller of ``key``.

        Raises:
            Whatever ``fn`` raised, to every waiter.
            asyncio.CancelledError: If the caller or the shared task was cancelled.
        """
        call = self._calls.get(key)
        if call is None:
            call = _Call(task=asyncio.create_task(fn()))
            self._calls[key] = call
            call.task.add_done_callback(lambda _t, k=key, c=call: self._forget(k, c))
        else:
            logger.debug(f"Joining in-flight computation for {key!r}")

        call.waiters += 1
        try:
            return await asyncio.shield(call.task)
        finally:
            call.waiters -= 1
            if call.waiters == 0 and not call.task.done():
                call.task.cancel()
                self._forget(key, call)

    def _forget(self, key: K, call: _Call[V]) -> None:
        if self._calls.get(key) is call:
            del self._calls[key]
