# src/autojob/core/queue.py

from __future__ import annotations

"""
Blocking hand-off queue between job submitters and the single worker.

Items are either buffered (nobody waiting) or handed straight to the oldest
parked consumer; the buffer and the waiter list are never both non-empty.
"""

import asyncio
from collections import deque
from typing import Generic, TypeVar

T = TypeVar("T")


class BlockingQueue(Generic[T]):
    def __init__(self) -> None:
        self._items: deque[T] = deque()
        self._waiters: deque[asyncio.Future[T]] = deque()

    def _prune_waiters(self) -> None:
        while self._waiters and self._waiters[0].done():
            self._waiters.popleft()

    def enqueue(self, item: T) -> None:
        self._prune_waiters()
        if self._waiters:
            waiter = self._waiters.popleft()
            waiter.set_result(item)
            return
        self._items.append(item)

    async def dequeue(self) -> T:
        if self._items:
            return self._items.popleft()

        waiter: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
            elif waiter.done() and not waiter.cancelled():
                # Handed over but the consumer was cancelled before resuming: keep the item.
                self._push_front(waiter.result())
            raise

    def _push_front(self, item: T) -> None:
        self._prune_waiters()
        if self._waiters:
            self._waiters.popleft().set_result(item)
        else:
            self._items.appendleft(item)

    def is_empty(self) -> bool:
        return not self._items

    def is_blocked(self) -> bool:
        return any(not w.done() for w in self._waiters)

    @property
    def length(self) -> int:
        """Buffered items (positive) or parked consumers (negative)."""
        waiting = sum(1 for w in self._waiters if not w.done())
        return len(self._items) - waiting

    def clear(self) -> None:
        """Drop buffered items; parked consumers stay parked."""
        self._items.clear()
