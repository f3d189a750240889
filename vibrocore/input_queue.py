"""Bounded hand-off queue between a frame producer and the engine worker.

``put`` never blocks: once ``capacity`` items are waiting, the oldest one is
evicted and returned to the caller so it can be accounted for.  ``get``
blocks with a timeout so the consumer can notice shutdown.  Once closed the
queue refuses new items until ``reopen``.
"""

from __future__ import annotations

from collections import deque
from threading import Condition
from typing import Generic, TypeVar

T = TypeVar("T")


class DropOldestQueue(Generic[T]):
    def __init__(self, capacity: int) -> None:
        if int(capacity) < 1:
            raise ValueError(f"queue capacity must be >= 1, got {capacity}")
        self._capacity = int(capacity)
        self._items: deque[T] = deque()
        self._cond = Condition()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def put(self, item: T) -> T | None:
        """Enqueue *item*; return the evicted oldest item when the queue was full.

        A closed queue refuses *item* and returns it unchanged.
        """
        with self._cond:
            if self._closed:
                return item
            dropped = self._items.popleft() if len(self._items) >= self._capacity else None
            self._items.append(item)
            self._cond.notify()
            return dropped

    def get(self, timeout: float | None = None) -> T | None:
        """Dequeue the oldest item, or ``None`` on timeout or once closed."""
        with self._cond:
            if not self._items and not self._closed:
                self._cond.wait(timeout)
            if self._closed or not self._items:
                return None
            return self._items.popleft()

    def clear(self) -> int:
        """Discard every waiting item; return how many were discarded."""
        with self._cond:
            discarded = len(self._items)
            self._items.clear()
            return discarded

    def close(self) -> None:
        """Wake any waiting consumer; further ``get`` calls return ``None``."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def reopen(self) -> None:
        with self._cond:
            self._closed = False
