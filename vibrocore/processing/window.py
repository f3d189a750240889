"""Bounded sliding window of the most recent frames.

``FrameWindow`` is an index-based ring: a fixed list of slots plus a write
index and a fill count.  Pushing past capacity overwrites the oldest slot and
hands the evicted frame back to the caller, so steady-state operation never
grows or reallocates the slot list.
"""

from __future__ import annotations

import logging

from ..constants import MIN_WINDOW_SIZE
from ..errors import DimensionMismatchError, OutOfOrderFrameError
from ..frames import Frame

LOGGER = logging.getLogger(__name__)


class FrameWindow:
    __slots__ = ("_slots", "_capacity", "_write_idx", "_count", "_shape", "_last_sequence")

    def __init__(self, capacity: int) -> None:
        capacity = int(capacity)
        if capacity < MIN_WINDOW_SIZE:
            raise ValueError(f"FrameWindow capacity must be >= {MIN_WINDOW_SIZE}, got {capacity}")
        self._slots: list[Frame | None] = [None] * capacity
        self._capacity = capacity
        self._write_idx = 0
        self._count = 0
        self._shape: tuple[int, int, int] | None = None
        self._last_sequence: int | None = None

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def shape(self) -> tuple[int, int, int] | None:
        """Shape established by the first accepted frame, or ``None``."""
        return self._shape

    @property
    def last_sequence(self) -> int | None:
        return self._last_sequence

    # -- mutation --------------------------------------------------------------

    def push(self, frame: Frame) -> Frame | None:
        """Append *frame*; return the evicted oldest frame once full.

        Raises :class:`OutOfOrderFrameError` or :class:`DimensionMismatchError`
        without touching the window.
        """
        if self._last_sequence is not None and frame.sequence <= self._last_sequence:
            raise OutOfOrderFrameError(frame.sequence, self._last_sequence)
        if self._shape is not None and frame.shape != self._shape:
            raise DimensionMismatchError(self._shape, frame.shape)

        evicted = self._slots[self._write_idx] if self._count == self._capacity else None
        self._slots[self._write_idx] = frame
        self._write_idx = (self._write_idx + 1) % self._capacity
        self._count = min(self._capacity, self._count + 1)
        self._last_sequence = frame.sequence
        if self._shape is None:
            self._shape = frame.shape
        return evicted

    def resize(self, capacity: int) -> None:
        """Change capacity, keeping the most recent frames."""
        capacity = int(capacity)
        if capacity < MIN_WINDOW_SIZE:
            raise ValueError(f"FrameWindow capacity must be >= {MIN_WINDOW_SIZE}, got {capacity}")
        if capacity == self._capacity:
            return
        latest = self.snapshot()[-capacity:]
        self._slots = [None] * capacity
        self._slots[: len(latest)] = latest
        self._capacity = capacity
        self._count = len(latest)
        self._write_idx = self._count % capacity
        LOGGER.debug("Resized frame window to %d slots (%d frames kept)", capacity, self._count)

    def clear(self) -> None:
        """Drop every frame reference and forget the established shape."""
        for idx in range(self._capacity):
            self._slots[idx] = None
        self._write_idx = 0
        self._count = 0
        self._shape = None
        self._last_sequence = None

    # -- read access -----------------------------------------------------------

    def at(self, offset: int) -> Frame:
        """Frame *offset* positions back from the newest (0 = newest)."""
        if not 0 <= offset < self._count:
            raise IndexError(f"offset {offset} outside window of {self._count} frames")
        frame = self._slots[(self._write_idx - 1 - offset) % self._capacity]
        assert frame is not None
        return frame

    @property
    def newest(self) -> Frame | None:
        return self.at(0) if self._count else None

    @property
    def oldest(self) -> Frame | None:
        return self.at(self._count - 1) if self._count else None

    def snapshot(self) -> tuple[Frame, ...]:
        """Current frames ordered oldest to newest."""
        if self._count == 0:
            return ()
        start = (self._write_idx - self._count) % self._capacity
        if start + self._count <= self._capacity:
            frames = self._slots[start : start + self._count]
        else:
            frames = self._slots[start:] + self._slots[: (start + self._count) % self._capacity]
        return tuple(frames)  # type: ignore[arg-type]
