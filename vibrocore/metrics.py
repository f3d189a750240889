"""Engine observability counters and the dropped-frame event."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Any


@dataclass(frozen=True, slots=True)
class FrameDropped:
    """Emitted when backpressure evicts a frame before it was processed."""

    sequence: int
    timestamp: float
    total_dropped: int


@dataclass(slots=True)
class EngineCounters:
    frames_submitted: int = 0
    frames_ingested: int = 0
    frames_dropped: int = 0
    frames_discarded: int = 0
    frames_rejected: int = 0
    ticks_processed: int = 0
    alerts_emitted: int = 0
    calibration_swaps: int = 0
    last_tick_duration_s: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def add(self, name: str, amount: int = 1) -> int:
        """Increment counter *name* and return its new value."""
        with self._lock:
            value = getattr(self, name) + amount
            setattr(self, name, value)
            return value

    def note_tick(self, duration_s: float, alerts: int) -> None:
        with self._lock:
            self.ticks_processed += 1
            self.alerts_emitted += alerts
            self.last_tick_duration_s = duration_s

    def as_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "frames_submitted": self.frames_submitted,
                "frames_ingested": self.frames_ingested,
                "frames_dropped": self.frames_dropped,
                "frames_discarded": self.frames_discarded,
                "frames_rejected": self.frames_rejected,
                "ticks_processed": self.ticks_processed,
                "alerts_emitted": self.alerts_emitted,
                "calibration_swaps": self.calibration_swaps,
                "last_tick_duration_s": round(self.last_tick_duration_s, 6),
            }
