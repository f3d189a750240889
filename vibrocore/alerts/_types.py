"""Alert state codes and the emitted event record."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from ..calibration import AlertMetric


class AlertState(IntEnum):
    """Per-region state; the integer value is what the state grid stores."""

    QUIET = 0
    ELEVATED = 1
    ALERTING = 2


@dataclass(frozen=True, slots=True)
class AlertEvent:
    region_id: tuple[int, int]
    metric: AlertMetric
    metric_value: float
    threshold_exceeded: float
    frame_sequence: int
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "region_id": [self.region_id[0], self.region_id[1]],
            "metric": self.metric.value,
            "metric_value": self.metric_value,
            "threshold_exceeded": self.threshold_exceeded,
            "frame_sequence": self.frame_sequence,
            "timestamp": self.timestamp,
        }
