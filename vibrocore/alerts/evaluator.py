"""Alert evaluator: turns statistics snapshots into alert events."""

from __future__ import annotations

import logging

import numpy as np

from ..calibration import CalibrationProfile
from ..statistics import StatisticsSnapshot
from ._types import AlertEvent, AlertState
from .tracker import RegionStates, advance_states

LOGGER = logging.getLogger(__name__)


class AlertEvaluator:
    """Holds the per-region hysteresis state for the engine's lifetime.

    State is allocated lazily on the first snapshot and re-allocated (all
    regions QUIET) if the region grid changes shape.
    """

    def __init__(self) -> None:
        self._regions: RegionStates | None = None

    def evaluate(
        self,
        statistics_snapshot: StatisticsSnapshot,
        calibration: CalibrationProfile,
    ) -> list[AlertEvent]:
        grid_shape = statistics_snapshot.grid_shape
        if self._regions is None or self._regions.grid_shape != grid_shape:
            if self._regions is not None:
                LOGGER.debug(
                    "Region grid changed from %s to %s; alert state reset",
                    self._regions.grid_shape,
                    grid_shape,
                )
            self._regions = RegionStates.quiet(grid_shape)

        metric = calibration.alert_metric
        values = statistics_snapshot.metric(metric)
        threshold = calibration.effective_metric_threshold
        entered = advance_states(
            self._regions,
            values,
            threshold,
            min_dwell=calibration.min_dwell,
            release_dwell=calibration.release_dwell,
            release_ratio=calibration.release_ratio,
        )
        if not entered.any():
            return []

        cols = grid_shape[1]
        events: list[AlertEvent] = []
        for flat in np.flatnonzero(entered):
            row, col = divmod(int(flat), cols)
            events.append(
                AlertEvent(
                    region_id=(row, col),
                    metric=metric,
                    metric_value=float(values[row, col]),
                    threshold_exceeded=threshold,
                    frame_sequence=statistics_snapshot.sequence,
                    timestamp=statistics_snapshot.timestamp,
                )
            )
        LOGGER.debug("%d region(s) entered alerting at frame %d", len(events), statistics_snapshot.sequence)
        return events

    def states(self) -> np.ndarray | None:
        """Read-only copy of the state grid (values are :class:`AlertState`)."""
        if self._regions is None:
            return None
        out = self._regions.state.copy()
        out.setflags(write=False)
        return out

    def state_at(self, region_id: tuple[int, int]) -> AlertState:
        if self._regions is None:
            return AlertState.QUIET
        return AlertState(int(self._regions.state[region_id[0], region_id[1]]))

    def reset(self) -> None:
        self._regions = None
