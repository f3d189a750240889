"""Vectorized alert hysteresis: dwell confirmation and release decay.

Every region advances through QUIET -> ELEVATED -> ALERTING -> QUIET.  A
region must sit at or above the metric threshold for ``min_dwell``
consecutive ticks before it alerts, and must sit below
``threshold * release_ratio`` for ``release_dwell`` consecutive ticks before
it drops back to QUIET.  The gap between the two thresholds keeps a value
hovering at the boundary from flapping.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ._types import AlertState

_QUIET = np.uint8(AlertState.QUIET)
_ELEVATED = np.uint8(AlertState.ELEVATED)
_ALERTING = np.uint8(AlertState.ALERTING)


@dataclass(slots=True)
class RegionStates:
    state: np.ndarray
    consecutive_up: np.ndarray
    consecutive_down: np.ndarray

    @classmethod
    def quiet(cls, grid_shape: tuple[int, int]) -> RegionStates:
        return cls(
            state=np.zeros(grid_shape, dtype=np.uint8),
            consecutive_up=np.zeros(grid_shape, dtype=np.int32),
            consecutive_down=np.zeros(grid_shape, dtype=np.int32),
        )

    @property
    def grid_shape(self) -> tuple[int, int]:
        return int(self.state.shape[0]), int(self.state.shape[1])


def advance_states(
    regions: RegionStates,
    metric: np.ndarray,
    threshold: float,
    *,
    min_dwell: int,
    release_dwell: int,
    release_ratio: float,
) -> np.ndarray:
    """Advance every region by one tick in place.

    Returns a boolean mask of regions that entered ALERTING on this tick.
    """
    at_or_above = metric >= threshold
    below_release = metric < threshold * release_ratio
    alerting = regions.state == _ALERTING
    pending = ~alerting

    # Confirmation path for regions not yet alerting.
    rising = pending & at_or_above
    falling = pending & ~at_or_above
    regions.consecutive_up[rising] += 1
    regions.consecutive_up[falling] = 0
    regions.state[rising] = _ELEVATED
    regions.state[falling] = _QUIET
    entered = pending & (regions.consecutive_up >= min_dwell)
    regions.state[entered] = _ALERTING
    regions.consecutive_down[entered] = 0

    # Release path for regions already alerting.
    decaying = alerting & below_release
    regions.consecutive_down[decaying] += 1
    regions.consecutive_down[alerting & ~below_release] = 0
    released = alerting & (regions.consecutive_down >= release_dwell)
    regions.state[released] = _QUIET
    regions.consecutive_up[released] = 0
    regions.consecutive_down[released] = 0
    return entered
