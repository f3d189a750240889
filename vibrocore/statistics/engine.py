"""Statistics engine: region aggregation, windowed accumulation, snapshots.

``StatisticsEngine`` is written by exactly one thread (the controller's tick)
and read from any number of inspection threads.  Each ``accumulate`` call
updates the private accumulator state and then publishes a freshly built,
read-only :class:`StatisticsSnapshot`; publishing is a reference swap under
``_lock``.  Readers only ever see complete snapshots.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from functools import wraps
from threading import RLock

import numpy as np

from ..calibration import AlertMetric, CalibrationProfile, RegionReduce, StatMode
from ..constants import LEVEL_COUNT
from ..errors import DimensionMismatchError
from ..processing.vibro import VibroImage, level_histogram
from .accumulators import EmaAccumulator, ExactWindowAccumulator

LOGGER = logging.getLogger(__name__)

RegionId = tuple[int, int] | int


def _synchronized(method):
    @wraps(method)
    def _wrapped(self: StatisticsEngine, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return _wrapped


def _read_only(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, slots=True)
class PixelStatistic:
    region_id: tuple[int, int]
    count: float
    mean: float
    variance: float
    samples: int
    last_update_sequence: int


@dataclass(frozen=True, slots=True, eq=False)
class StatisticsSnapshot:
    count: np.ndarray
    mean: np.ndarray
    variance: np.ndarray
    samples: int
    sequence: int
    timestamp: float
    region_size: int

    @property
    def grid_shape(self) -> tuple[int, int]:
        return int(self.count.shape[0]), int(self.count.shape[1])

    def metric(self, metric: AlertMetric) -> np.ndarray:
        if metric is AlertMetric.COUNT:
            return self.count
        if metric is AlertMetric.MEAN:
            return self.mean
        return self.variance

    def region_index(self, region_id: RegionId) -> tuple[int, int]:
        rows, cols = self.grid_shape
        if isinstance(region_id, tuple):
            row, col = int(region_id[0]), int(region_id[1])
        else:
            flat = int(region_id)
            if not 0 <= flat < rows * cols:
                raise IndexError(f"region {flat} outside grid of {rows * cols} regions")
            row, col = divmod(flat, cols)
        if not (0 <= row < rows and 0 <= col < cols):
            raise IndexError(f"region {(row, col)} outside grid {rows}x{cols}")
        return row, col

    def at(self, region_id: RegionId) -> PixelStatistic:
        row, col = self.region_index(region_id)
        return PixelStatistic(
            region_id=(row, col),
            count=float(self.count[row, col]),
            mean=float(self.mean[row, col]),
            variance=float(self.variance[row, col]),
            samples=self.samples,
            last_update_sequence=self.sequence,
        )


def grid_shape_for(height: int, width: int, region_size: int) -> tuple[int, int]:
    return math.ceil(height / region_size), math.ceil(width / region_size)


def reduce_regions(
    magnitude: np.ndarray,
    region_size: int,
    reduce: RegionReduce = RegionReduce.MAX,
) -> np.ndarray:
    """Collapse ``region_size x region_size`` blocks into one sample each.

    Edge blocks that overhang the frame only cover the real pixels: ``max``
    pads with zeros (magnitudes are non-negative) and ``mean`` divides by the
    number of covered pixels.
    """
    if region_size == 1:
        return magnitude.astype(np.float64)
    height, width = magnitude.shape
    rows, cols = grid_shape_for(height, width, region_size)
    pad = ((0, rows * region_size - height), (0, cols * region_size - width))
    padded = np.pad(magnitude.astype(np.float64), pad, mode="constant")
    blocks = padded.reshape(rows, region_size, cols, region_size)
    if reduce is RegionReduce.MAX:
        return blocks.max(axis=(1, 3))
    covered = np.pad(np.ones((height, width), dtype=np.float64), pad, mode="constant")
    areas = covered.reshape(rows, region_size, cols, region_size).sum(axis=(1, 3))
    return blocks.sum(axis=(1, 3)) / areas


class StatisticsEngine:
    def __init__(self, calibration: CalibrationProfile) -> None:
        self._lock = RLock()
        self._calibration = calibration
        self._stat_mode = calibration.resolved_stat_mode
        self._frame_shape: tuple[int, int] | None = None
        self._accumulator: ExactWindowAccumulator | EmaAccumulator | None = None
        self._histograms: deque[tuple[int, ...]] = deque(maxlen=calibration.stat_window)
        self._snapshot: StatisticsSnapshot | None = None

    @property
    def calibration(self) -> CalibrationProfile:
        return self._calibration

    @_synchronized
    def recalibrate(self, calibration: CalibrationProfile) -> None:
        """Adopt *calibration* without losing state.

        Only valid when the statistics-shaping fields are unchanged; otherwise
        the caller must build a fresh engine.
        """
        if calibration.statistics_key() != self._calibration.statistics_key():
            raise ValueError("calibration changes statistics layout; build a new StatisticsEngine")
        self._calibration = calibration

    @property
    def stat_mode(self) -> StatMode:
        return self._stat_mode

    @property
    def frame_shape(self) -> tuple[int, int] | None:
        return self._frame_shape

    def _allocate(self, frame_shape: tuple[int, int]) -> None:
        cal = self._calibration
        grid = grid_shape_for(frame_shape[0], frame_shape[1], cal.region_size)
        if self._stat_mode is StatMode.EXACT:
            self._accumulator = ExactWindowAccumulator(cal.stat_window, grid)
        else:
            self._accumulator = EmaAccumulator(cal.stat_window, grid)
        self._frame_shape = frame_shape
        LOGGER.debug(
            "Allocated %s statistics for %dx%d frames (%dx%d regions, window=%d)",
            self._stat_mode.value,
            frame_shape[0],
            frame_shape[1],
            grid[0],
            grid[1],
            cal.stat_window,
        )

    def accumulate(self, vibro_image: VibroImage, frame_sequence: int) -> None:
        """Fold one vibro image into the running statistics."""
        shape = vibro_image.shape
        if self._accumulator is None:
            self._allocate(shape)
        elif shape != self._frame_shape:
            assert self._frame_shape is not None
            raise DimensionMismatchError(self._frame_shape, shape)
        accumulator = self._accumulator
        assert accumulator is not None

        cal = self._calibration
        samples = reduce_regions(vibro_image.magnitude, cal.region_size, cal.region_reduce)
        exceeded = samples > cal.alert_threshold
        accumulator.update(samples, exceeded)
        histogram = level_histogram(vibro_image)

        snapshot = StatisticsSnapshot(
            count=_read_only(accumulator.count()),
            mean=_read_only(accumulator.mean()),
            variance=_read_only(accumulator.variance()),
            samples=accumulator.samples,
            sequence=int(frame_sequence),
            timestamp=vibro_image.timestamp,
            region_size=cal.region_size,
        )
        with self._lock:
            self._histograms.append(histogram)
            self._snapshot = snapshot

    # -- concurrent read access ------------------------------------------------

    @_synchronized
    def snapshot_all(self) -> StatisticsSnapshot | None:
        """Latest published snapshot, or ``None`` before the first accumulate."""
        return self._snapshot

    def snapshot(self, region_id: RegionId) -> PixelStatistic | None:
        current = self.snapshot_all()
        if current is None:
            return None
        return current.at(region_id)

    @_synchronized
    def dispersion(self) -> tuple[float, ...] | None:
        """Spread of the per-level pixel counts over the last ``stat_window`` ticks.

        For each level ``sqrt(sum((h - mean(h))**2)) / dispersion_normalization``;
        ``None`` until the history holds a full window.
        """
        if len(self._histograms) < self._calibration.stat_window:
            return None
        history = np.asarray(self._histograms, dtype=np.float64).reshape(-1, LEVEL_COUNT)
        spread = np.sqrt(((history - history.mean(axis=0)) ** 2).sum(axis=0))
        return tuple(float(v) for v in spread / self._calibration.dispersion_normalization)

    @property
    def nbytes(self) -> int:
        """Bytes held by accumulator state and the level-histogram history."""
        accumulator = self._accumulator
        held = accumulator.nbytes if accumulator is not None else 0
        return held + self._histograms.maxlen * LEVEL_COUNT * 8  # type: ignore[operator]

    # -- lifecycle -------------------------------------------------------------

    @_synchronized
    def reset(self) -> None:
        """Forget all samples; the next accumulate re-allocates for its shape."""
        self._accumulator = None
        self._frame_shape = None
        self._histograms.clear()
        self._snapshot = None

    def release(self) -> None:
        self.reset()
        LOGGER.debug("Released statistics buffers")
