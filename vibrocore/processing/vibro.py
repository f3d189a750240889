"""Vibro-image computation: frame deltas with spatial-coherence noise rejection.

The pure functions here carry the numeric work; :class:`VibroComputer` is the
entry point the controller calls once per tick.  Frames can be thresholded or
edge-detected first (see :mod:`~vibrocore.processing.preprocess`).

Noise policy: a pixel's delta survives only when it strictly exceeds
``neighbor_threshold`` *and* at least ``min_neighbors`` of its 8-connected
neighbors strictly exceed it as well.  Isolated sensor/encoding noise rarely
forms such clusters; genuine movement does.  Neighbors outside the frame
never count as exceeding.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..calibration import CalibrationProfile, DeltaMode, Preprocess
from ..constants import LEVEL_COUNT, NEIGHBOR_OFFSETS
from ..errors import DimensionMismatchError, InsufficientFramesError
from ..frames import Frame
from .preprocess import preprocess_pixels


@dataclass(frozen=True, slots=True, eq=False)
class VibroImage:
    magnitude: np.ndarray
    """float32 (H, W); filtered non-negative delta, 0 where suppressed."""
    support: np.ndarray
    """uint8 (H, W); count of 8-connected neighbors whose raw delta exceeds the threshold."""
    levels: np.ndarray
    """uint8 (H, W); vibration level 0..4 of each surviving pixel."""
    sequence: int
    timestamp: float

    @property
    def shape(self) -> tuple[int, int]:
        return int(self.magnitude.shape[0]), int(self.magnitude.shape[1])

    @property
    def active_pixels(self) -> int:
        return int(np.count_nonzero(self.magnitude))


def abs_delta(newer: np.ndarray, older: np.ndarray) -> np.ndarray:
    """Absolute per-pixel delta as float32 (H, W).

    Multi-channel frames collapse to the largest channel delta per pixel.
    """
    delta = np.abs(newer.astype(np.float32) - older.astype(np.float32))
    if delta.ndim == 3:
        delta = delta.max(axis=2)
    return delta


def peak_delta(images: Sequence[np.ndarray]) -> np.ndarray:
    """Per-pixel maximum of the consecutive-pair deltas across *images*."""
    peak = abs_delta(images[1], images[0])
    for older, newer in zip(images[1:-1], images[2:]):
        np.maximum(peak, abs_delta(newer, older), out=peak)
    return peak


def recursive_delta(images: Sequence[np.ndarray]) -> np.ndarray:
    """Fold *images* by repeatedly differencing against the newest member.

    ``[f0, f1, f2]`` becomes ``[|f2 - f0|, |f2 - f1|]`` and then
    ``||f2 - f1| - |f2 - f0||``.  Two images reduce to their plain delta.
    """
    layer = [abs_delta(images[-1], older) for older in images[:-1]]
    while len(layer) > 1:
        newest = layer[-1]
        layer = [np.abs(newest - older) for older in layer[:-1]]
    return layer[0]


def neighbor_support(mask: np.ndarray) -> np.ndarray:
    """Count, per pixel, how many of its 8 neighbors are set in *mask*."""
    height, width = mask.shape
    padded = np.pad(mask, 1, mode="constant", constant_values=False)
    support = np.zeros((height, width), dtype=np.uint8)
    for d_row, d_col in NEIGHBOR_OFFSETS:
        support += padded[1 + d_row : 1 + d_row + height, 1 + d_col : 1 + d_col + width]
    return support


def suppress_isolated(
    delta: np.ndarray,
    neighbor_threshold: float,
    min_neighbors: int = 1,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Zero every delta lacking coherent support.

    Returns ``(filtered, support, keep_mask)``.
    """
    exceeding = delta > np.float32(neighbor_threshold)
    support = neighbor_support(exceeding)
    keep = exceeding & (support >= min_neighbors)
    filtered = np.where(keep, delta, np.float32(0.0)).astype(np.float32, copy=False)
    return filtered, support, keep


def classify_levels(support: np.ndarray, keep: np.ndarray, bounds: Sequence[int]) -> np.ndarray:
    """Vibration level per surviving pixel: how many *bounds* its support reaches."""
    levels = np.zeros(support.shape, dtype=np.uint8)
    for bound in bounds:
        levels += support >= bound
    levels[~keep] = 0
    return levels


def level_histogram(vibro: VibroImage) -> tuple[int, ...]:
    """Number of pixels at levels 1..4."""
    counts = np.bincount(vibro.levels.ravel(), minlength=LEVEL_COUNT + 1)
    return tuple(int(c) for c in counts[1 : LEVEL_COUNT + 1])


class VibroComputer:
    """Computes the filtered delta image for a window snapshot.

    Preprocessed frames are cached for as long as they stay in the window, so
    each frame is thresholded or edge-detected once rather than on every
    tick.  Not thread-safe; the controller calls it under its tick lock.
    """

    def __init__(self) -> None:
        self._prepared: dict[int, tuple[Frame, tuple[Any, ...], np.ndarray]] = {}

    def _prepare(self, frames: Sequence[Frame], calibration: CalibrationProfile) -> list[np.ndarray]:
        if calibration.preprocess is Preprocess.NONE:
            self._prepared.clear()
            return [frame.pixels for frame in frames]
        key = calibration.preprocess_key()
        cache: dict[int, tuple[Frame, tuple[Any, ...], np.ndarray]] = {}
        images = []
        for frame in frames:
            entry = self._prepared.get(id(frame))
            if entry is None or entry[0] is not frame or entry[1] != key:
                entry = (frame, key, preprocess_pixels(frame.pixels, calibration))
            cache[id(frame)] = entry
            images.append(entry[2])
        self._prepared = cache
        return images

    def reset(self) -> None:
        self._prepared.clear()

    def compute(
        self,
        window_snapshot: Sequence[Frame],
        calibration: CalibrationProfile,
    ) -> VibroImage:
        frames = tuple(window_snapshot)
        if len(frames) < 2:
            raise InsufficientFramesError(len(frames))
        expected = frames[0].shape
        for frame in frames[1:]:
            if frame.shape != expected:
                raise DimensionMismatchError(expected, frame.shape)

        newest = frames[-1]
        images = self._prepare(frames, calibration)
        if calibration.delta_mode is DeltaMode.PEAK:
            delta = peak_delta(images)
        elif calibration.delta_mode is DeltaMode.RECURSIVE:
            delta = recursive_delta(images)
        else:
            ref_idx = max(0, len(images) - 1 - calibration.effective_stride)
            delta = abs_delta(images[-1], images[ref_idx])

        filtered, support, keep = suppress_isolated(
            delta,
            calibration.neighbor_threshold,
            calibration.min_neighbors,
        )
        levels = classify_levels(support, keep, calibration.level_bounds)
        return VibroImage(
            magnitude=filtered,
            support=support,
            levels=levels,
            sequence=newest.sequence,
            timestamp=newest.timestamp,
        )
