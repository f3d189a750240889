"""Windowed per-region statistics over the vibro-image stream."""

from .accumulators import EmaAccumulator, ExactWindowAccumulator  # noqa: F401
from .engine import (  # noqa: F401
    PixelStatistic,
    StatisticsEngine,
    StatisticsSnapshot,
    grid_shape_for,
    reduce_regions,
)

__all__ = [
    "EmaAccumulator",
    "ExactWindowAccumulator",
    "PixelStatistic",
    "StatisticsEngine",
    "StatisticsSnapshot",
    "grid_shape_for",
    "reduce_regions",
]
