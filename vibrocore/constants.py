"""Engine-wide constants.

Values referenced by more than one module (frame geometry, level palette,
controller defaults) are defined once here.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Frame geometry
# ---------------------------------------------------------------------------
MIN_WINDOW_SIZE: Final[int] = 2
"""A delta image needs at least two frames."""

NEIGHBOR_OFFSETS: Final[tuple[tuple[int, int], ...]] = (
    (-1, -1),
    (-1, 0),
    (-1, 1),
    (0, -1),
    (0, 1),
    (1, -1),
    (1, 0),
    (1, 1),
)
"""(row, col) offsets of the 8-connected neighborhood."""

MAX_NEIGHBORS: Final[int] = len(NEIGHBOR_OFFSETS)

# ---------------------------------------------------------------------------
# Vibration levels
# ---------------------------------------------------------------------------
LEVEL_COUNT: Final[int] = 4
"""Number of vibration levels a surviving pixel can be classified into."""

DEFAULT_LEVEL_BOUNDS: Final[tuple[int, int, int, int]] = (1, 3, 5, 7)
"""Minimum neighbor support for levels 1..4."""

LEVEL_COLORS_BGR: Final[tuple[tuple[int, int, int], ...]] = (
    (0, 0, 0),
    (0, 255, 0),
    (255, 255, 0),
    (0, 255, 255),
    (0, 0, 255),
)
"""Palette indexed by level: black, green, cyan, yellow, red."""

# ---------------------------------------------------------------------------
# Preprocessing
# ---------------------------------------------------------------------------
CANNY_APERTURES: Final[tuple[int, ...]] = (3, 5, 7)
"""Sobel aperture sizes OpenCV's Canny accepts."""

# ---------------------------------------------------------------------------
# Intensity conversion (ITU-R BT.601 luma weights, BGR channel order)
# ---------------------------------------------------------------------------
LUMA_WEIGHTS_BGR: Final[tuple[float, float, float]] = (0.114, 0.587, 0.299)

# ---------------------------------------------------------------------------
# Controller defaults
# ---------------------------------------------------------------------------
DEFAULT_QUEUE_CAPACITY: Final[int] = 8
DEFAULT_DROP_LOG_INTERVAL_S: Final[float] = 10.0
DEFAULT_STOP_TIMEOUT_S: Final[float] = 2.0
WORKER_POLL_INTERVAL_S: Final[float] = 0.1
