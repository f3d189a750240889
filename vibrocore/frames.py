"""Frame value type and intensity helpers.

A :class:`Frame` is the unit handed over by a frame producer: a 2-D grid of
intensity samples, optionally with a trailing channel axis, tagged with a
monotonically increasing sequence number and a capture timestamp.  A single
trailing channel is dropped so ``(H, W)`` and ``(H, W, 1)`` input store the
same pixels.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .constants import LUMA_WEIGHTS_BGR


@dataclass(frozen=True, slots=True, eq=False)
class Frame:
    pixels: np.ndarray
    sequence: int
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.ndim not in (2, 3) or pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError(
                f"frame pixels must be a non-empty (H, W) or (H, W, C) array, got {pixels.shape}"
            )
        if pixels.ndim == 3 and pixels.shape[2] == 1:
            pixels = pixels[:, :, 0]
        if pixels.flags.writeable:
            # The producer may keep mutating its capture buffer.
            pixels = pixels.copy()
            pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)
        object.__setattr__(self, "sequence", int(self.sequence))
        object.__setattr__(self, "timestamp", float(self.timestamp))

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @property
    def shape(self) -> tuple[int, int, int]:
        """``(height, width, channels)``: the declared geometry of the frame."""
        return self.height, self.width, self.channels


def to_intensity(pixels: np.ndarray) -> np.ndarray:
    """Convert a BGR frame to a single-channel float32 intensity grid.

    Two-dimensional input is returned as float32 unchanged.  Three-channel
    input is assumed to be in OpenCV's BGR order; a fourth (alpha) channel
    is ignored.
    """
    arr = np.asarray(pixels)
    if arr.ndim == 2:
        return arr.astype(np.float32, copy=False)
    if arr.ndim != 3 or arr.shape[2] not in (1, 3, 4):
        raise ValueError(f"expected (H, W), (H, W, 1), (H, W, 3) or (H, W, 4), got {arr.shape}")
    if arr.shape[2] == 1:
        return arr[:, :, 0].astype(np.float32)
    weights = np.asarray(LUMA_WEIGHTS_BGR, dtype=np.float32)
    return (arr[:, :, :3].astype(np.float32) @ weights).astype(np.float32, copy=False)
