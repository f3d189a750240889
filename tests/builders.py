"""Frame factories shared across the test suite."""

from __future__ import annotations

import numpy as np

from vibrocore.frames import Frame

HEIGHT = 32
WIDTH = 32


def flat_pixels(value: int = 50, height: int = HEIGHT, width: int = WIDTH, channels: int = 0) -> np.ndarray:
    shape = (height, width) if channels == 0 else (height, width, channels)
    return np.full(shape, value, dtype=np.uint8)


def block_pixels(
    top: int,
    left: int,
    size: int,
    *,
    base: int = 50,
    raise_by: int = 20,
    height: int = HEIGHT,
    width: int = WIDTH,
) -> np.ndarray:
    """Flat frame with a ``size x size`` block raised by *raise_by*."""
    pixels = flat_pixels(base, height, width)
    pixels[top : top + size, left : left + size] = base + raise_by
    return pixels


def make_frame(pixels: np.ndarray, sequence: int, timestamp: float | None = None) -> Frame:
    return Frame(pixels, sequence=sequence, timestamp=float(sequence) if timestamp is None else timestamp)


def flat_frame(sequence: int, value: int = 50, height: int = HEIGHT, width: int = WIDTH) -> Frame:
    return make_frame(flat_pixels(value, height, width), sequence)


def alternating_block_frames(
    count: int,
    *,
    top: int = 8,
    left: int = 8,
    size: int = 10,
    raise_by: int = 20,
    start_sequence: int = 0,
) -> list[Frame]:
    """Frames in the pattern A, A, B, B, A, A, B, B, ...

    With a 3-frame window every tick from the third frame on compares a
    flat frame against a block frame, so the block region exceeds on every
    tick.
    """
    flat = flat_pixels()
    block = block_pixels(top, left, size, raise_by=raise_by)
    frames: list[Frame] = []
    for i in range(count):
        pixels = flat if (i // 2) % 2 == 0 else block
        frames.append(make_frame(pixels, start_sequence + i))
    return frames
