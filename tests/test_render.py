"""Tests for vibrocore.render colour mapping."""

from __future__ import annotations

import numpy as np

from vibrocore.processing.vibro import VibroImage
from vibrocore.render import blend, colorize


def _vibro_with_levels(levels: np.ndarray) -> VibroImage:
    levels = levels.astype(np.uint8)
    return VibroImage(
        magnitude=(levels > 0).astype(np.float32) * 20.0,
        support=levels,
        levels=levels,
        sequence=1,
        timestamp=1.0,
    )


class TestColorize:
    def test_levels_map_to_palette(self) -> None:
        vibro = _vibro_with_levels(np.array([[0, 1, 2, 3, 4]]))
        img = colorize(vibro)
        assert img.shape == (1, 5, 3)
        assert img.dtype == np.uint8
        assert img[0].tolist() == [
            [0, 0, 0],
            [0, 255, 0],
            [255, 255, 0],
            [0, 255, 255],
            [0, 0, 255],
        ]


class TestBlend:
    def test_only_active_pixels_are_tinted(self) -> None:
        vibro = _vibro_with_levels(np.array([[0, 4]]))
        frame = np.full((1, 2), 100, dtype=np.uint8)
        out = blend(frame, vibro, alpha=0.5)
        assert out.shape == (1, 2, 3)
        assert out[0, 0].tolist() == [100, 100, 100]
        assert out[0, 1].tolist() == [50, 50, 178]

    def test_alpha_is_clamped(self) -> None:
        vibro = _vibro_with_levels(np.array([[1]]))
        frame = np.zeros((1, 1, 3), dtype=np.uint8)
        assert blend(frame, vibro, alpha=3.0)[0, 0].tolist() == [0, 255, 0]
