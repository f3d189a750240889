"""Tests for the Frame value type and intensity conversion."""

from __future__ import annotations

import numpy as np
import pytest

from vibrocore.frames import Frame, to_intensity


class TestFrame:
    def test_writeable_input_is_copied_and_frozen(self) -> None:
        pixels = np.zeros((4, 5), dtype=np.uint8)
        frame = Frame(pixels, sequence=1)
        pixels[0, 0] = 200
        assert frame.pixels[0, 0] == 0
        assert not frame.pixels.flags.writeable

    def test_shape_reports_channels(self) -> None:
        assert Frame(np.zeros((4, 5), dtype=np.uint8), 1).shape == (4, 5, 1)
        assert Frame(np.zeros((4, 5, 3), dtype=np.uint8), 1).shape == (4, 5, 3)

    def test_single_channel_layouts_store_the_same_pixels(self) -> None:
        flat = Frame(np.full((4, 6), 9, dtype=np.uint8), 1)
        stacked = Frame(np.full((4, 6, 1), 9, dtype=np.uint8), 2)
        assert stacked.pixels.shape == (4, 6)
        assert stacked.shape == flat.shape == (4, 6, 1)
        assert np.array_equal(stacked.pixels, flat.pixels)

    @pytest.mark.parametrize("shape", [(4,), (0, 5), (2, 3, 4, 5)])
    def test_rejects_bad_shapes(self, shape: tuple[int, ...]) -> None:
        with pytest.raises(ValueError):
            Frame(np.zeros(shape, dtype=np.uint8), 1)


class TestToIntensity:
    def test_grayscale_passthrough(self) -> None:
        out = to_intensity(np.full((2, 2), 7, dtype=np.uint8))
        assert out.dtype == np.float32
        assert np.all(out == 7.0)

    def test_bgr_uses_luma_weights(self) -> None:
        pixels = np.zeros((1, 3, 3), dtype=np.uint8)
        pixels[0, 0] = (255, 0, 0)  # blue
        pixels[0, 1] = (0, 255, 0)  # green
        pixels[0, 2] = (0, 0, 255)  # red
        out = to_intensity(pixels)
        assert out[0, 0] == pytest.approx(255 * 0.114, rel=1e-5)
        assert out[0, 1] == pytest.approx(255 * 0.587, rel=1e-5)
        assert out[0, 2] == pytest.approx(255 * 0.299, rel=1e-5)

    def test_alpha_channel_ignored(self) -> None:
        pixels = np.zeros((1, 1, 4), dtype=np.uint8)
        pixels[0, 0] = (0, 0, 100, 255)
        assert to_intensity(pixels)[0, 0] == pytest.approx(29.9, rel=1e-5)

    def test_unsupported_channel_count(self) -> None:
        with pytest.raises(ValueError):
            to_intensity(np.zeros((2, 2, 2), dtype=np.uint8))
