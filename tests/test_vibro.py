"""Tests for vibrocore.processing.vibro: deltas, neighbor filter, levels."""

from __future__ import annotations

import numpy as np
import pytest
from builders import block_pixels, flat_pixels, make_frame

from vibrocore.calibration import CalibrationProfile, DeltaMode
from vibrocore.errors import DimensionMismatchError, InsufficientFramesError
from vibrocore.processing.vibro import VibroComputer, level_histogram, neighbor_support

THRESHOLD = 10.0


def _compute(frames_pixels: list[np.ndarray], **calibration) -> np.ndarray:
    cal = CalibrationProfile(neighbor_threshold=THRESHOLD, window_size=max(2, len(frames_pixels)), **calibration)
    frames = [make_frame(p, seq) for seq, p in enumerate(frames_pixels)]
    return VibroComputer().compute(frames, cal)


class TestNoiseSuppression:
    def test_isolated_pixel_is_suppressed(self) -> None:
        after = flat_pixels()
        after[10, 10] += int(2 * THRESHOLD)
        vibro = _compute([flat_pixels(), after])
        assert vibro.magnitude[10, 10] == 0.0
        assert vibro.active_pixels == 0

    def test_two_adjacent_pixels_survive(self) -> None:
        after = flat_pixels()
        after[10, 10] += 20
        after[10, 11] += 20
        vibro = _compute([flat_pixels(), after])
        assert vibro.magnitude[10, 10] == pytest.approx(20.0)
        assert vibro.magnitude[10, 11] == pytest.approx(20.0)
        assert vibro.active_pixels == 2

    def test_delta_equal_to_threshold_does_not_exceed(self) -> None:
        after = flat_pixels()
        after[5:8, 5:8] += int(THRESHOLD)
        vibro = _compute([flat_pixels(), after])
        assert vibro.active_pixels == 0

    def test_block_interior_survives_with_full_neighborhood(self) -> None:
        vibro = _compute(
            [flat_pixels(), block_pixels(8, 8, 10, raise_by=int(2 * THRESHOLD))],
            min_neighbors=8,
        )
        expected = np.zeros_like(vibro.magnitude, dtype=bool)
        expected[9:17, 9:17] = True
        assert np.array_equal(vibro.magnitude > 0, expected)
        assert np.all(vibro.magnitude[expected] == pytest.approx(2 * THRESHOLD))

    def test_out_of_frame_neighbors_do_not_count(self) -> None:
        mask = np.zeros((4, 4), dtype=bool)
        mask[0:2, 0:2] = True
        support = neighbor_support(mask)
        assert support[0, 0] == 3
        assert support[1, 1] == 3
        assert support[3, 3] == 0

    def test_output_is_non_negative_for_darkening(self) -> None:
        before = block_pixels(4, 4, 5, raise_by=40)
        vibro = _compute([before, flat_pixels()])
        assert vibro.magnitude.min() >= 0.0
        assert vibro.magnitude[6, 6] == pytest.approx(40.0)


class TestDeterminism:
    def test_identical_inputs_give_identical_images(self) -> None:
        rng = np.random.default_rng(7)
        frames = [rng.integers(0, 255, size=(24, 24), dtype=np.uint8) for _ in range(3)]
        first = _compute(frames)
        second = _compute([f.copy() for f in frames])
        assert np.array_equal(first.magnitude, second.magnitude)
        assert np.array_equal(first.support, second.support)
        assert np.array_equal(first.levels, second.levels)
        assert first.magnitude.dtype == np.float32


class TestReferencePair:
    def test_default_compares_oldest_with_newest(self) -> None:
        a = flat_pixels()
        b = block_pixels(4, 4, 6, raise_by=30)
        vibro = _compute([a, b, a])
        assert vibro.active_pixels == 0

    def test_stride_one_compares_last_two(self) -> None:
        a = flat_pixels()
        b = block_pixels(4, 4, 6, raise_by=30)
        vibro = _compute([a, b, a], delta_stride=1)
        assert vibro.active_pixels == 36

    def test_peak_mode_takes_max_of_consecutive_deltas(self) -> None:
        a = flat_pixels()
        b = block_pixels(4, 4, 6, raise_by=30)
        c = block_pixels(4, 4, 6, raise_by=15)
        vibro = _compute([a, b, c], delta_mode=DeltaMode.PEAK)
        assert vibro.magnitude[6, 6] == pytest.approx(30.0)

    def test_short_window_falls_back_to_oldest_available(self) -> None:
        cal = CalibrationProfile(window_size=4, neighbor_threshold=THRESHOLD)
        frames = [make_frame(flat_pixels(), 0), make_frame(block_pixels(4, 4, 6, raise_by=30), 1)]
        vibro = VibroComputer().compute(frames, cal)
        assert vibro.active_pixels == 36
        assert vibro.sequence == 1

    def test_recursive_mode_folds_against_newest(self) -> None:
        a = flat_pixels()
        b = block_pixels(4, 4, 6, raise_by=30)
        # |a - a| = 0 and |a - b| = 30 in the block, folded to |30 - 0|.
        vibro = _compute([a, b, a], delta_mode=DeltaMode.RECURSIVE)
        assert vibro.active_pixels == 36
        assert vibro.magnitude[6, 6] == pytest.approx(30.0)

    def test_recursive_mode_with_two_frames_is_plain_delta(self) -> None:
        a = flat_pixels()
        b = block_pixels(4, 4, 6, raise_by=30)
        plain = _compute([a, b])
        folded = _compute([a, b], delta_mode=DeltaMode.RECURSIVE)
        assert np.array_equal(plain.magnitude, folded.magnitude)

    def test_multichannel_uses_largest_channel_delta(self) -> None:
        before = flat_pixels(channels=3)
        after = flat_pixels(channels=3)
        after[2:6, 2:6, 2] += 25
        after[2:6, 2:6, 0] += 5
        vibro = _compute([before, after])
        assert vibro.magnitude.shape == (32, 32)
        assert vibro.magnitude[3, 3] == pytest.approx(25.0)


class TestSingleChannelLayouts:
    def test_2d_and_trailing_channel_frames_mix(self) -> None:
        frames = [
            make_frame(np.full((16, 16), 50, dtype=np.uint8), 0),
            make_frame(np.full((16, 16, 1), 50, dtype=np.uint8), 1),
        ]
        vibro = VibroComputer().compute(frames, CalibrationProfile(window_size=2))
        assert vibro.shape == (16, 16)
        assert vibro.active_pixels == 0

    def test_non_square_mix_computes_delta(self) -> None:
        after = np.full((16, 24, 1), 50, dtype=np.uint8)
        after[4:8, 4:8, 0] = 80
        frames = [make_frame(np.full((16, 24), 50, dtype=np.uint8), 0), make_frame(after, 1)]
        vibro = VibroComputer().compute(frames, CalibrationProfile(window_size=2, neighbor_threshold=THRESHOLD))
        assert vibro.shape == (16, 24)
        assert vibro.active_pixels == 16


class TestPreprocessedDelta:
    def test_threshold_hides_changes_below_it(self) -> None:
        frames = [flat_pixels(), block_pixels(8, 8, 10, raise_by=20)]
        assert _compute(frames).active_pixels == 100
        assert _compute(frames, preprocess="threshold", threshold_value=100.0).active_pixels == 0

    def test_threshold_crossing_gives_full_scale_delta(self) -> None:
        frames = [flat_pixels(), block_pixels(8, 8, 10, raise_by=20)]
        vibro = _compute(frames, preprocess="threshold", threshold_value=60.0)
        assert vibro.active_pixels == 100
        assert vibro.magnitude[12, 12] == pytest.approx(255.0)

    def test_canny_compares_edge_maps(self) -> None:
        block = block_pixels(8, 8, 10, raise_by=100)
        assert _compute([block, block.copy()], preprocess="canny").active_pixels == 0
        moved = _compute([flat_pixels(), block], preprocess="canny")
        assert moved.active_pixels > 0
        assert moved.magnitude.max() == pytest.approx(255.0)
        assert moved.magnitude[12, 12] == 0.0

    def test_each_frame_is_preprocessed_once_while_in_window(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from vibrocore.processing import vibro as vibro_module

        calls: list[int] = []
        real = vibro_module.preprocess_pixels

        def _counting(pixels, calibration):
            calls.append(1)
            return real(pixels, calibration)

        monkeypatch.setattr(vibro_module, "preprocess_pixels", _counting)
        cal = CalibrationProfile(window_size=3, preprocess="threshold", threshold_value=60.0)
        frames = [make_frame(flat_pixels(), seq) for seq in range(4)]
        computer = VibroComputer()
        computer.compute(frames[0:3], cal)
        assert len(calls) == 3
        computer.compute(frames[1:4], cal)
        assert len(calls) == 4
        computer.compute(frames[1:4], cal.replace(threshold_value=70.0))
        assert len(calls) == 7


class TestErrors:
    def test_needs_two_frames(self) -> None:
        with pytest.raises(InsufficientFramesError) as excinfo:
            VibroComputer().compute([make_frame(flat_pixels(), 0)], CalibrationProfile())
        assert excinfo.value.available == 1

    def test_mixed_shapes(self) -> None:
        frames = [make_frame(flat_pixels(), 0), make_frame(flat_pixels(height=16), 1)]
        with pytest.raises(DimensionMismatchError):
            VibroComputer().compute(frames, CalibrationProfile())


class TestLevels:
    def test_three_by_three_block_levels(self) -> None:
        after = flat_pixels()
        after[10:13, 10:13] += 20
        vibro = _compute([flat_pixels(), after])
        assert vibro.levels[11, 11] == 4  # center: 8 neighbors
        assert vibro.levels[10, 11] == 3  # edge middle: 5 neighbors
        assert vibro.levels[10, 10] == 2  # corner: 3 neighbors
        assert level_histogram(vibro) == (0, 4, 4, 1)

    def test_suppressed_pixels_have_level_zero(self) -> None:
        after = flat_pixels()
        after[10, 10] += 20
        vibro = _compute([flat_pixels(), after])
        assert int(vibro.levels.max()) == 0
        assert level_histogram(vibro) == (0, 0, 0, 0)
