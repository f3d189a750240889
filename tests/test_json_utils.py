"""Tests for vibrocore.json_utils."""

from __future__ import annotations

import json

import numpy as np

from vibrocore.json_utils import plain, sanitize_for_json, to_json_line


class TestSanitize:
    def test_numpy_values_become_native(self) -> None:
        cleaned, found = sanitize_for_json({"a": np.float32(1.5), "b": np.arange(3), "c": (np.int64(2),)})
        assert cleaned == {"a": 1.5, "b": [0, 1, 2], "c": [2]}
        assert found == 0

    def test_non_finite_replaced(self) -> None:
        cleaned, found = sanitize_for_json([float("nan"), 1.0, float("inf")])
        assert cleaned == [None, 1.0, None]
        assert found == 2

    def test_enum_members_use_their_value(self) -> None:
        from vibrocore.calibration import AlertMetric

        assert plain({"metric": AlertMetric.MEAN}) == {"metric": "mean"}

    def test_dumps_is_strict_json(self) -> None:
        text = to_json_line({"v": float("-inf"), "name": "región"})
        assert json.loads(text) == {"v": None, "name": "región"}
        assert "\n" not in text

