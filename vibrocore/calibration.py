"""Calibration profile: the immutable tuning parameters of one engine run.

A :class:`CalibrationProfile` is validated once, at construction, and never
mutated afterwards.  Every violated constraint is collected so the raised
:class:`~vibrocore.errors.InvalidCalibrationError` lists them all at once.
Recalibrating a running engine means building a new profile (see
:meth:`CalibrationProfile.replace`) and handing it to
:meth:`~vibrocore.controller.EngineController.swap_calibration`.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .constants import (
    CANNY_APERTURES,
    DEFAULT_LEVEL_BOUNDS,
    LEVEL_COUNT,
    MAX_NEIGHBORS,
    MIN_WINDOW_SIZE,
)
from .errors import InvalidCalibrationError


class DeltaMode(StrEnum):
    """Which frames of the window are compared to form the delta image."""

    STRIDE = "stride"
    PEAK = "peak"
    RECURSIVE = "recursive"


class Preprocess(StrEnum):
    """Per-frame transform applied before frames are differenced."""

    NONE = "none"
    THRESHOLD = "threshold"
    CANNY = "canny"


class StatMode(StrEnum):
    """How statistics forget samples older than ``stat_window`` ticks."""

    AUTO = "auto"
    EXACT = "exact"
    EMA = "ema"


class RegionReduce(StrEnum):
    MAX = "max"
    MEAN = "mean"


class AlertMetric(StrEnum):
    COUNT = "count"
    MEAN = "mean"
    VARIANCE = "variance"


_ENUM_FIELDS: dict[str, type[StrEnum]] = {
    "delta_mode": DeltaMode,
    "preprocess": Preprocess,
    "stat_mode": StatMode,
    "region_reduce": RegionReduce,
    "alert_metric": AlertMetric,
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True, slots=True)
class CalibrationProfile:
    window_size: int = 3
    neighbor_threshold: float = 10.0
    stat_window: int = 30
    alert_threshold: float = 20.0
    region_size: int = 1
    delta_mode: DeltaMode = DeltaMode.STRIDE
    delta_stride: int | None = None
    min_neighbors: int = 1
    stat_mode: StatMode = StatMode.AUTO
    region_reduce: RegionReduce = RegionReduce.MAX
    alert_metric: AlertMetric = AlertMetric.COUNT
    metric_threshold: float | None = None
    min_dwell: int = 3
    release_dwell: int = 5
    release_ratio: float = 0.8
    level_bounds: tuple[int, ...] = field(default=DEFAULT_LEVEL_BOUNDS)
    dispersion_normalization: float = 10.0
    preprocess: Preprocess = Preprocess.NONE
    threshold_value: float = 100.0
    threshold_max: float = 255.0
    canny_sigma: float = 0.05
    canny_aperture: int = 3
    canny_l2_gradient: bool = True

    def __post_init__(self) -> None:
        violations: list[str] = []

        for name, enum_cls in _ENUM_FIELDS.items():
            raw = getattr(self, name)
            try:
                object.__setattr__(self, name, enum_cls(raw))
            except ValueError:
                allowed = ", ".join(member.value for member in enum_cls)
                violations.append(f"{name} must be one of {allowed}, got {raw!r}")

        if not _is_int(self.window_size) or self.window_size < MIN_WINDOW_SIZE:
            violations.append(f"window_size must be an integer >= {MIN_WINDOW_SIZE}, got {self.window_size!r}")
        for name in ("neighbor_threshold", "alert_threshold"):
            value = getattr(self, name)
            if not _is_number(value) or value < 0:
                violations.append(f"{name} must be a finite number >= 0, got {value!r}")
        for name in ("stat_window", "region_size", "min_dwell", "release_dwell"):
            value = getattr(self, name)
            if not _is_int(value) or value < 1:
                violations.append(f"{name} must be an integer >= 1, got {value!r}")

        if self.delta_stride is not None:
            max_stride = self.window_size - 1 if _is_int(self.window_size) else None
            if not _is_int(self.delta_stride) or self.delta_stride < 1 or (
                max_stride is not None and self.delta_stride > max_stride
            ):
                violations.append(
                    f"delta_stride must be an integer in 1..window_size-1 ({max_stride}), "
                    f"got {self.delta_stride!r}"
                )

        if not _is_int(self.min_neighbors) or not 1 <= self.min_neighbors <= MAX_NEIGHBORS:
            violations.append(
                f"min_neighbors must be an integer in 1..{MAX_NEIGHBORS}, got {self.min_neighbors!r}"
            )

        if self.metric_threshold is not None and (
            not _is_number(self.metric_threshold) or self.metric_threshold < 0
        ):
            violations.append(
                f"metric_threshold must be a finite number >= 0, got {self.metric_threshold!r}"
            )

        if not _is_number(self.release_ratio) or not 0 < self.release_ratio <= 1:
            violations.append(f"release_ratio must be in (0, 1], got {self.release_ratio!r}")

        try:
            bounds = tuple(self.level_bounds)
        except TypeError:
            bounds = ()
        if (
            len(bounds) != LEVEL_COUNT
            or not all(_is_int(b) and 1 <= b <= MAX_NEIGHBORS for b in bounds)
            or any(later < earlier for earlier, later in zip(bounds, bounds[1:]))
        ):
            violations.append(
                f"level_bounds must be {LEVEL_COUNT} non-decreasing integers in "
                f"1..{MAX_NEIGHBORS}, got {self.level_bounds!r}"
            )
        else:
            object.__setattr__(self, "level_bounds", bounds)

        if not _is_number(self.dispersion_normalization) or self.dispersion_normalization <= 0:
            violations.append(
                "dispersion_normalization must be a finite number > 0, "
                f"got {self.dispersion_normalization!r}"
            )

        for name in ("threshold_value", "threshold_max", "canny_sigma"):
            value = getattr(self, name)
            if not _is_number(value) or value < 0:
                violations.append(f"{name} must be a finite number >= 0, got {value!r}")
        if not _is_int(self.canny_aperture) or self.canny_aperture not in CANNY_APERTURES:
            allowed = ", ".join(str(size) for size in CANNY_APERTURES)
            violations.append(f"canny_aperture must be one of {allowed}, got {self.canny_aperture!r}")
        if not isinstance(self.canny_l2_gradient, bool):
            violations.append(f"canny_l2_gradient must be a boolean, got {self.canny_l2_gradient!r}")

        if violations:
            raise InvalidCalibrationError(violations)

    # -- derived values --------------------------------------------------------

    @property
    def effective_stride(self) -> int:
        """Frames between the compared pair; oldest-vs-newest when unset."""
        return self.delta_stride if self.delta_stride is not None else self.window_size - 1

    @property
    def effective_metric_threshold(self) -> float:
        if self.metric_threshold is not None:
            return float(self.metric_threshold)
        if self.alert_metric is AlertMetric.COUNT:
            return 1.0
        return float(self.alert_threshold)

    @property
    def resolved_stat_mode(self) -> StatMode:
        if self.stat_mode is StatMode.AUTO:
            return StatMode.EMA if self.region_size == 1 else StatMode.EXACT
        return self.stat_mode

    @property
    def ema_alpha(self) -> float:
        return 2.0 / (self.stat_window + 1.0)

    @property
    def count_decay(self) -> float:
        return 1.0 - 1.0 / self.stat_window

    # -- construction helpers --------------------------------------------------

    def replace(self, **changes: Any) -> CalibrationProfile:
        """Return a new validated profile with *changes* applied."""
        return dataclasses.replace(self, **changes)

    def statistics_key(self) -> tuple[Any, ...]:
        """Fields that shape statistics state; a change requires a rebuild."""
        return (
            self.stat_window,
            self.region_size,
            self.resolved_stat_mode,
            self.region_reduce,
            self.alert_threshold,
        )

    def preprocess_key(self) -> tuple[Any, ...]:
        """Fields that decide how a single frame is preprocessed."""
        if self.preprocess is Preprocess.THRESHOLD:
            return (self.preprocess, self.threshold_value, self.threshold_max)
        if self.preprocess is Preprocess.CANNY:
            return (self.preprocess, self.canny_sigma, self.canny_aperture, self.canny_l2_gradient)
        return (self.preprocess,)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, StrEnum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CalibrationProfile:
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidCalibrationError([f"unknown calibration key: {key}" for key in unknown])
        kwargs = dict(data)
        if isinstance(kwargs.get("level_bounds"), list):
            kwargs["level_bounds"] = tuple(kwargs["level_bounds"])
        return cls(**kwargs)
