"""Exception hierarchy for the vibro-image engine.

Only :class:`InvalidCalibrationError` and :class:`ConfigError` are fatal, and
only while an engine is being constructed.  The frame errors are raised by
the building blocks and absorbed by :class:`~vibrocore.controller.EngineController`
so a misbehaving source never stops a running engine.
"""

from __future__ import annotations

from collections.abc import Sequence


class VibroError(Exception):
    """Base class for every error raised by vibrocore."""


class OutOfOrderFrameError(VibroError):
    def __init__(self, sequence: int, last_sequence: int) -> None:
        super().__init__(
            f"frame sequence {sequence} is not greater than last accepted sequence {last_sequence}"
        )
        self.sequence = sequence
        self.last_sequence = last_sequence


class DimensionMismatchError(VibroError):
    def __init__(self, expected: tuple[int, ...], actual: tuple[int, ...]) -> None:
        super().__init__(f"frame shape {actual} differs from established shape {expected}")
        self.expected = expected
        self.actual = actual


class InsufficientFramesError(VibroError):
    """Fewer than two frames are available; a delta cannot be formed yet."""

    def __init__(self, available: int) -> None:
        super().__init__(f"vibro image needs at least 2 frames, got {available}")
        self.available = available


class InvalidCalibrationError(VibroError, ValueError):
    def __init__(self, violations: Sequence[str]) -> None:
        self.violations = tuple(violations)
        super().__init__("invalid calibration: " + "; ".join(self.violations))


class ConfigError(VibroError, ValueError):
    pass
