"""Alert evaluation package: per-region hysteresis and event emission."""

from ._types import AlertEvent, AlertState  # noqa: F401
from .evaluator import AlertEvaluator  # noqa: F401
from .tracker import RegionStates, advance_states  # noqa: F401

__all__ = [
    "AlertEvaluator",
    "AlertEvent",
    "AlertState",
    "RegionStates",
    "advance_states",
]
