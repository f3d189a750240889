"""Vibro-image engine: frame deltas, windowed statistics, alerts."""

from importlib.metadata import PackageNotFoundError, version

from .alerts import AlertEvaluator, AlertEvent, AlertState
from .calibration import AlertMetric, CalibrationProfile, DeltaMode, Preprocess, RegionReduce, StatMode
from .controller import EngineController
from .errors import (
    ConfigError,
    DimensionMismatchError,
    InsufficientFramesError,
    InvalidCalibrationError,
    OutOfOrderFrameError,
    VibroError,
)
from .frames import Frame
from .metrics import FrameDropped
from .processing import FrameWindow, VibroComputer, VibroImage
from .statistics import PixelStatistic, StatisticsEngine, StatisticsSnapshot

__all__ = [
    "AlertEvaluator",
    "AlertEvent",
    "AlertMetric",
    "AlertState",
    "CalibrationProfile",
    "ConfigError",
    "DeltaMode",
    "DimensionMismatchError",
    "EngineController",
    "Frame",
    "FrameDropped",
    "FrameWindow",
    "InsufficientFramesError",
    "InvalidCalibrationError",
    "OutOfOrderFrameError",
    "PixelStatistic",
    "Preprocess",
    "RegionReduce",
    "StatMode",
    "StatisticsEngine",
    "StatisticsSnapshot",
    "VibroComputer",
    "VibroError",
    "VibroImage",
    "__version__",
]

try:
    __version__: str = version("vibrocore")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
