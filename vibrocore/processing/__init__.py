"""Frame processing package.

- :mod:`~vibrocore.processing.window`: bounded ring of the most recent frames.
- :mod:`~vibrocore.processing.vibro`: pure delta / neighbor-filter functions
  and the :class:`VibroComputer` entry point.
- :mod:`~vibrocore.processing.preprocess`: optional per-frame binary threshold
  or Canny edge map.
"""

from .preprocess import preprocess_pixels  # noqa: F401
from .vibro import (  # noqa: F401
    VibroComputer,
    VibroImage,
    level_histogram,
    neighbor_support,
    suppress_isolated,
)
from .window import FrameWindow  # noqa: F401

__all__ = [
    "FrameWindow",
    "VibroComputer",
    "VibroImage",
    "level_histogram",
    "neighbor_support",
    "preprocess_pixels",
    "suppress_isolated",
]
