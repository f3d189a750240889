"""Per-frame preprocessing applied before frames are differenced.

Both transforms work on the intensity image (see
:func:`vibrocore.frames.to_intensity`) and return a single-channel array:

* ``threshold``: OpenCV binary threshold, ``maxval`` where intensity is
  strictly above ``thresh`` and 0 elsewhere.  Slow illumination drift below
  the threshold never reaches the delta image.
* ``canny``: OpenCV Canny edge map (0 or 255) with hysteresis bounds derived
  from the frame's median intensity, so the edge detector adapts to exposure
  without per-scene tuning.
"""

from __future__ import annotations

import cv2
import numpy as np

from ..calibration import CalibrationProfile, Preprocess
from ..frames import to_intensity


def intensity_u8(pixels: np.ndarray) -> np.ndarray:
    """Intensity rounded and clipped to the 8-bit range Canny expects."""
    return np.clip(np.rint(to_intensity(pixels)), 0, 255).astype(np.uint8)


def median_canny_bounds(gray: np.ndarray, sigma: float) -> tuple[float, float]:
    """``(low, high)`` hysteresis bounds centred on the median intensity."""
    median = float(np.median(gray))
    return 1.0 - sigma + median, 1.0 + sigma + median


def binary_threshold(pixels: np.ndarray, thresh: float, maxval: float) -> np.ndarray:
    gray = np.ascontiguousarray(to_intensity(pixels), dtype=np.float32)
    _, out = cv2.threshold(gray, float(thresh), float(maxval), cv2.THRESH_BINARY)
    return out


def canny_edges(
    pixels: np.ndarray,
    sigma: float,
    aperture: int = 3,
    l2_gradient: bool = True,
) -> np.ndarray:
    gray = intensity_u8(pixels)
    low, high = median_canny_bounds(gray, sigma)
    return cv2.Canny(gray, low, high, apertureSize=int(aperture), L2gradient=bool(l2_gradient))


def preprocess_pixels(pixels: np.ndarray, calibration: CalibrationProfile) -> np.ndarray:
    """Apply the profile's preprocessing; ``none`` returns *pixels* untouched."""
    if calibration.preprocess is Preprocess.THRESHOLD:
        return binary_threshold(pixels, calibration.threshold_value, calibration.threshold_max)
    if calibration.preprocess is Preprocess.CANNY:
        return canny_edges(
            pixels,
            calibration.canny_sigma,
            calibration.canny_aperture,
            calibration.canny_l2_gradient,
        )
    return pixels
