"""Colour rendering of vibro images for display or export."""

from __future__ import annotations

import numpy as np

from .constants import LEVEL_COLORS_BGR
from .processing.vibro import VibroImage

_PALETTE = np.asarray(LEVEL_COLORS_BGR, dtype=np.uint8)


def colorize(vibro: VibroImage) -> np.ndarray:
    """Map each pixel's vibration level to a BGR uint8 colour.

    Level 1 is green, 2 cyan, 3 yellow, 4 red; suppressed pixels are black.
    """
    return _PALETTE[vibro.levels]


def blend(frame_pixels: np.ndarray, vibro: VibroImage, alpha: float = 0.5) -> np.ndarray:
    """Overlay the colourised levels on a BGR or grayscale frame.

    Only pixels with a non-zero level are tinted; the rest keep the frame.
    """
    base = np.asarray(frame_pixels)
    if base.ndim == 2:
        base = np.repeat(base[:, :, None], 3, axis=2)
    elif base.shape[2] == 1:
        base = np.repeat(base, 3, axis=2)
    base = base[:, :, :3].astype(np.float32)
    colors = colorize(vibro).astype(np.float32)
    alpha = min(1.0, max(0.0, float(alpha)))
    mixed = base * (1.0 - alpha) + colors * alpha
    out = np.where((vibro.levels > 0)[:, :, None], mixed, base)
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)
