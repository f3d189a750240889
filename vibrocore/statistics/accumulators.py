"""Per-region running statistics with bounded memory.

Two forgetting strategies share one interface (``update`` / ``count`` /
``mean`` / ``variance`` / ``samples`` / ``nbytes``):

:class:`ExactWindowAccumulator`
    Keeps the last ``stat_window`` samples of every region in a ring.  Mean
    and sum of squared deviations (M2) follow a sliding Welford update: plain
    Welford insertion while the ring fills, add-new/remove-old once full.
    Each time the ring wraps, mean and M2 are recomputed from the ring
    contents so rounding drift never accumulates past one window.  The
    exceedance count is exact.  Memory is ``regions x stat_window``.

:class:`EmaAccumulator`
    Exponentially weighted mean/variance with ``alpha = 2 / (stat_window + 1)``
    in the incremental form of West (1979); the first sample seeds the mean.
    The exceedance count decays by ``1 - 1/stat_window`` per tick, so a
    steady exceedance converges to ``stat_window`` and a first exceedance
    from rest reads exactly 1.  Memory is ``regions``.  Old samples are
    down-weighted rather than excluded, which is the price of running at
    full pixel resolution.

Arrays are float64 regardless of the float32 vibro magnitude so that long
streams do not lose precision in the running sums.
"""

from __future__ import annotations

import numpy as np


class ExactWindowAccumulator:
    __slots__ = (
        "window",
        "_values",
        "_exceeded",
        "_write_idx",
        "_filled",
        "_mean",
        "_m2",
        "_count",
    )

    def __init__(self, window: int, grid_shape: tuple[int, int]) -> None:
        self.window = int(window)
        self._values = np.zeros((self.window, *grid_shape), dtype=np.float64)
        self._exceeded = np.zeros((self.window, *grid_shape), dtype=bool)
        self._write_idx = 0
        self._filled = 0
        self._mean = np.zeros(grid_shape, dtype=np.float64)
        self._m2 = np.zeros(grid_shape, dtype=np.float64)
        self._count = np.zeros(grid_shape, dtype=np.int64)

    def update(self, samples: np.ndarray, exceeded: np.ndarray) -> None:
        x = samples.astype(np.float64, copy=False)
        slot = self._write_idx
        if self._filled < self.window:
            n = self._filled + 1
            delta = x - self._mean
            self._mean += delta / n
            self._m2 += delta * (x - self._mean)
            self._count += exceeded
            self._filled = n
        else:
            old = self._values[slot]
            old_mean = self._mean.copy()
            self._mean += (x - old) / self.window
            self._m2 += (x - old) * (x - self._mean + old - old_mean)
            self._count += exceeded.astype(np.int64) - self._exceeded[slot]
        self._values[slot] = x
        self._exceeded[slot] = exceeded
        self._write_idx = (slot + 1) % self.window
        if self._write_idx == 0:
            self._resync()
        np.maximum(self._m2, 0.0, out=self._m2)

    def _resync(self) -> None:
        self._mean = self._values.mean(axis=0)
        self._m2 = ((self._values - self._mean) ** 2).sum(axis=0)

    @property
    def samples(self) -> int:
        return self._filled

    def count(self) -> np.ndarray:
        return self._count.astype(np.float64)

    def mean(self) -> np.ndarray:
        return self._mean.copy()

    def variance(self) -> np.ndarray:
        if self._filled == 0:
            return np.zeros_like(self._m2)
        return self._m2 / self._filled

    @property
    def nbytes(self) -> int:
        return int(
            self._values.nbytes + self._exceeded.nbytes + self._mean.nbytes + self._m2.nbytes + self._count.nbytes
        )


class EmaAccumulator:
    __slots__ = ("window", "alpha", "decay", "_seen", "_mean", "_var", "_count")

    def __init__(self, window: int, grid_shape: tuple[int, int]) -> None:
        self.window = int(window)
        self.alpha = 2.0 / (self.window + 1.0)
        self.decay = 1.0 - 1.0 / self.window
        self._seen = 0
        self._mean = np.zeros(grid_shape, dtype=np.float64)
        self._var = np.zeros(grid_shape, dtype=np.float64)
        self._count = np.zeros(grid_shape, dtype=np.float64)

    def update(self, samples: np.ndarray, exceeded: np.ndarray) -> None:
        x = samples.astype(np.float64, copy=False)
        if self._seen == 0:
            self._mean[...] = x
            self._var[...] = 0.0
        else:
            diff = x - self._mean
            incr = self.alpha * diff
            self._mean += incr
            self._var = (1.0 - self.alpha) * (self._var + diff * incr)
        self._count *= self.decay
        self._count += exceeded
        self._seen += 1

    @property
    def samples(self) -> int:
        return min(self._seen, self.window)

    def count(self) -> np.ndarray:
        return self._count.copy()

    def mean(self) -> np.ndarray:
        return self._mean.copy()

    def variance(self) -> np.ndarray:
        return self._var.copy()

    @property
    def nbytes(self) -> int:
        return int(self._mean.nbytes + self._var.nbytes + self._count.nbytes)
