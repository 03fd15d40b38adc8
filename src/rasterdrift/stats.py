"""Aggregate statistics over the per-pixel samples.

The sample array is sorted in place by relative difference magnitude,
largest first. Ties have no defined order.

The median figure is an estimate, not a statistical median: it indexes the
sequence sorted over *all* pixels (zero differences sort to the back) at
``count_nonzero // 2``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .config import DEFAULT_TOP_N, PPM
from .diff import PixelSample


@dataclass(frozen=True)
class RunStats:
    """
    Counters for one run.

    Attributes
    ----------
    bad_pixel_count : int
        Pixels where exactly one value is zero.
    total_pixels : int
    sum_abs_rel_diff_nonzero : float
        Sum of ``abs(rel_diff)`` over samples with ``rel_diff != 0``.
    count_nonzero : int
        Number of samples with ``rel_diff != 0``.
    """

    bad_pixel_count: int
    total_pixels: int
    sum_abs_rel_diff_nonzero: float = 0.0
    count_nonzero: int = 0

    @property
    def has_differences(self) -> bool:
        return self.count_nonzero > 0

    @property
    def bad_pct(self) -> float:
        return self._share(self.bad_pixel_count) * 100

    @property
    def bad_ppm(self) -> float:
        return self._share(self.bad_pixel_count) * PPM

    @property
    def nonzero_pct(self) -> float:
        return self._share(self.count_nonzero) * 100

    @property
    def average(self) -> Optional[float]:
        """Mean ``abs(rel_diff)`` over nonzero samples, None without any."""
        if self.count_nonzero == 0:
            return None
        return self.sum_abs_rel_diff_nonzero / self.count_nonzero

    @property
    def avg_pct(self) -> Optional[float]:
        avg = self.average
        return None if avg is None else avg * 100

    @property
    def avg_ppm(self) -> Optional[float]:
        avg = self.average
        return None if avg is None else avg * PPM

    def _share(self, count: int) -> float:
        if self.total_pixels == 0:
            return 0.0
        return count / self.total_pixels

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.update(
            {
                "bad_pct": self.bad_pct,
                "bad_ppm": self.bad_ppm,
                "nonzero_pct": self.nonzero_pct,
                "avg_rel_diff": self.average,
                "avg_pct": self.avg_pct,
                "avg_ppm": self.avg_ppm,
            }
        )
        return d


def sort_by_magnitude(samples: np.ndarray) -> np.ndarray:
    """
    Reorder ``samples`` in place by ``abs(rel_diff)``, largest first.

    NaN magnitudes end up behind every finite value.

    Returns
    -------
    np.ndarray
        The same array, for chaining.
    """
    magnitude = np.abs(samples["rel_diff"].astype(np.float64))
    order = np.argsort(-magnitude, kind="quicksort")
    samples[:] = samples[order]
    return samples


def aggregate(samples: np.ndarray, bad_pixel_count: int) -> RunStats:
    """Second pass: sum and count the nonzero relative differences."""
    rel = samples["rel_diff"]
    nonzero = rel != 0
    count_nonzero = int(np.count_nonzero(nonzero))
    total = float(np.sum(np.abs(rel[nonzero].astype(np.float64))))
    return RunStats(
        bad_pixel_count=int(bad_pixel_count),
        total_pixels=int(samples.size),
        sum_abs_rel_diff_nonzero=total,
        count_nonzero=count_nonzero,
    )


def median_estimate(sorted_samples: np.ndarray, count_nonzero: int) -> Optional[float]:
    """
    Relative difference (ppm) at index ``count_nonzero // 2`` of the sorted samples.

    Returns None when there is no nonzero sample.
    """
    if count_nonzero <= 0:
        return None
    return float(sorted_samples["rel_diff"][count_nonzero // 2]) * PPM


def top_n(sorted_samples: np.ndarray, n: int = DEFAULT_TOP_N) -> List[PixelSample]:
    """
    First ``min(n, len(sorted_samples))`` records of the sorted samples.

    When fewer than ``n`` samples differ, the trailing entries are
    zero-difference pixels and are returned as they are.
    """
    n = min(n, sorted_samples.size)
    return [PixelSample.from_record(rec) for rec in sorted_samples[:n]]
