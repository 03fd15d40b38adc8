"""Per-pixel difference pass between a golden and a comparison raster.

The pass is a single sweep over the flattened pixel sequence. For every
linear index ``i`` it records the absolute difference ``golden - comparison``
and the signed relative difference ``diff / comparison`` under the zero
policy below, and paints the pixel's severity color.

Zero policy, in order:

1. both values zero      -> rel_diff = 0, not bad
2. exactly one is zero   -> rel_diff = 0, bad (diff keeps its real value)
3. otherwise             -> rel_diff = diff / comparison

A zero ``rel_diff`` therefore means either "equal" or "undefined"; only the
bad mask tells them apart.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .classify import classify_bands
from .config import PPM
from .errors import DimensionMismatch

logger = logging.getLogger(__name__)

# One record per pixel. Coordinates are int32 so rasters wider or taller
# than 32767 pixels keep valid coordinates.
SAMPLE_DTYPE = np.dtype(
    [
        ("x", np.int32),
        ("y", np.int32),
        ("value_golden", np.float32),
        ("value_comparison", np.float32),
        ("diff", np.float32),
        ("rel_diff", np.float32),
    ]
)

ArrayLike = Union[np.ndarray, Sequence[float]]


@dataclass(frozen=True)
class PixelSample:
    """A single pixel record, materialised from the sample array."""

    x: int
    y: int
    value_golden: float
    value_comparison: float
    diff: float
    rel_diff: float

    @classmethod
    def from_record(cls, record) -> "PixelSample":
        return cls(
            x=int(record["x"]),
            y=int(record["y"]),
            value_golden=float(record["value_golden"]),
            value_comparison=float(record["value_comparison"]),
            diff=float(record["diff"]),
            rel_diff=float(record["rel_diff"]),
        )

    @property
    def magnitude(self) -> float:
        return abs(self.rel_diff)


@dataclass
class DiffResult:
    """
    Output of the per-pixel pass.

    Attributes
    ----------
    samples : np.ndarray
        Structured array (``SAMPLE_DTYPE``) in linear index order.
    rgba : np.ndarray
        uint8 array of shape (4, N): R, G, B, A planes.
    aux : np.ndarray
        float32 array of shape (N,), ``rel_diff * 1e6`` where the ratio was
        computed, 0 elsewhere.
    bad_mask : np.ndarray
        bool array of shape (N,), True where exactly one value is zero.
    bad_pixel_count : int
    width, height : int
    """

    samples: np.ndarray
    rgba: np.ndarray
    aux: np.ndarray
    bad_mask: np.ndarray
    bad_pixel_count: int
    width: int
    height: int

    @property
    def total_pixels(self) -> int:
        return self.width * self.height


def _as_flat_float32(values: ArrayLike) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float32)
    return arr.reshape(-1)


def _partition(total: int, parts: int) -> List[Tuple[int, int]]:
    """Split ``range(total)`` into at most ``parts`` contiguous ranges."""
    parts = max(1, min(parts, total)) if total else 1
    edges = np.linspace(0, total, parts + 1).astype(np.int64)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


def _fill_partition(
    start: int,
    stop: int,
    width: int,
    golden: np.ndarray,
    comparison: np.ndarray,
    samples: np.ndarray,
    rgba: np.ndarray,
    aux: np.ndarray,
    bad_mask: np.ndarray,
) -> np.ndarray:
    """
    Run the pass over ``[start, stop)``.

    Writes only the slice it owns and returns the linear indices of the bad
    pixels it found.
    """
    g = golden[start:stop]
    c = comparison[start:stop]
    idx = np.arange(start, stop, dtype=np.int64)

    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        diff = g - c

    g_zero = g == 0
    c_zero = c == 0
    bad = g_zero ^ c_zero
    ratio = ~(g_zero | c_zero)

    rel = np.zeros(stop - start, dtype=np.float32)
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        rel[ratio] = diff[ratio] / c[ratio]

    chunk = samples[start:stop]
    chunk["x"] = idx % width
    chunk["y"] = idx // width
    chunk["value_golden"] = g
    chunk["value_comparison"] = c
    chunk["diff"] = diff
    chunk["rel_diff"] = rel

    aux_chunk = aux[start:stop]
    aux_chunk[ratio] = rel[ratio].astype(np.float64) * PPM

    bad_mask[start:stop] = bad
    rgba[:, start:stop] = classify_bands(bad, np.abs(rel.astype(np.float64)))

    return idx[bad]


def compute_differences(
    golden: ArrayLike,
    comparison: ArrayLike,
    width: int,
    *,
    workers: int = 1,
    on_bad_pixel: Optional[Callable[[PixelSample], None]] = None,
) -> DiffResult:
    """
    Compute per-pixel differences, relative differences and colors.

    Parameters
    ----------
    golden, comparison : array-like of float
        Pixel values of the reference and the comparison raster, flat or
        (height, width). Both are read as float32.
    width : int
        Raster width in pixels; ``len(golden)`` must be a multiple of it.
    workers : int
        Number of threads sharing the pass. Each thread owns a contiguous
        index range, so writes never overlap.
    on_bad_pixel : callable, optional
        Called once per bad pixel, in index order, after the pass finished
        and before anything is sorted.

    Returns
    -------
    DiffResult

    Raises
    ------
    DimensionMismatch
        If the inputs differ in length or do not tile ``width``.
    """
    g = _as_flat_float32(golden)
    c = _as_flat_float32(comparison)

    if g.size != c.size:
        raise DimensionMismatch((g.size,), (c.size,))
    if width <= 0 or g.size % width:
        raise DimensionMismatch(
            (g.size,), (c.size,), f"width {width} does not tile {g.size} pixels"
        )

    total = g.size
    height = total // width

    samples = np.zeros(total, dtype=SAMPLE_DTYPE)
    rgba = np.zeros((4, total), dtype=np.uint8)
    aux = np.zeros(total, dtype=np.float32)
    bad_mask = np.zeros(total, dtype=bool)

    ranges = _partition(total, workers)
    logger.debug(f"Difference pass over {total:,} pixels in {len(ranges)} partition(s)")

    args = (width, g, c, samples, rgba, aux, bad_mask)
    if not ranges:
        bad_parts = []
    elif len(ranges) == 1:
        bad_parts = [_fill_partition(ranges[0][0], ranges[0][1], *args)]
    else:
        with ThreadPoolExecutor(max_workers=len(ranges)) as pool:
            futures = [pool.submit(_fill_partition, a, b, *args) for a, b in ranges]
            # result() re-raises any worker exception here
            bad_parts = [f.result() for f in futures]

    bad_indices = np.concatenate(bad_parts) if bad_parts else np.empty(0, dtype=np.int64)
    bad_pixel_count = int(sum(len(p) for p in bad_parts))

    if on_bad_pixel is not None:
        for i in bad_indices:
            on_bad_pixel(PixelSample.from_record(samples[i]))

    return DiffResult(
        samples=samples,
        rgba=rgba,
        aux=aux,
        bad_mask=bad_mask,
        bad_pixel_count=bad_pixel_count,
        width=width,
        height=height,
    )
