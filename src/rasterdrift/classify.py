"""Severity bands for relative differences.

A pixel is mapped to one of eight color bands from the magnitude of its
relative difference and its bad flag. Evaluation is top-down and the first
match wins:

=========  =====================  ==================
band       condition              RGBA
=========  =====================  ==================
bad        bad flag set           (255, 0, 0, 255)
none       magnitude == 0         (0, 0, 0, 0)
orange     magnitude > 1e-1       (255, 128, 0, 255)
yellow     magnitude > 1e-2       (255, 255, 0, 255)
green      magnitude > 1e-3       (0, 255, 0, 255)
cyan       magnitude > 1e-4       (0, 255, 255, 255)
azure      magnitude > 1e-5       (0, 128, 255, 255)
blue       anything else          (0, 0, 255, 255)
=========  =====================  ==================

Thresholds are strict, so a magnitude of exactly 1e-3 is cyan, not green.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Band:
    name: str
    rgba: Tuple[int, int, int, int]
    threshold: Optional[float] = None
    label: str = ""


BAD = Band("bad", (255, 0, 0, 255), label="one value is zero")
NONE = Band("none", (0, 0, 0, 0), label="no difference")
ORANGE = Band("orange", (255, 128, 0, 255), 1e-1, "> 10%")
YELLOW = Band("yellow", (255, 255, 0, 255), 1e-2, "> 1%")
GREEN = Band("green", (0, 255, 0, 255), 1e-3, "> 0.1%")
CYAN = Band("cyan", (0, 255, 255, 255), 1e-4, "> 100 ppm")
AZURE = Band("azure", (0, 128, 255, 255), 1e-5, "> 10 ppm")
BLUE = Band("blue", (0, 0, 255, 255), label="<= 10 ppm")

# Lookup order: bad, none, then severity from the top.
BANDS: Tuple[Band, ...] = (BAD, NONE, ORANGE, YELLOW, GREEN, CYAN, AZURE, BLUE)
SEVERITY_BANDS: Tuple[Band, ...] = (ORANGE, YELLOW, GREEN, CYAN, AZURE)

_RGBA_TABLE = np.array([b.rgba for b in BANDS], dtype=np.uint8)


def band_for(bad: bool, magnitude: float) -> Band:
    """Return the band for one pixel."""
    if bad:
        return BAD
    if magnitude == 0:
        return NONE
    for band in SEVERITY_BANDS:
        if magnitude > band.threshold:
            return band
    return BLUE


def classify_band(bad: bool, magnitude: float) -> Tuple[int, int, int, int]:
    """
    Map a bad flag and a relative difference magnitude to an RGBA color.

    Parameters
    ----------
    bad : bool
        True when exactly one of the two source values is zero.
    magnitude : float
        ``abs(rel_diff)``.

    Returns
    -------
    tuple of int
        (r, g, b, a), each in 0..255.
    """
    return band_for(bad, magnitude).rgba


def band_indices(bad_mask: np.ndarray, magnitude: np.ndarray) -> np.ndarray:
    """Vectorised ``band_for``: index into ``BANDS`` for every pixel."""
    bad_mask = np.asarray(bad_mask, dtype=bool)
    magnitude = np.asarray(magnitude, dtype=np.float64)

    conditions = [bad_mask, magnitude == 0]
    conditions += [magnitude > band.threshold for band in SEVERITY_BANDS]
    # np.select takes the first true condition, same as the scalar chain
    return np.select(
        conditions, np.arange(len(conditions), dtype=np.uint8), default=len(BANDS) - 1
    ).astype(np.uint8)


def classify_bands(bad_mask: np.ndarray, magnitude: np.ndarray) -> np.ndarray:
    """
    Vectorised ``classify_band``.

    Parameters
    ----------
    bad_mask : np.ndarray of bool
    magnitude : np.ndarray of float
        Same shape as ``bad_mask``.

    Returns
    -------
    np.ndarray
        uint8 array of shape ``(4,) + magnitude.shape`` holding R, G, B, A.
    """
    idx = band_indices(bad_mask, magnitude)
    return np.moveaxis(_RGBA_TABLE[idx], -1, 0)
