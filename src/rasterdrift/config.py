"""Run configuration for a golden vs. comparison raster check."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import UsageError

# Number of worst pixels written to the detail log after sorting.
DEFAULT_TOP_N = 10

# GDAL block cache used while reading and writing (megabytes).
DEFAULT_GDAL_CACHE_MB = 100

# Literal positional flag that enables the per-pixel detail log.
DETAIL_LOG_FLAG = "pix"

PPM = 1e6


@dataclass
class CompareConfig:
    """
    Options for a single comparison run.

    Attributes
    ----------
    detail_log : bool
        Write the per-pixel detail log next to the outputs.
    top_n : int
        Number of worst pixels reported after sorting. Clamped to the
        number of pixels at run time.
    workers : int
        Threads used for the per-pixel pass. 1 runs it in the calling thread.
    channels : int
        4 writes an RGBA visualization with alpha no-data, 3 writes the
        legacy RGB layout without alpha.
    calibration_strip : bool
        Burn the 0..254 reference gradient into column 0 of bands 1-3.
    colored_name, rel_name : str, optional
        Fixed file names for the visualization and diagnostic rasters inside
        the output directory. When unset, names derive from the comparison
        file stem.
    write_json : bool
        Also write a machine-readable ``*_summary.json``.
    write_plot : bool
        Also write a ``*_quicklook.png`` figure of the colored diff.
    gdal_cache_mb : int
        GDAL_CACHEMAX for the run.
    """

    detail_log: bool = False
    top_n: int = DEFAULT_TOP_N
    workers: int = 1
    channels: int = 4
    calibration_strip: bool = True
    colored_name: Optional[str] = None
    rel_name: Optional[str] = None
    write_json: bool = False
    write_plot: bool = False
    gdal_cache_mb: int = DEFAULT_GDAL_CACHE_MB

    def __post_init__(self):
        if self.channels not in (3, 4):
            raise UsageError(f"channels must be 3 or 4, got {self.channels}")
        if self.top_n < 0:
            raise UsageError(f"top_n must be >= 0, got {self.top_n}")
        if self.workers < 1:
            raise UsageError(f"workers must be >= 1, got {self.workers}")
        if self.gdal_cache_mb <= 0:
            raise UsageError(f"gdal_cache_mb must be positive, got {self.gdal_cache_mb}")
