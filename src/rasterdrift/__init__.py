"""Value-for-value drift check between two production runs of a raster.

This package provides tools for:
- Per-pixel difference and relative difference with an explicit zero policy
- Severity band classification of relative differences
- Aggregate statistics (bad pixels, average, median estimate, worst pixels)
- Color-coded and ppm difference GeoTIFF outputs

Example usage:
    from rasterdrift import compare_rasters, CompareConfig

    result = compare_rasters(
        "golden/elevation.tif",
        "candidate/elevation.tif",
        "out/",
        CompareConfig(detail_log=True),
    )
    print(result.stats.avg_ppm)
"""

__version__ = "0.1.0"

from .config import CompareConfig

# Core computation
from .classify import BANDS, Band, classify_band, classify_bands
from .diff import PixelSample, DiffResult, compute_differences
from .stats import RunStats, aggregate, median_estimate, sort_by_magnitude, top_n

# Reporting
from .report import DetailLog, ReportEmitter, format_pixel_detail, write_summary_json

# Raster I/O and orchestration
from .raster_io import RasterSource, open_source, derive_output_paths
from .pipeline import ComparisonResult, compare_arrays, compare_rasters

# Errors
from .errors import (
    RasterDriftError,
    UsageError,
    SourceOpenError,
    DimensionMismatch,
    DetailSinkOpenError,
    OutputWriteError,
    RasterBackendError,
)

__all__ = [
    # Version
    "__version__",
    "CompareConfig",
    # Core
    "BANDS",
    "Band",
    "classify_band",
    "classify_bands",
    "PixelSample",
    "DiffResult",
    "compute_differences",
    "RunStats",
    "aggregate",
    "median_estimate",
    "sort_by_magnitude",
    "top_n",
    # Reporting
    "DetailLog",
    "ReportEmitter",
    "format_pixel_detail",
    "write_summary_json",
    # I/O and orchestration
    "RasterSource",
    "open_source",
    "derive_output_paths",
    "ComparisonResult",
    "compare_arrays",
    "compare_rasters",
    # Errors
    "RasterDriftError",
    "UsageError",
    "SourceOpenError",
    "DimensionMismatch",
    "DetailSinkOpenError",
    "OutputWriteError",
    "RasterBackendError",
]
