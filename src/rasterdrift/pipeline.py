"""Golden vs. comparison run: difference pass, statistics, reports, outputs.

Run order:

1. per-pixel difference pass (bad pixels go to the detail log right away)
2. bad pixel summary
3. sort samples by relative difference magnitude
4. nonzero statistics
5. top-N detail entries and aggregate summary
6. release the samples, write the color and relative difference rasters
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Union

import numpy as np
import rasterio
from rasterio.env import get_gdal_config

from .config import DEFAULT_TOP_N, CompareConfig
from .diff import ArrayLike, PixelSample, compute_differences
from .errors import OutputWriteError
from .raster_io import (
    check_dimensions,
    check_georeferencing,
    derive_output_paths,
    open_source,
    write_color_raster,
    write_rel_diff_raster,
)
from .report import DetailLog, ReportEmitter, write_summary_json
from .stats import RunStats, aggregate, median_estimate, sort_by_magnitude, top_n

logger = logging.getLogger(__name__)


@dataclass
class ComparisonResult:
    """
    Everything a run produces besides the report text.

    Attributes
    ----------
    stats : RunStats
    median_ppm : float or None
        Median estimate in ppm; None when no pixel differs.
    top : list of PixelSample
        Worst pixels, largest magnitude first; empty when no pixel differs.
    rgba : np.ndarray
        uint8 (4, height*width) severity colors.
    aux : np.ndarray
        float32 (height*width,) ``rel_diff * 1e6``.
    width, height : int
    outputs : dict
        Paths of written files, keyed by kind.
    """

    stats: RunStats
    median_ppm: Optional[float]
    top: List[PixelSample]
    rgba: np.ndarray = field(repr=False)
    aux: np.ndarray = field(repr=False)
    width: int = 0
    height: int = 0
    outputs: Dict[str, str] = field(default_factory=dict)


def compare_arrays(
    golden: ArrayLike,
    comparison: ArrayLike,
    width: int,
    *,
    emitter: Optional[ReportEmitter] = None,
    top_n_count: int = DEFAULT_TOP_N,
    workers: int = 1,
) -> ComparisonResult:
    """
    Compare two in-memory pixel buffers.

    Parameters
    ----------
    golden, comparison : array-like of float
        Flat or (height, width) buffers of equal size.
    width : int
    emitter : ReportEmitter, optional
        Summary and detail sinks. Defaults to a stdout summary only.
    top_n_count : int
        Worst pixels to report; clamped to the pixel count.
    workers : int
        Threads for the per-pixel pass.

    Returns
    -------
    ComparisonResult
    """
    if emitter is None:
        emitter = ReportEmitter()

    on_bad = emitter.pixel_detail if emitter.detail is not None else None
    diff = compute_differences(golden, comparison, width, workers=workers, on_bad_pixel=on_bad)

    emitter.bad_pixel_summary(RunStats(diff.bad_pixel_count, diff.total_pixels))

    samples = sort_by_magnitude(diff.samples)
    stats = aggregate(samples, diff.bad_pixel_count)
    median_ppm = median_estimate(samples, stats.count_nonzero)

    top: List[PixelSample] = []
    if stats.has_differences:
        top = top_n(samples, top_n_count)
        emitter.top_n_detail(top)
    emitter.aggregate_summary(stats, median_ppm)

    diff.samples = None
    del samples

    return ComparisonResult(
        stats=stats,
        median_ppm=median_ppm,
        top=top,
        rgba=diff.rgba,
        aux=diff.aux,
        width=diff.width,
        height=diff.height,
    )


def compare_rasters(
    golden_path: Union[str, Path],
    comparison_path: Union[str, Path],
    output_dir: Union[str, Path],
    config: Optional[CompareConfig] = None,
    summary: Optional[TextIO] = None,
) -> ComparisonResult:
    """
    Compare two raster files and write the difference rasters.

    Parameters
    ----------
    golden_path, comparison_path : str or Path
        Single-band rasters of equal dimensions; band 1 is read.
    output_dir : str or Path
        Created if missing.
    config : CompareConfig, optional
    summary : TextIO, optional
        Summary stream, stdout by default.

    Returns
    -------
    ComparisonResult

    Raises
    ------
    SourceOpenError, DimensionMismatch, DetailSinkOpenError, OutputWriteError,
    RasterBackendError
    """
    if config is None:
        config = CompareConfig()
    output_dir = Path(output_dir)

    logger.info(f"golden = {golden_path}")
    logger.info(f"comparison = {comparison_path}")

    with rasterio.Env(GDAL_CACHEMAX=config.gdal_cache_mb):
        golden = open_source(golden_path)
        comparison = open_source(comparison_path)
        check_dimensions(golden, comparison)
        georef = check_georeferencing(golden, comparison)
        logger.info(f"(w, h) = {comparison.width} , {comparison.height}")

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputWriteError(str(output_dir), exc.strerror or str(exc)) from exc
        paths = derive_output_paths(
            comparison_path, output_dir, config.colored_name, config.rel_name
        )

        detail = None
        if config.detail_log:
            detail = DetailLog.open(paths.detail_log)
        else:
            logger.info("Detailed pixel level difference log will not be generated.")

        emitter = ReportEmitter(summary, detail)
        try:
            result = compare_arrays(
                golden.data,
                comparison.data,
                comparison.width,
                emitter=emitter,
                top_n_count=config.top_n,
                workers=config.workers,
            )
        finally:
            if detail is not None:
                detail.close()

        golden.data = None
        comparison.data = None

        tags = {
            "GOLDEN_SOURCE": str(golden_path),
            "COMPARISON_SOURCE": str(comparison_path),
            "BAD_PIXEL_COUNT": result.stats.bad_pixel_count,
            "NONZERO_PIXEL_COUNT": result.stats.count_nonzero,
        }
        result.outputs["colored"] = write_color_raster(
            paths.colored,
            result.rgba,
            comparison,
            channels=config.channels,
            with_calibration_strip=config.calibration_strip,
            tags=tags,
        )
        result.outputs["rel_diff"] = write_rel_diff_raster(
            paths.rel_diff, result.aux, comparison, tags=tags
        )
        logger.debug(f"GDAL cache max = {get_gdal_config('GDAL_CACHEMAX')} MB")

    if detail is not None:
        result.outputs["detail_log"] = str(paths.detail_log)

    if config.write_plot:
        import matplotlib.pyplot as plt

        from .plot import plot_color_diff

        fig = plot_color_diff(
            result.rgba,
            result.width,
            result.height,
            stats=result.stats,
            title=Path(comparison_path).name,
            save_path=paths.quicklook,
        )
        plt.close(fig)
        result.outputs["quicklook"] = str(paths.quicklook)

    if config.write_json:
        result.outputs["summary_json"] = str(paths.summary_json)
        write_summary_json(
            paths.summary_json,
            result.stats,
            result.median_ppm,
            result.top,
            sources={
                "golden": str(golden_path),
                "comparison": str(comparison_path),
                "georeferencing": georef,
            },
            outputs=result.outputs,
        )

    return result
