"""Raster reading and writing for the comparison run.

Inputs are read whole, band 1, as float32. Outputs are GeoTIFFs carrying the
comparison raster's CRS and geotransform:

- ``*_clr_diff``: byte raster, RGBA (alpha no-data 0) or legacy RGB, with a
  1 pixel wide reference gradient in column 0 of bands 1-3;
- ``*_rel_diff``: float32 raster of ``rel_diff * 1e6``, no-data 0.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import rasterio
from pyproj import CRS as _CRS
from rasterio.enums import ColorInterp
from rasterio.errors import RasterioError, RasterioIOError

from .errors import DimensionMismatch, RasterBackendError, SourceOpenError

logger = logging.getLogger(__name__)

# Rows of the calibration strip; row r holds value r.
CALIBRATION_ROWS = 255

COLOR_NODATA = 0
REL_DIFF_NODATA = 0.0


# =============================================================================
# Sources
# =============================================================================

@dataclass
class RasterSource:
    """
    A single-band input raster loaded into memory.

    Attributes
    ----------
    path : str
    width, height : int
    data : np.ndarray
        float32 array of shape (height, width).
    crs : rasterio.crs.CRS or None
    transform : affine.Affine
    profile : dict
        The rasterio profile of the file.
    """

    path: str
    width: int
    height: int
    data: np.ndarray = field(repr=False)
    crs: Any = None
    transform: Any = None
    profile: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)


def open_source(path: Union[str, Path], band: int = 1) -> RasterSource:
    """
    Read one band of a raster as float32.

    Raises
    ------
    SourceOpenError
        If the file cannot be opened or lacks the band.
    RasterBackendError
        If rasterio fails while reading.
    """
    path = str(path)
    try:
        src = rasterio.open(path)
    except RasterioIOError as exc:
        raise SourceOpenError(path, str(exc)) from exc

    try:
        with src:
            if band < 1 or band > src.count:
                raise SourceOpenError(path, f"band {band} not present ({src.count} band(s))")
            data = src.read(band, out_dtype="float32")
            source = RasterSource(
                path=path,
                width=src.width,
                height=src.height,
                data=data,
                crs=src.crs,
                transform=src.transform,
                profile=dict(src.profile),
            )
    except RasterioError as exc:
        raise RasterBackendError(f"Reading '{path}' failed: {exc}") from exc

    logger.debug(f"Read {path}: {source.width} x {source.height}, crs={source.crs}")
    return source


def check_dimensions(golden: RasterSource, comparison: RasterSource) -> None:
    """Raise DimensionMismatch unless both rasters have the same width and height."""
    if golden.shape != comparison.shape:
        raise DimensionMismatch(
            (golden.width, golden.height), (comparison.width, comparison.height)
        )


def _crs_equivalent(crs1: Any, crs2: Any) -> bool:
    if crs1 is None and crs2 is None:
        return True
    if crs1 is None or crs2 is None:
        return False
    try:
        obj1 = _CRS.from_user_input(crs1)
        obj2 = _CRS.from_user_input(crs2)
        epsg1 = obj1.to_epsg()
        epsg2 = obj2.to_epsg()
        if epsg1 is not None and epsg2 is not None:
            return epsg1 == epsg2
        return obj1.equals(obj2)
    except Exception:
        return str(crs1) == str(crs2)


def check_georeferencing(golden: RasterSource, comparison: RasterSource) -> Dict[str, Any]:
    """
    Compare CRS and geotransform of the two inputs.

    Mismatches are logged as warnings only; the comparison is value for value
    and outputs take the comparison raster's georeferencing.

    Returns
    -------
    dict
        {'match': bool, 'crs_match': bool, 'transform_match': bool, 'details': str}
    """
    crs_match = _crs_equivalent(golden.crs, comparison.crs)
    if golden.transform is None or comparison.transform is None:
        transform_match = golden.transform is None and comparison.transform is None
    else:
        transform_match = golden.transform.almost_equals(comparison.transform)

    details = []
    if not crs_match:
        details.append(f"CRS differ: {golden.crs} vs {comparison.crs}")
    if not transform_match:
        details.append("Transform/alignment differ")
    overall = crs_match and transform_match
    if overall:
        details.append("Georeferencing matches")
    else:
        for d in details:
            logger.warning(d)

    return {
        "match": overall,
        "crs_match": crs_match,
        "transform_match": transform_match,
        "details": " | ".join(details),
    }


# =============================================================================
# Output paths
# =============================================================================

@dataclass(frozen=True)
class OutputPaths:
    colored: Path
    rel_diff: Path
    detail_log: Path
    summary_json: Path
    quicklook: Path


def derive_output_paths(
    comparison_path: Union[str, Path],
    output_dir: Union[str, Path],
    colored_name: Optional[str] = None,
    rel_name: Optional[str] = None,
) -> OutputPaths:
    """
    Build output file names from the comparison file's stem and extension.

    ``colored_name`` / ``rel_name`` replace the derived raster names with
    fixed ones inside ``output_dir``.
    """
    comparison_path = Path(comparison_path)
    output_dir = Path(output_dir)
    stem = comparison_path.stem
    ext = comparison_path.suffix

    return OutputPaths(
        colored=output_dir / (colored_name or f"{stem}_clr_diff{ext}"),
        rel_diff=output_dir / (rel_name or f"{stem}_rel_diff{ext}"),
        detail_log=output_dir / f"{stem}_pixel_diffs.txt",
        summary_json=output_dir / f"{stem}_summary.json",
        quicklook=output_dir / f"{stem}_quicklook.png",
    )


# =============================================================================
# Sinks
# =============================================================================

def calibration_strip(height: int) -> np.ndarray:
    """Values for column 0 of bands 1-3: row r holds r, for up to 255 rows."""
    rows = min(CALIBRATION_ROWS, height)
    return (np.arange(rows) % 256).astype(np.uint8)


def _georef_profile(reference: RasterSource) -> Dict[str, Any]:
    return {
        "driver": "GTiff",
        "width": reference.width,
        "height": reference.height,
        "crs": reference.crs,
        "transform": reference.transform,
    }


def write_color_raster(
    output_path: Union[str, Path],
    rgba: np.ndarray,
    reference: RasterSource,
    *,
    channels: int = 4,
    with_calibration_strip: bool = True,
    tags: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Write the severity colors as a byte GeoTIFF.

    Parameters
    ----------
    output_path : str or Path
    rgba : np.ndarray
        uint8 array of shape (4, height*width) or (4, height, width).
    reference : RasterSource
        Source of CRS, transform and dimensions (the comparison raster).
    channels : {3, 4}
        4 writes RGBA with alpha no-data 0; 3 drops the alpha plane.
    with_calibration_strip : bool
        Overwrite column 0 of bands 1-3 with the 0..254 gradient.
    tags : dict, optional
        Extra dataset tags.

    Raises
    ------
    RasterBackendError
        On any rasterio failure.
    """
    h, w = reference.height, reference.width
    planes = np.asarray(rgba, dtype=np.uint8).reshape(4, h, w)[:channels].copy()

    if with_calibration_strip and w > 0:
        strip = calibration_strip(h)
        planes[:3, : strip.size, 0] = strip

    profile = _georef_profile(reference)
    profile.update(count=channels, dtype="uint8", photometric="RGB")
    if channels == 4:
        profile.update(alpha="YES", nodata=COLOR_NODATA)
        colorinterp = [ColorInterp.red, ColorInterp.green, ColorInterp.blue, ColorInterp.alpha]
    else:
        colorinterp = [ColorInterp.red, ColorInterp.green, ColorInterp.blue]

    try:
        with rasterio.open(output_path, "w", **profile) as dst:
            dst.colorinterp = colorinterp
            dst.write(planes)
            if tags:
                dst.update_tags(**{k: str(v) for k, v in tags.items()})
    except RasterioError as exc:
        raise RasterBackendError(f"Writing '{output_path}' failed: {exc}") from exc

    logger.info(f"Wrote {channels}-band color difference raster: {output_path}")
    return str(output_path)


def write_rel_diff_raster(
    output_path: Union[str, Path],
    aux: np.ndarray,
    reference: RasterSource,
    *,
    tags: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Write ``rel_diff * 1e6`` as a single-band float32 GeoTIFF with no-data 0.

    Raises
    ------
    RasterBackendError
        On any rasterio failure.
    """
    h, w = reference.height, reference.width
    data = np.asarray(aux, dtype=np.float32).reshape(h, w)

    profile = _georef_profile(reference)
    profile.update(count=1, dtype="float32", nodata=REL_DIFF_NODATA)

    try:
        with rasterio.open(output_path, "w", **profile) as dst:
            dst.write(data, 1)
            dst.update_tags(UNITS="ppm", **{k: str(v) for k, v in (tags or {}).items()})
    except RasterioError as exc:
        raise RasterBackendError(f"Writing '{output_path}' failed: {exc}") from exc

    logger.info(f"Wrote relative difference raster (ppm): {output_path}")
    return str(output_path)
