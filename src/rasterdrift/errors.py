"""Exception types raised by the comparison run.

Every error here is fatal for a run. The command line front end maps each
class to a process exit code through its ``exit_code`` attribute.
"""
from __future__ import annotations


class RasterDriftError(Exception):
    """Base class for all fatal comparison errors."""

    exit_code = 1


class UsageError(RasterDriftError):
    """Invalid arguments or configuration."""


class SourceOpenError(RasterDriftError):
    def __init__(self, path: str, reason: str = ""):
        msg = f"Could not open input raster '{path}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.path = path


class DimensionMismatch(RasterDriftError):
    def __init__(self, golden_shape: tuple, comparison_shape: tuple, reason: str = ""):
        msg = f"dimensions mismatch, golden = {golden_shape}, comparison = {comparison_shape}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.golden_shape = golden_shape
        self.comparison_shape = comparison_shape


class DetailSinkOpenError(RasterDriftError):
    def __init__(self, path: str, reason: str = ""):
        msg = f"Could not open detailed pixel difference log '{path}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.path = path


class OutputWriteError(RasterDriftError):
    """An output file or the output directory could not be written."""

    def __init__(self, path: str, reason: str = ""):
        msg = f"Could not write output '{path}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.path = path


class RasterBackendError(RasterDriftError):
    """Any failure reported by the raster I/O backend (rasterio / GDAL)."""

    exit_code = 10
