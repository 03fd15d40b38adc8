"""Shared fixtures: small georeferenced float32 GeoTIFFs written to tmp_path."""
import matplotlib
import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

matplotlib.use("Agg")

TEST_CRS = "EPSG:32633"
TEST_TRANSFORM = from_origin(500000.0, 4000000.0, 2.0, 2.0)


@pytest.fixture
def write_raster(tmp_path):
    """Return a writer ``(name, data, crs=..., transform=...) -> Path``."""

    def _write(name, data, crs=TEST_CRS, transform=TEST_TRANSFORM, dtype="float32"):
        arr = np.asarray(data, dtype=dtype)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        height, width = arr.shape
        path = tmp_path / name
        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            width=width,
            height=height,
            count=1,
            dtype=dtype,
            crs=crs,
            transform=transform,
        ) as dst:
            dst.write(arr, 1)
        return path

    return _write


@pytest.fixture
def drift_pair():
    """A 4x3 golden/comparison pair covering every band plus bad and equal pixels."""
    golden = np.array(
        [
            [1.0, 0.0, 0.0, 2.0],
            [1.5, 1.05, 1.005, 1.0005],
            [1.00005, 1.000001, 5.0, 3.0],
        ],
        dtype=np.float32,
    )
    comparison = np.array(
        [
            [1.0, 0.0, 4.0, 1.0],
            [1.0, 1.0, 1.0, 1.0],
            [1.0, 1.0, 0.0, 3.0],
        ],
        dtype=np.float32,
    )
    return golden, comparison
