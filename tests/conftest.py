"""Fixtures of synthetic rasters and points for the tests."""

from typing import Callable

import geoutils as gu
import matplotlib
import numpy as np
import pytest
import rasterio as rio
from pyproj import CRS

# Never open windows during tests
matplotlib.use("Agg")


def _make_raster(valid: np.ndarray, bounds: tuple[float, float, float, float], crs: CRS) -> gu.Raster:
    """Create a float raster with masked cells where `valid` is False."""
    nrows, ncols = valid.shape
    data = np.ma.masked_array(np.ones(valid.shape, dtype=np.float32), mask=~valid)
    transform = rio.transform.from_bounds(*bounds, ncols, nrows)
    return gu.Raster.from_array(data, transform=transform, crs=crs, nodata=-9999)


@pytest.fixture()  # type: ignore
def make_raster() -> Callable[..., gu.Raster]:
    return _make_raster


@pytest.fixture()  # type: ignore
def grid_raster() -> gu.Raster:
    """10 x 10 raster of 1-degree cells near the equator, all cells valid."""
    return _make_raster(np.ones((10, 10), dtype=bool), (0, 0, 10, 10), CRS("EPSG:4326"))


@pytest.fixture()  # type: ignore
def half_raster() -> gu.Raster:
    """10 x 10 raster of 1-degree cells with only the western half valid."""
    valid = np.zeros((10, 10), dtype=bool)
    valid[:, :5] = True
    return _make_raster(valid, (0, 0, 10, 10), CRS("EPSG:4326"))


@pytest.fixture()  # type: ignore
def empty_raster() -> gu.Raster:
    """10 x 10 raster with no valid cell."""
    return _make_raster(np.zeros((10, 10), dtype=bool), (0, 0, 10, 10), CRS("EPSG:4326"))


@pytest.fixture()  # type: ignore
def projected_raster() -> gu.Raster:
    """20 x 20 raster of 1 km cells in UTM zone 33N, all cells valid."""
    return _make_raster(np.ones((20, 20), dtype=bool), (500000, 0, 520000, 20000), CRS("EPSG:32633"))


@pytest.fixture()  # type: ignore
def points_xy() -> tuple[np.ndarray, np.ndarray]:
    """Two sets of 5 points located at cell centers of the 10 x 10 grid."""
    x1 = np.array([[1.5, 1.5], [2.5, 4.5], [4.5, 2.5], [6.5, 6.5], [3.5, 7.5]])
    x2 = np.array([[8.5, 1.5], [7.5, 3.5], [5.5, 8.5], [8.5, 8.5], [2.5, 2.5]])
    return x1, x2
