# Copyright (c) 2024 randgeo developers
#
# This file is part of the randgeo project.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
#
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Random sampling of point coordinates within the valid cells of a raster mask."""
from __future__ import annotations

import logging
import pathlib
from typing import Any

import affine
import geoutils as gu
import numpy as np
from geoutils.raster.array import get_array_and_mask
from pyproj import CRS

from randgeo._typing import MArrayf, NDArrayb, NDArrayf
from randgeo.crs import crs_from_user_input
from randgeo.distance import EARTH_RADIUS
from randgeo.errors import InsufficientValidAreaError, InvalidInputError


class RasterMask:
    """
    Study region defined by the valid (unmasked) cells of the first band of a raster.

    Coordinates are sampled cell-wise, with replacement, and returned in the raster CRS. For a geographic CRS, cells
    can be weighted by their area on the sphere (which shrinks with latitude), so that points are uniform by area.
    For a projected CRS, grid cells all have the same area and are weighted equally.
    """

    def __init__(self, raster: gu.Raster | str | pathlib.Path, area_weighted: bool = True, jitter: bool = False):
        """
        :param raster: Raster or path to a raster file. Cells that are nodata or NaN in the first band are invalid.
        :param area_weighted: Whether to weight cells by their area in a geographic CRS.
        :param jitter: Whether to place points uniformly inside their cell, instead of at the cell center.
        """

        if isinstance(raster, (str, pathlib.Path)):
            raster = gu.Raster(str(raster))
        if not isinstance(raster, gu.Raster):
            raise InvalidInputError(f"Raster mask must be a geoutils.Raster or a path to a raster, got {type(raster)}.")

        self.raster = raster
        self.area_weighted = area_weighted
        self.jitter = jitter
        self.transform: affine.Affine = raster.transform
        self.crs: CRS = crs_from_user_input(raster.crs)

        # Only the first band defines the study region
        data = raster.data
        if data.ndim == 3:
            data = data[0, :, :]
        _, invalid = get_array_and_mask(data)
        # The mask is squeezed for single-row or single-column rasters
        invalid = np.asarray(invalid, dtype=bool)
        if invalid.size == 1:
            invalid = np.full(data.shape[-2:], bool(invalid))
        self.valid: NDArrayb = ~invalid.reshape(data.shape[-2:])

        self._rows, self._cols = np.nonzero(self.valid)
        self._weights: NDArrayf | None = None

    @classmethod
    def from_array(
        cls,
        data: NDArrayf | MArrayf,
        transform: affine.Affine,
        crs: Any,
        nodata: int | float | None = None,
        **kwargs: Any,
    ) -> RasterMask:
        """
        Create a raster mask from an array.

        :param data: Array of the study region, invalid cells being masked, NaN or equal to nodata.
        :param transform: Geotransform of the array.
        :param crs: Coordinate reference system of the array.
        :param nodata: Nodata value.
        :param kwargs: Keyword arguments passed to the RasterMask constructor.
        """

        raster = gu.Raster.from_array(data, transform=transform, crs=crs_from_user_input(crs), nodata=nodata)
        return cls(raster, **kwargs)

    def valid_cell_count(self) -> int:
        """Number of valid cells."""
        return int(self._rows.size)

    def coordinate_reference_system(self) -> CRS:
        """CRS of the sampled coordinates."""
        return self.crs

    def cell_areas(self) -> NDArrayf:
        """
        Area of each valid cell, in the order of `numpy.nonzero` on the valid mask. In square meters on the sphere
        for a geographic CRS, in square georeferenced units otherwise.
        """

        if self.crs.is_geographic:
            # Area of a latitude band on the sphere between the top and bottom edges of the cell
            _, lat_top = self.transform @ (self._cols + 0.5, self._rows)
            _, lat_bottom = self.transform @ (self._cols + 0.5, self._rows + 1)
            dlon = np.radians(abs(self.transform.a))
            band = np.abs(np.sin(np.radians(lat_top)) - np.sin(np.radians(lat_bottom)))
            return EARTH_RADIUS**2 * dlon * band

        return np.full(self._rows.size, abs(self.transform.determinant), dtype=np.float64)

    def _cell_weights(self) -> NDArrayf | None:
        """Sampling probability of each valid cell, None for equal weights."""

        if not self.area_weighted or not self.crs.is_geographic:
            return None
        if self._weights is None:
            areas = self.cell_areas()
            self._weights = areas / np.sum(areas)
        return self._weights

    def sample_uniform(self, n: int, random_state: int | np.random.Generator | None = None) -> NDArrayf:
        """
        Draw coordinates uniformly over the valid cells.

        :param n: Number of coordinates.
        :param random_state: Random state or seed number to use for calculations (to fix random sampling).

        :raises InsufficientValidAreaError: If the raster has no valid cells.

        :return: Coordinates of shape (n, 2) in X/Y order, in the raster CRS.
        """

        count = self.valid_cell_count()
        if count == 0:
            raise InsufficientValidAreaError("Raster mask has no valid cell to sample points from.")

        rng = np.random.default_rng(random_state)

        index = rng.choice(count, size=n, replace=True, p=self._cell_weights())
        if self.jitter:
            offset_col = rng.uniform(0, 1, size=n)
            offset_row = rng.uniform(0, 1, size=n)
        else:
            offset_col = offset_row = np.full(n, 0.5)

        x, y = self.transform @ (self._cols[index] + offset_col, self._rows[index] + offset_row)

        return np.column_stack((x, y))

    def contains(self, coords: NDArrayf) -> NDArrayb:
        """
        Whether coordinates fall inside a valid cell.

        :param coords: Coordinates of shape (N, 2) in the raster CRS.

        :return: Boolean array of length N.
        """

        coords = np.atleast_2d(np.asarray(coords, dtype=np.float64))
        cols, rows = ~self.transform @ (coords[:, 0], coords[:, 1])
        cols = np.floor(cols).astype(int)
        rows = np.floor(rows).astype(int)

        nrows, ncols = self.valid.shape
        inside = (rows >= 0) & (rows < nrows) & (cols >= 0) & (cols < ncols)

        out = np.zeros(coords.shape[0], dtype=bool)
        out[inside] = self.valid[rows[inside], cols[inside]]

        return out


def sample_raster(
    raster: gu.Raster | RasterMask | str,
    n: int,
    random_state: int | np.random.Generator | None = None,
    **kwargs: Any,
) -> NDArrayf:
    """
    Draw coordinates uniformly over the valid cells of a raster.

    :param raster: Raster, raster mask or path to a raster file.
    :param n: Number of coordinates.
    :param random_state: Random state or seed number to use for calculations (to fix random sampling).
    :param kwargs: Keyword arguments passed to RasterMask (area_weighted, jitter).

    :return: Coordinates of shape (n, 2) in the raster CRS.
    """

    mask = raster if isinstance(raster, RasterMask) else RasterMask(raster, **kwargs)

    return mask.sample_uniform(n, random_state=random_state)


class CandidatePool:
    """
    Buffer of random coordinates drawn in bulk from a raster mask, consumed one by one, and regenerated when
    exhausted.
    """

    def __init__(self, mask: RasterMask, size: int, random_state: int | np.random.Generator | None = None):
        """
        :param mask: Raster mask to sample from.
        :param size: Number of coordinates generated at each refill.
        :param random_state: Random state or seed number to use for calculations (to fix random sampling).
        """

        if size < 1:
            raise InvalidInputError(f"Candidate pool size must be at least 1, got {size}.")

        self.mask = mask
        self.size = int(size)
        self.refills = 0
        self._rng = np.random.default_rng(random_state)
        self._coords: NDArrayf = np.empty((0, 2), dtype=np.float64)
        self._next = 0

    @property
    def remaining(self) -> int:
        """Number of unused coordinates left in the pool."""
        return self._coords.shape[0] - self._next

    def refill(self) -> None:
        """Discard unused coordinates and generate a new batch."""

        self._coords = self.mask.sample_uniform(self.size, random_state=self._rng)
        self._next = 0
        self.refills += 1
        logging.debug("Candidate pool refilled with %d coordinates (refill #%d).", self.size, self.refills)

    def draw(self) -> NDArrayf:
        """Take one coordinate from the pool, refilling it if exhausted."""

        if self.remaining == 0:
            self.refill()
        coord = self._coords[self._next, :].copy()
        self._next += 1

        return coord

    def draw_many(self, n: int) -> NDArrayf:
        """Take n coordinates from the pool, refilling it as many times as necessary."""

        out = np.empty((n, 2), dtype=np.float64)
        filled = 0
        while filled < n:
            if self.remaining == 0:
                self.refill()
            take = min(n - filled, self.remaining)
            out[filled : filled + take, :] = self._coords[self._next : self._next + take, :]
            self._next += take
            filled += take

        return out
