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

"""Routines to parse and compare coordinate reference systems (fully based on pyproj)."""
from __future__ import annotations

import pathlib
from typing import Any

import numpy as np
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from randgeo._typing import NDArrayf
from randgeo.errors import InvalidInputError

# Names accepted as shortcuts for the geographic CRS assumed by the great-circle distances
_crs_meta = {
    "WGS84": 4326,
    "NAD83": 4269,
}

# Default CRS of point tables that carry no reference system
DEFAULT_CRS = CRS.from_epsg(4326)


def crs_from_user_input(crs_input: Any) -> CRS:
    """
    Parse a coordinate reference system from user input.

    :param crs_input: Coordinate reference system either as a name ("WGS84", "NAD83"), an EPSG code, a PROJ or WKT
        string, a pyproj.CRS or any object exposing `to_wkt()` (e.g., rasterio.crs.CRS).

    :raises InvalidInputError: If the input is empty or cannot be interpreted as a CRS.

    :return: Coordinate reference system.
    """

    if crs_input is None:
        raise InvalidInputError("Coordinate reference system is undefined.")

    if isinstance(crs_input, CRS):
        return crs_input

    if isinstance(crs_input, pathlib.Path):
        raise InvalidInputError(f"Coordinate reference system cannot be read from a path, received {crs_input}.")

    # Shortcut names
    if isinstance(crs_input, str) and crs_input.upper() in _crs_meta.keys():
        return CRS.from_epsg(_crs_meta[crs_input.upper()])

    try:
        return CRS.from_user_input(crs_input)
    except (CRSError, TypeError) as e:
        raise InvalidInputError(f"Unrecognized coordinate reference system '{crs_input}': {e}") from e


def is_wgs84_or_nad83(crs: CRS) -> bool:
    """Whether a CRS is the unprojected WGS84 or NAD83 reference."""

    return crs.to_epsg() in _crs_meta.values()


def same_crs(crs1: CRS, crs2: CRS) -> bool:
    """Whether two CRS describe the same reference system, regardless of how they were defined."""

    return crs1.equals(crs2, ignore_axis_order=True)


def check_same_crs(crs1: CRS, crs2: CRS, name1: str = "x1", name2: str = "x2") -> CRS:
    """
    Check that two CRS are identical and return the first one.

    :param crs1: First CRS.
    :param crs2: Second CRS.
    :param name1: Name of the first object in the error message.
    :param name2: Name of the second object in the error message.

    :raises InvalidInputError: If the CRS differ.
    """

    if not same_crs(crs1, crs2):
        raise InvalidInputError(
            f"Coordinate reference systems of '{name1}' and '{name2}' are not the same: "
            f"'{crs1.name}' and '{crs2.name}'."
        )
    return crs1


def reproject_coords(coords: NDArrayf, crs_from: CRS, crs_to: CRS) -> NDArrayf:
    """
    Reproject an array of X/Y coordinates.

    :param coords: Coordinates of shape (N, 2), in X/Y (longitude/latitude) order.
    :param crs_from: CRS of the input coordinates.
    :param crs_to: CRS of the output coordinates.

    :return: Reprojected coordinates of shape (N, 2).
    """

    transformer = Transformer.from_crs(crs_from, crs_to, always_xy=True)
    x, y = transformer.transform(coords[:, 0], coords[:, 1])

    return np.column_stack((x, y))
