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

"""Conversion of user point collections to and from the plain coordinate arrays used for randomization."""
from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any

import geopandas as gpd
import geoutils as gu
import numpy as np
import pandas as pd
from pyproj import CRS

from randgeo._typing import NDArrayf
from randgeo.crs import (
    DEFAULT_CRS,
    crs_from_user_input,
    is_wgs84_or_nad83,
    reproject_coords,
    same_crs,
)
from randgeo.errors import InvalidInputError


@dataclass(frozen=True)
class PointSet:
    """
    Ordered set of 2D point coordinates tagged with their coordinate reference system.

    The coordinates are stored in X/Y (longitude/latitude) order in a read-only array of shape (N, 2).
    """

    coords: NDArrayf
    crs: CRS

    def __post_init__(self) -> None:
        coords = np.array(self.coords, dtype=np.float64)
        if coords.ndim != 2 or coords.shape[1] != 2:
            raise InvalidInputError(f"Point coordinates must be of shape (N, 2), got {coords.shape}.")
        coords.setflags(write=False)
        object.__setattr__(self, "coords", coords)

    def __len__(self) -> int:
        return self.coords.shape[0]


def _coords_from_geometry(geometry: gpd.GeoSeries, name: str) -> NDArrayf:
    """Extract X/Y coordinates of a point geometry series."""

    if not all(geometry.geom_type == "Point"):
        raise InvalidInputError(f"All geometries of '{name}' must be points.")

    return np.column_stack((geometry.x.values, geometry.y.values))


def to_point_set(
    points: Any,
    crs: Any = None,
    reproject_to_wgs84: bool = True,
    name: str = "x",
) -> PointSet:
    """
    Convert a user point collection into a PointSet.

    Arrays, lists and dataframes use their first two columns as X (longitude) and Y (latitude), and carry no CRS:
    the `crs` argument applies, otherwise WGS84 is assumed. GeoDataFrames, GeoSeries and Vectors use their own CRS,
    which must agree with `crs` if both are defined.

    :param points: Array of shape (N, >=2), list, pandas.DataFrame, geopandas.GeoDataFrame or GeoSeries of points,
        or geoutils.Vector of points.
    :param crs: Coordinate reference system of the points, if not carried by the object.
    :param reproject_to_wgs84: Whether to reproject points that are not in WGS84 or NAD83 to WGS84 (required for
        great-circle distances).
    :param name: Name of the input, used in error messages.

    :raises InvalidInputError: If the points cannot be interpreted, contain non-finite coordinates, or if CRS disagree.

    :return: Point set with an explicit CRS.
    """

    user_crs = crs_from_user_input(crs) if crs is not None else None

    # Geospatial objects carry their own CRS
    if isinstance(points, gu.Vector):
        points = points.ds
    if isinstance(points, (gpd.GeoDataFrame, gpd.GeoSeries)):
        coords = _coords_from_geometry(points.geometry, name=name)
        if points.crs is None:
            points_crs = user_crs if user_crs is not None else DEFAULT_CRS
        else:
            points_crs = crs_from_user_input(points.crs)
            if user_crs is not None and not same_crs(points_crs, user_crs):
                raise InvalidInputError(
                    f"Coordinate reference system passed for '{name}' ({user_crs.name}) differs from the one of "
                    f"the object ({points_crs.name})."
                )
    elif isinstance(points, pd.DataFrame):
        if points.shape[1] < 2:
            raise InvalidInputError(f"Dataframe '{name}' must have at least two columns (longitude, latitude).")
        coords = points.iloc[:, :2].to_numpy(dtype=np.float64)
        points_crs = user_crs if user_crs is not None else DEFAULT_CRS
    elif isinstance(points, (np.ndarray, list, tuple)):
        coords = np.asarray(points, dtype=np.float64)
        if coords.ndim == 1 and coords.size == 2:
            coords = coords.reshape(1, 2)
        if coords.ndim != 2 or coords.shape[1] < 2:
            raise InvalidInputError(f"Array '{name}' must be of shape (N, 2) or more columns, got {coords.shape}.")
        coords = coords[:, :2]
        points_crs = user_crs if user_crs is not None else DEFAULT_CRS
    else:
        raise InvalidInputError(
            f"Points '{name}' must be an array, a list, a DataFrame, a GeoDataFrame, a GeoSeries or a Vector, "
            f"got {type(points)}."
        )

    if not np.all(np.isfinite(coords)):
        raise InvalidInputError(f"Coordinates of '{name}' must all be finite.")

    if reproject_to_wgs84 and not is_wgs84_or_nad83(points_crs):
        warnings.warn(f"Coordinates of '{name}' are not in WGS84 or NAD83. Projecting them to WGS84.")
        if len(coords) > 0:
            coords = reproject_coords(coords, points_crs, DEFAULT_CRS)
        points_crs = DEFAULT_CRS

    return PointSet(coords=coords, crs=points_crs)


def from_point_set(template: Any, coords: NDArrayf, crs: CRS) -> Any:
    """
    Write new coordinates into an object of the same type as the user input.

    Arrays and dataframes get their first two columns replaced (other columns are kept), GeoDataFrames keep their
    attribute columns with new point geometries, GeoSeries and Vectors are rebuilt.

    :param template: Original user input.
    :param coords: New coordinates of shape (N, 2), with N equal to the length of the input.
    :param crs: CRS of the new coordinates.

    :return: Object of the same type as the input with new coordinates.
    """

    if isinstance(template, gu.Vector):
        return gu.Vector(from_point_set(template.ds, coords, crs))

    if len(template) != coords.shape[0]:
        raise InvalidInputError(
            f"Number of new coordinates ({coords.shape[0]}) differs from the number of input points ({len(template)})."
        )

    if isinstance(template, gpd.GeoSeries):
        return gpd.GeoSeries(gpd.points_from_xy(coords[:, 0], coords[:, 1]), index=template.index, crs=crs)

    if isinstance(template, gpd.GeoDataFrame):
        out = template.copy()
        geom_name = out.geometry.name
        out[geom_name] = gpd.GeoSeries(gpd.points_from_xy(coords[:, 0], coords[:, 1]), index=out.index, crs=crs)
        return out.set_geometry(geom_name).set_crs(crs, allow_override=True)

    if isinstance(template, pd.DataFrame):
        out = template.copy()
        out[out.columns[0]] = coords[:, 0]
        out[out.columns[1]] = coords[:, 1]
        return out

    # Arrays and lists
    out_arr = np.array(template, dtype=np.float64)
    out_arr[:, :2] = coords
    return out_arr
