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

"""Pairwise distances within and between point sets."""
from __future__ import annotations

from typing import Callable

import numpy as np
from scipy.spatial.distance import cdist

from randgeo._typing import NDArrayf
from randgeo.errors import InvalidInputError

# Equatorial radius of the WGS84 ellipsoid, as used by the spherical great-circle formulas
EARTH_RADIUS = 6378137.0

DistanceFunc = Callable[[NDArrayf, NDArrayf], NDArrayf]


def distance_cosine(point: NDArrayf, points: NDArrayf, earth_rad: float = EARTH_RADIUS) -> NDArrayf:
    """
    Great-circle distance between one longitude/latitude point and other points, using the spherical law of cosines.

    :param point: Longitude/latitude of a single point in degrees, shape (2,).
    :param points: Longitude/latitude of other points in degrees, shape (N, 2).
    :param earth_rad: Radius of the Earth in meters.

    :return: Distances in meters, shape (N,).
    """
    lon1, lat1 = np.radians(point[0]), np.radians(point[1])
    lon2, lat2 = np.radians(points[:, 0]), np.radians(points[:, 1])

    cos_angle = np.sin(lat1) * np.sin(lat2) + np.cos(lat1) * np.cos(lat2) * np.cos(lon2 - lon1)

    # Rounding errors can push the cosine slightly out of [-1, 1]
    return earth_rad * np.arccos(np.clip(cos_angle, -1.0, 1.0))


def distance_haversine(point: NDArrayf, points: NDArrayf, earth_rad: float = EARTH_RADIUS) -> NDArrayf:
    """
    Great-circle distance between one longitude/latitude point and other points, using the haversine formula.
    More accurate than the law of cosines for very short distances.

    :param point: Longitude/latitude of a single point in degrees, shape (2,).
    :param points: Longitude/latitude of other points in degrees, shape (N, 2).
    :param earth_rad: Radius of the Earth in meters.

    :return: Distances in meters, shape (N,).
    """
    lon1, lat1 = np.radians(point[0]), np.radians(point[1])
    lon2, lat2 = np.radians(points[:, 0]), np.radians(points[:, 1])

    dlon = lon2 - lon1
    dlat = lat2 - lat1

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return earth_rad * c


def distance_euclidean(point: NDArrayf, points: NDArrayf) -> NDArrayf:
    """Planar distance between one point and other points, for projected coordinates."""
    return cdist(np.atleast_2d(point), points)[0]


def _distances_from_point(distance_func: DistanceFunc, point: NDArrayf, points: NDArrayf) -> NDArrayf:
    """Call a distance function and check its output has one distance per point."""

    dists = np.asarray(distance_func(point, points), dtype=np.float64).reshape(-1)
    if dists.shape[0] != points.shape[0]:
        raise InvalidInputError(
            f"Distance function returned {dists.shape[0]} distances for {points.shape[0]} points. It must take a "
            f"single point of shape (2,) and other points of shape (N, 2), and return N distances."
        )

    return dists


def point_distance(
    points1: NDArrayf,
    points2: NDArrayf | None = None,
    distance_func: DistanceFunc | None = None,
) -> NDArrayf:
    """
    Matrix of distances between all points of one set, or between the points of two sets.

    :param points1: Coordinates of the first set, shape (N1, 2).
    :param points2: Coordinates of the second set, shape (N2, 2). If None, distances are computed within the first set.
    :param distance_func: Function of a single point and other points returning their distances. Defaults to the
        great-circle distance `distance_cosine`.

    :return: Symmetric distance matrix of shape (N1, N1) with zero diagonal, or rectangular matrix of shape (N1, N2).
    """

    if distance_func is None:
        distance_func = distance_cosine

    other = points1 if points2 is None else points2

    dist = np.empty((points1.shape[0], other.shape[0]), dtype=np.float64)
    for i in range(points1.shape[0]):
        dist[i, :] = _distances_from_point(distance_func, points1[i, :], other)

    # Force exact symmetry and a null diagonal within a set
    if points2 is None:
        dist = np.tril(dist, k=-1)
        dist = dist + dist.T

    return dist


def self_distances(points: NDArrayf, distance_func: DistanceFunc | None = None) -> NDArrayf:
    """
    Distances between every unordered pair of points of one set, each pair counted once.

    :param points: Coordinates of shape (N, 2), with N >= 2.
    :param distance_func: Distance function, see `point_distance`.

    :raises InvalidInputError: If there are fewer than two points.

    :return: Vector of N(N-1)/2 distances (lower triangle of the distance matrix, diagonal excluded).
    """

    n = points.shape[0]
    if n < 2:
        raise InvalidInputError(f"At least two points are required to compute self-distances, got {n}.")

    dist = point_distance(points, distance_func=distance_func)

    return dist[np.tril_indices(n, k=-1)]


def cross_distances(points1: NDArrayf, points2: NDArrayf, distance_func: DistanceFunc | None = None) -> NDArrayf:
    """
    Distances between every point of a set and every point of another set.

    :param points1: Coordinates of the first set, shape (N1, 2).
    :param points2: Coordinates of the second set, shape (N2, 2).
    :param distance_func: Distance function, see `point_distance`.

    :raises InvalidInputError: If either set is empty.

    :return: Vector of N1 * N2 distances.
    """

    if points1.shape[0] == 0 or points2.shape[0] == 0:
        raise InvalidInputError("Both point sets must contain at least one point to compute cross-distances.")

    return point_distance(points1, points2, distance_func=distance_func).ravel()
