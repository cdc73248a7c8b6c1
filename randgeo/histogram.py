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

"""Overlapping histograms of pairwise distances and their deviation."""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from randgeo._typing import NDArrayf, NDArrayi
from randgeo.errors import InvalidInputError


def overlapping_breaks(max_value: float, bins: int = 20, overlap: float = 0.5, expansion: float = 1.1) -> NDArrayf:
    """
    Define equal-width, possibly overlapping bins covering the range 0 to `expansion * max_value`.

    Each bin has a width `w = upper / ((bins - 1) * (1 - overlap) + 1)` and bin `i` starts at `i * w * (1 - overlap)`,
    so that consecutive bins share a fraction `overlap` of their width and the last bin ends exactly at the upper
    edge. With the default `overlap=0.5`, each bin spans two half-bins and shares one with each neighbour.
    With `overlap=0`, bins are contiguous.

    :param max_value: Maximum observed value (e.g., largest pairwise distance).
    :param bins: Number of bins, at least 2.
    :param overlap: Fraction of bin width shared by consecutive bins, in [0, 1).
    :param expansion: Multiplying factor of the maximum value defining the upper edge of the last bin.

    :raises InvalidInputError: If the number of bins, the overlap or the maximum value are invalid.

    :return: Array of shape (bins, 2) with lower and upper edges of each bin.
    """

    if isinstance(bins, bool) or not isinstance(bins, (int, np.integer)) or bins < 2:
        raise InvalidInputError(f"Number of bins must be an integer of at least 2, got {bins}.")
    if not 0 <= overlap < 1:
        raise InvalidInputError(f"Bin overlap must be in [0, 1), got {overlap}.")
    if not np.isfinite(max_value) or max_value <= 0:
        raise InvalidInputError(
            f"Maximum distance must be strictly positive and finite to define bins, got {max_value}. "
            f"Are all points located at the same coordinates?"
        )

    upper_edge = expansion * max_value
    width = upper_edge / ((bins - 1) * (1 - overlap) + 1)
    step = width * (1 - overlap)

    lower = np.arange(bins) * step
    upper = lower + width
    # Avoid rounding errors on the outer edge
    upper[-1] = upper_edge

    return np.column_stack((lower, upper))


def bin_counts(values: NDArrayf, breaks: NDArrayf) -> NDArrayi:
    """
    Count values falling in each bin.

    A value falls in a bin if `lower <= value < upper`, the last bin being also closed on its upper edge. Values can
    be counted in several overlapping bins. Values outside all bins and NaNs are not counted.

    :param values: Values to count.
    :param breaks: Bin edges of shape (bins, 2), see `overlapping_breaks`.

    :return: Number of values per bin.
    """

    values = np.asarray(values, dtype=np.float64).ravel()
    values = values[np.isfinite(values)]

    lower = breaks[:, 0]
    upper = breaks[:, 1]

    inside = np.logical_and(values[:, None] >= lower[None, :], values[:, None] < upper[None, :])
    inside[:, -1] = np.logical_or(inside[:, -1], values == upper[-1])

    return np.count_nonzero(inside, axis=0)


def counts_to_proportions(counts: NDArrayi) -> NDArrayf:
    """Normalize bin counts to proportions summing to one, or all zeros if no value was counted."""

    total = np.sum(counts)
    if total == 0:
        return np.zeros(len(counts), dtype=np.float64)

    return counts / total


@dataclass
class DistanceDistribution:
    """Empirical distribution of distances over (possibly overlapping) bins."""

    lower: NDArrayf
    upper: NDArrayf
    counts: NDArrayi

    @property
    def breaks(self) -> NDArrayf:
        """Bin edges of shape (bins, 2)."""
        return np.column_stack((self.lower, self.upper))

    @property
    def middle(self) -> NDArrayf:
        """Bin midpoints."""
        return (self.lower + self.upper) / 2

    @property
    def proportion(self) -> NDArrayf:
        """Proportion of counted values falling in each bin."""
        return counts_to_proportions(self.counts)

    def to_dataframe(self) -> pd.DataFrame:
        """Distribution as a dataframe with columns lower, upper, middle, count and proportion."""

        df = pd.DataFrame()
        df = df.assign(
            lower=self.lower, upper=self.upper, middle=self.middle, count=self.counts, proportion=self.proportion
        )

        return df


def hist_overlap(values: NDArrayf, breaks: NDArrayf) -> DistanceDistribution:
    """
    Compute the distribution of values across (possibly overlapping) bins.

    :param values: Distances. NaNs are ignored.
    :param breaks: Bin edges of shape (bins, 2), see `overlapping_breaks`.

    :raises InvalidInputError: If values are empty or all NaNs.

    :return: Distribution with counts and proportions per bin.
    """

    values = np.asarray(values, dtype=np.float64).ravel()
    if values.size == 0 or np.all(np.isnan(values)):
        raise InvalidInputError("Cannot compute a distance distribution from empty or all-NaN values.")

    return DistanceDistribution(
        lower=breaks[:, 0].copy(), upper=breaks[:, 1].copy(), counts=bin_counts(values, breaks)
    )


def deviation(proportion1: NDArrayf, proportion2: NDArrayf) -> float:
    """Root-sum-of-squares difference between two distributions' per-bin proportions."""

    return float(np.sqrt(np.sum((np.asarray(proportion1) - np.asarray(proportion2)) ** 2)))
