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

"""Plotting of observed and randomized point patterns and of their distance distributions."""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import matplotlib
import matplotlib.pyplot as plt
import numpy as np

if TYPE_CHECKING:
    from randgeo.randomize import RandomizationEngine

_panel_labels = {
    "self1": "Proportion of Pairwise Distances (x1)",
    "self2": "Proportion of Pairwise Distances (x2)",
    "cross": "Proportion of Pairwise Distances (x1 vs x2)",
}


def plot_distance_distributions(
    engine: RandomizationEngine,
    axes: Sequence[matplotlib.axes.Axes] | None = None,
    out_fname: str | None = None,
) -> None:
    """
    Plot the observed and randomized distributions of pairwise distances within x1, within x2, and between x1 and x2,
    against the bin midpoints.

    :param engine: Randomization engine, after run() or at least one step().
    :param axes: Sequence of three plotting axes to use, creates a new figure by default.
    :param out_fname: File to save the plot to.
    """

    if axes is None:
        _, axes = plt.subplots(1, 3, figsize=(15, 4.5))
    elif len(axes) != 3 or not all(isinstance(ax, matplotlib.axes.Axes) for ax in axes):
        raise ValueError("axes must be a sequence of three matplotlib.axes.Axes instances or None.")

    randomized = engine.randomized
    if len(randomized) == 0:
        raise ValueError("No randomized distribution to plot yet, call run() first.")

    for ax, cat in zip(axes, ("self1", "self2", "cross")):
        obs = engine.observed[cat]
        rand = randomized[cat]
        ax.plot(obs.middle, obs.proportion, color="black", marker="o", label="Observed")
        ax.plot(rand.middle, rand.proportion, color="red", label="Randomized")
        ax.set_xlabel("Distance Bin Midpoint")
        ax.set_ylabel(_panel_labels[cat])
        ax.set_title(f"Deviation: {engine.deviations[cat]:.4f}")
        ax.legend(loc="upper right")

    if out_fname is not None:
        plt.savefig(out_fname)


def plot_randomized_points(
    engine: RandomizationEngine,
    ax: matplotlib.axes.Axes | None = None,
    out_fname: str | None = None,
) -> None:
    """
    Plot the raster mask with observed points in black and randomized points in red (x1) and blue (x2).

    :param engine: Randomization engine, after run().
    :param ax: Plotting ax to use, creates a new one by default.
    :param out_fname: File to save the plot to.
    """

    # Create axes
    if ax is None:
        plt.figure()
        ax = plt.subplot(111)
    elif not isinstance(ax, matplotlib.axes.Axes):
        raise ValueError("ax must be a matplotlib.axes.Axes instance or None.")

    transform = engine.mask.transform
    nrows, ncols = engine.mask.valid.shape
    extent = (
        transform.c,
        transform.c + transform.a * ncols,
        transform.f + transform.e * nrows,
        transform.f,
    )
    ax.imshow(np.where(engine.mask.valid, 1.0, np.nan), extent=extent, cmap="Greys", vmin=0, vmax=2)

    ax.scatter(engine.obs1.coords[:, 0], engine.obs1.coords[:, 1], facecolors="none", edgecolors="black", marker="o")
    ax.scatter(engine.obs2.coords[:, 0], engine.obs2.coords[:, 1], facecolors="none", edgecolors="black", marker="^")
    if engine.rand1.shape[0] > 0:
        ax.scatter(engine.rand1[:, 0], engine.rand1[:, 1], facecolors="none", edgecolors="red", marker="o")
        ax.scatter(engine.rand2[:, 0], engine.rand2[:, 1], facecolors="none", edgecolors="blue", marker="^")

    if out_fname is not None:
        plt.savefig(out_fname)
