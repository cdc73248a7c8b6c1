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

"""
Randomization of two point patterns within a raster mask, preserving the distributions of pairwise distances within
each pattern and between the two patterns.
"""
from __future__ import annotations

import logging
import math
import time
import warnings
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable, Literal, Mapping, Protocol, TypedDict, overload

import geoutils as gu
import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from randgeo._typing import NDArrayf, NDArrayi
from randgeo.crs import check_same_crs
from randgeo.distance import (
    DistanceFunc,
    _distances_from_point,
    distance_cosine,
    point_distance,
)
from randgeo.errors import (
    ConvergenceFailure,
    DegenerateDistanceError,
    InsufficientValidAreaError,
    InvalidInputError,
)
from randgeo.histogram import (
    DistanceDistribution,
    bin_counts,
    counts_to_proportions,
    deviation,
    overlapping_breaks,
)
from randgeo.plotting import plot_distance_distributions, plot_randomized_points
from randgeo.points import PointSet, from_point_set, to_point_set
from randgeo.sampling import CandidatePool, RasterMask

# Categories of distances compared between observed and randomized points
CATEGORIES = ("self1", "self2", "cross")

# Map each key name to a descriptor string
dict_key_to_str = {
    "bins": "Number of overlapping bins",
    "tol": "Tolerance per category",
    "overlap": "Overlap fraction of bins",
    "distance_func": "Distance function",
    "acceptance": "Acceptance strategy",
    "max_iterations": "Maximum number of tries",
    "timeout": "Maximum duration (seconds)",
    "best_effort": "Return best effort if not converged",
    "random_state": "Random generator",
    "pool_size": "Size of candidate pool",
    "n1": "Number of points in x1",
    "n2": "Number of points in x2",
    "state": "Final state of the search",
    "tries": "Number of tries",
    "accepts": "Number of accepted moves",
    "refills": "Number of pool refills",
    "deviations": "Deviation per category",
    "elapsed": "Duration of the search (seconds)",
}


class EngineState(Enum):
    """States of a randomization run."""

    INITIALIZING = "initializing"
    SEARCHING = "searching"
    CONVERGED = "converged"
    ABORTED = "aborted"


class CancelFlag(Protocol):
    """Any object with an `is_set()` method, such as threading.Event."""

    def is_set(self) -> bool: ...


class InRandomizationDict(TypedDict, total=False):
    """Keys and types of inputs of a randomization."""

    # Number of overlapping bins of the distance distributions
    bins: int
    # Maximum deviation per category to reach
    tol: float
    # Fraction of bin width shared by consecutive bins
    overlap: float
    # Function of a single point and other points returning their distances
    distance_func: DistanceFunc
    # Acceptance strategy of candidate moves
    acceptance: AcceptanceStrategy
    # Maximum number of tries
    max_iterations: int
    # Maximum duration of the search in seconds
    timeout: float | None
    # Whether to return the current state instead of raising if the search stops before converging
    best_effort: bool
    # Random state or seed
    random_state: int | np.random.Generator | None
    # Number of candidate coordinates generated at each pool refill
    pool_size: int
    # Number of points
    n1: int
    n2: int


class OutRandomizationDict(TypedDict, total=False):
    """Keys and types of outputs of a randomization."""

    state: EngineState
    tries: int
    accepts: int
    refills: int
    deviations: dict[str, float]
    elapsed: float


class RandomizationDict(TypedDict, total=False):
    """Inputs and outputs of a randomization."""

    inputs: InRandomizationDict
    outputs: OutRandomizationDict


#####################
# Acceptance strategy
#####################


class AcceptanceStrategy(ABC):
    """Rule deciding whether a candidate move is accepted."""

    @abstractmethod
    def accept(self, current: float, candidate: float, tries: int, rng: np.random.Generator) -> bool:
        """
        Decide whether to accept a candidate move.

        :param current: Combined deviation of the current state.
        :param candidate: Combined deviation after the candidate move.
        :param tries: Number of the current try, starting at 1.
        :param rng: Random number generator of the run.
        """

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in vars(self).items())
        return f"{self.__class__.__name__}({params})"


class GreedyAcceptance(AcceptanceStrategy):
    """
    Accept a move if it strictly decreases the combined deviation, and unconditionally every `escape_every` tries to
    escape local minima.

    This is a heuristic with no guarantee of convergence. Without the escape (`escape_every=None`), the combined
    deviation never increases.
    """

    def __init__(self, escape_every: int | None = 10000):
        """
        :param escape_every: Period (in tries) of unconditional acceptance, or None to only accept improvements.
        """
        if escape_every is not None and (
            isinstance(escape_every, bool) or not isinstance(escape_every, (int, np.integer)) or escape_every < 1
        ):
            raise InvalidInputError(f"Escape period must be a positive integer or None, got {escape_every}.")
        self.escape_every = escape_every

    def accept(self, current: float, candidate: float, tries: int, rng: np.random.Generator) -> bool:
        if candidate < current:
            return True
        return self.escape_every is not None and tries % self.escape_every == 0


class AnnealingAcceptance(AcceptanceStrategy):
    """
    Simulated annealing: always accept improvements, and accept a worse move with probability
    `exp(-(candidate - current) / T)`, the temperature `T` decreasing geometrically with tries.
    """

    def __init__(self, temperature: float = 0.01, cooling: float = 0.9995, min_temperature: float = 1e-9):
        """
        :param temperature: Initial temperature, in units of deviation.
        :param cooling: Multiplying factor of the temperature at each try, in (0, 1].
        :param min_temperature: Floor of the temperature.
        """
        if temperature <= 0 or min_temperature <= 0:
            raise InvalidInputError("Annealing temperatures must be strictly positive.")
        if not 0 < cooling <= 1:
            raise InvalidInputError(f"Annealing cooling factor must be in (0, 1], got {cooling}.")
        self.temperature = temperature
        self.cooling = cooling
        self.min_temperature = min_temperature

    def temperature_at(self, tries: int) -> float:
        """Temperature at a given try."""
        return max(self.temperature * self.cooling**tries, self.min_temperature)

    def accept(self, current: float, candidate: float, tries: int, rng: np.random.Generator) -> bool:
        if candidate < current:
            return True
        return bool(rng.random() < math.exp(-(candidate - current) / self.temperature_at(tries)))


##################
# Randomization
##################


def _pool_size(n12: int, bins: int, tol: float, min_pool_size: int, max_pool_size: int) -> int:
    """
    Number of candidate coordinates to generate at once: grows with the number of pairs and the precision required,
    to trade off the cost of sampling calls against pool exhaustion.
    """

    size = max(min_pool_size, n12 * round(n12 * bins / (10000 * tol)))

    return int(min(size, max_pool_size))


class RandomizationEngine:
    """
    Iterative randomization of two point sets within a raster mask.

    Starting from random points, one point of either set is replaced at a time by a random candidate coordinate. The
    move is kept if the acceptance strategy agrees, based on the deviation between observed and randomized
    distributions of pairwise distances (within set 1, within set 2, and between sets). The search stops when the
    deviation of each of the three categories is at most the tolerance.

    Only distances involving the replaced point are recomputed at each try, and bin counts are updated by
    difference, so that a try costs O(N) distance evaluations.
    """

    def __init__(
        self,
        x1: Any,
        x2: Any,
        raster: gu.Raster | RasterMask | str,
        bins: int = 20,
        tol: float = 0.001,
        distance_func: DistanceFunc | None = None,
        verbose: bool = False,
        crs: Any = None,
        overlap: float = 0.5,
        acceptance: AcceptanceStrategy | None = None,
        escape_every: int | None = 10000,
        max_iterations: int = 1_000_000,
        timeout: float | None = None,
        best_effort: bool = False,
        cancel: CancelFlag | None = None,
        random_state: int | np.random.Generator | None = None,
        area_weighted: bool | None = None,
        jitter: bool | None = None,
        min_pool_size: int = 10000,
        max_pool_size: int = 1_000_000,
        record_history: bool = False,
    ):
        """
        Instantiate a randomization, validating all inputs and computing the observed distance distributions.

        :param x1: First point set: array, list or DataFrame with longitude and latitude as first two columns,
            GeoDataFrame or GeoSeries of points, or geoutils.Vector.
        :param x2: Second point set, as x1.
        :param raster: Raster (or path, or RasterMask) whose valid cells of the first band define where points
            can be placed.
        :param bins: Number of overlapping bins of the distance distributions, at least 2.
        :param tol: Maximum root-sum-of-squares deviation between observed and randomized proportions, for each of
            the three categories.
        :param distance_func: Function of a single point of shape (2,) and other points of shape (N, 2) returning N
            distances. Defaults to the great-circle distance (law of cosines), in which case points not in
            WGS84/NAD83 are reprojected to WGS84.
        :param verbose: Whether to display a progress bar, and to draw the diagnostic panels of
            `plot_randomized_points` and `plot_distance_distributions` in a new figure once the search stops.
        :param crs: Coordinate reference system of tabular inputs (default WGS84).
        :param overlap: Fraction of bin width shared by consecutive bins, in [0, 1).
        :param acceptance: Acceptance strategy of candidate moves. Defaults to GreedyAcceptance(escape_every).
        :param escape_every: Period of unconditional acceptance of the default strategy, None to disable.
        :param max_iterations: Maximum number of tries.
        :param timeout: Maximum duration of the search in seconds, None for no limit.
        :param best_effort: Whether to return the current state with a warning instead of raising a
            ConvergenceFailure when the search stops before converging.
        :param cancel: Flag checked at every try, the search stops when `cancel.is_set()` is True.
        :param random_state: Random state or seed number to use for calculations (to fix random sampling).
        :param area_weighted: Whether to weight cells by their area when sampling in a geographic CRS (default True).
            If `raster` is a RasterMask, must agree with its setting.
        :param jitter: Whether to place candidates uniformly inside cells instead of at cell centers (default False).
            If `raster` is a RasterMask, must agree with its setting.
        :param min_pool_size: Minimum number of candidate coordinates generated at once.
        :param max_pool_size: Maximum number of candidate coordinates generated at once.
        :param record_history: Whether to record the combined deviation after every try in `history`.

        :raises InvalidInputError: If points, CRS or parameters are invalid, or if sampling options conflict with
            those of a RasterMask.
        :raises InsufficientValidAreaError: If the raster has no valid cell.
        """

        self.state = EngineState.INITIALIZING
        self.verbose = verbose

        # Check parameters
        if isinstance(bins, bool) or not isinstance(bins, (int, np.integer)) or bins < 2:
            raise InvalidInputError(f"Number of bins must be an integer of at least 2, got {bins}.")
        if not (isinstance(tol, (int, float, np.floating)) and np.isfinite(tol) and tol > 0):
            raise InvalidInputError(f"Tolerance must be a strictly positive number, got {tol}.")
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, (int, np.integer)) or max_iterations < 1:
            raise InvalidInputError(f"Maximum number of tries must be a positive integer, got {max_iterations}.")
        if timeout is not None and not timeout > 0:
            raise InvalidInputError(f"Timeout must be strictly positive or None, got {timeout}.")
        if min_pool_size < 1 or max_pool_size < min_pool_size:
            raise InvalidInputError(
                f"Pool sizes must satisfy 1 <= min_pool_size <= max_pool_size, got {min_pool_size} and "
                f"{max_pool_size}."
            )
        if acceptance is None:
            acceptance = GreedyAcceptance(escape_every=escape_every)
        elif not isinstance(acceptance, AcceptanceStrategy):
            raise InvalidInputError(f"Acceptance must be an AcceptanceStrategy, got {type(acceptance)}.")
        if distance_func is not None and not callable(distance_func):
            raise InvalidInputError(f"Distance function must be callable, got {type(distance_func)}.")

        self.bins = int(bins)
        self.tol = float(tol)
        self.overlap = overlap
        self.acceptance = acceptance
        self.max_iterations = int(max_iterations)
        self.timeout = timeout
        self.best_effort = best_effort
        self.cancel = cancel
        self.distance_func: DistanceFunc = distance_func if distance_func is not None else distance_cosine
        self._rng = np.random.default_rng(random_state)

        # Normalize points, with explicit CRS
        self._x1 = x1
        self._x2 = x2
        reproject = distance_func is None
        self.obs1: PointSet = to_point_set(x1, crs=crs, reproject_to_wgs84=reproject, name="x1")
        self.obs2: PointSet = to_point_set(x2, crs=crs, reproject_to_wgs84=reproject, name="x2")
        for name, obs in (("x1", self.obs1), ("x2", self.obs2)):
            if len(obs) < 2:
                raise InvalidInputError(
                    f"Points '{name}' must contain at least two points to compute self-distances, got {len(obs)}."
                )
        self.crs = check_same_crs(self.obs1.crs, self.obs2.crs, "x1", "x2")

        # Check the raster mask
        if isinstance(raster, RasterMask):
            for option, value in (("area_weighted", area_weighted), ("jitter", jitter)):
                if value is not None and value != getattr(raster, option):
                    raise InvalidInputError(
                        f"Option {option}={value} conflicts with the setting of the raster mask "
                        f"({option}={getattr(raster, option)}). Set it on the RasterMask instead."
                    )
            self.mask = raster
        else:
            self.mask = RasterMask(
                raster,
                area_weighted=True if area_weighted is None else area_weighted,
                jitter=False if jitter is None else jitter,
            )
        check_same_crs(self.crs, self.mask.crs, "x1/x2", "raster")
        if self.mask.valid_cell_count() == 0:
            raise InsufficientValidAreaError("Raster mask has no valid cell to sample points from.")

        self.n1 = len(self.obs1)
        self.n2 = len(self.obs2)
        self.pool_size = _pool_size(self.n1 + self.n2, self.bins, self.tol, min_pool_size, max_pool_size)

        # Observed distances and distributions, with bins derived from the largest distance of each category
        obs_dists = {
            "self1": self._self_vector(point_distance(self.obs1.coords, distance_func=self.distance_func)),
            "self2": self._self_vector(point_distance(self.obs2.coords, distance_func=self.distance_func)),
            "cross": point_distance(self.obs1.coords, self.obs2.coords, distance_func=self.distance_func).ravel(),
        }
        self.breaks: dict[str, NDArrayf] = {}
        self.observed: dict[str, DistanceDistribution] = {}
        for cat, dists in obs_dists.items():
            if not np.all(np.isfinite(dists)):
                raise InvalidInputError(f"Observed distances of category '{cat}' contain non-finite values.")
            self.breaks[cat] = overlapping_breaks(np.max(dists), bins=self.bins, overlap=self.overlap)
            self.observed[cat] = DistanceDistribution(
                lower=self.breaks[cat][:, 0], upper=self.breaks[cat][:, 1], counts=bin_counts(dists, self.breaks[cat])
            )
        self._obs_prop = {cat: self.observed[cat].proportion for cat in CATEGORIES}

        # Search state, set when the search starts
        self.pool: CandidatePool | None = None
        self.rand1: NDArrayf = np.empty((0, 2))
        self.rand2: NDArrayf = np.empty((0, 2))
        self._dist_self1: NDArrayf = np.empty((0, 0))
        self._dist_self2: NDArrayf = np.empty((0, 0))
        self._dist_cross: NDArrayf = np.empty((0, 0))
        self._counts: dict[str, NDArrayi] = {}
        self.deviations: dict[str, float] = {}
        self.tries = 0
        self.accepts = 0
        self.record_history = record_history
        self.history: list[float] = []
        self.elapsed = 0.0

        self._meta: RandomizationDict = {
            "inputs": {
                "bins": self.bins,
                "tol": self.tol,
                "overlap": self.overlap,
                "distance_func": self.distance_func,
                "acceptance": self.acceptance,
                "max_iterations": self.max_iterations,
                "timeout": self.timeout,
                "best_effort": self.best_effort,
                "random_state": random_state,
                "pool_size": self.pool_size,
                "n1": self.n1,
                "n2": self.n2,
            },
            "outputs": {},
        }

        logging.info(
            "Randomization of %d and %d points with %d bins and tolerance %g; candidate pool of %d coordinates.",
            self.n1,
            self.n2,
            self.bins,
            self.tol,
            self.pool_size,
        )

    @staticmethod
    def _self_vector(dist: NDArrayf) -> NDArrayf:
        """Lower triangle of a self-distance matrix, each pair once."""
        return dist[np.tril_indices(dist.shape[0], k=-1)]

    @property
    def combined_deviation(self) -> float:
        """Sum of the deviations of the three categories, used to compare states."""
        return float(sum(self.deviations.values()))

    @property
    def converged(self) -> bool:
        """Whether the deviation of every category is at most the tolerance."""
        return len(self.deviations) > 0 and all(self.deviations[cat] <= self.tol for cat in CATEGORIES)

    @property
    def randomized(self) -> dict[str, DistanceDistribution]:
        """Current distributions of randomized distances."""
        return {
            cat: DistanceDistribution(
                lower=self.breaks[cat][:, 0], upper=self.breaks[cat][:, 1], counts=self._counts[cat].copy()
            )
            for cat in self._counts
        }

    def _deviation(self, cat: str, counts: NDArrayi) -> float:
        return deviation(counts_to_proportions(counts), self._obs_prop[cat])

    def _start(self) -> None:
        """Seed the randomized sets from the candidate pool and compute their distributions."""

        self.pool = CandidatePool(self.mask, size=self.pool_size, random_state=self._rng)
        seeds = self.pool.draw_many(self.n1 + self.n2)
        self.rand1 = seeds[: self.n1, :].copy()
        self.rand2 = seeds[self.n1 :, :].copy()

        self._dist_self1 = point_distance(self.rand1, distance_func=self.distance_func)
        self._dist_self2 = point_distance(self.rand2, distance_func=self.distance_func)
        self._dist_cross = point_distance(self.rand1, self.rand2, distance_func=self.distance_func)
        for dist in (self._dist_self1, self._dist_self2, self._dist_cross):
            if not np.all(np.isfinite(dist)):
                raise DegenerateDistanceError("Distances between initial random points contain non-finite values.")

        self._counts = {
            "self1": bin_counts(self._self_vector(self._dist_self1), self.breaks["self1"]),
            "self2": bin_counts(self._self_vector(self._dist_self2), self.breaks["self2"]),
            "cross": bin_counts(self._dist_cross.ravel(), self.breaks["cross"]),
        }
        self.deviations = {cat: self._deviation(cat, self._counts[cat]) for cat in CATEGORIES}
        self.tries = 0
        self.accepts = 0
        self.history = []
        self.state = EngineState.SEARCHING

    def step(self) -> bool:
        """
        Perform one try: replace a random point of a random set by a candidate coordinate, and keep the move if the
        acceptance strategy agrees.

        :raises DegenerateDistanceError: If a candidate distance is not finite.

        :return: Whether the move was accepted.
        """

        if self.pool is None:
            self._start()
        assert self.pool is not None

        candidate = self.pool.draw()
        which = 1 if self._rng.random() < 0.5 else 2
        n_own = self.n1 if which == 1 else self.n2
        index = int(self._rng.integers(n_own))

        own, other = (self.rand1, self.rand2) if which == 1 else (self.rand2, self.rand1)
        self_cat = "self1" if which == 1 else "self2"
        dist_self = self._dist_self1 if which == 1 else self._dist_self2

        # Distances from the candidate to the rest of its set and to the other set
        new_self = _distances_from_point(self.distance_func, candidate, own)
        new_self[index] = 0.0
        new_cross = _distances_from_point(self.distance_func, candidate, other)
        if not (np.all(np.isfinite(new_self)) and np.all(np.isfinite(new_cross))):
            raise DegenerateDistanceError(
                f"Non-finite distance computed for candidate coordinate {candidate} at try {self.tries + 1}."
            )
        old_self = dist_self[index, :]
        old_cross = self._dist_cross[index, :] if which == 1 else self._dist_cross[:, index]

        # Update bin counts by difference, excluding the replaced point itself
        others = np.arange(n_own) != index
        cand_counts = dict(self._counts)
        cand_counts[self_cat] = (
            self._counts[self_cat]
            + bin_counts(new_self[others], self.breaks[self_cat])
            - bin_counts(old_self[others], self.breaks[self_cat])
        )
        cand_counts["cross"] = (
            self._counts["cross"]
            + bin_counts(new_cross, self.breaks["cross"])
            - bin_counts(old_cross, self.breaks["cross"])
        )
        cand_deviations = dict(self.deviations)
        for cat in (self_cat, "cross"):
            cand_deviations[cat] = self._deviation(cat, cand_counts[cat])

        self.tries += 1
        accepted = self.acceptance.accept(
            self.combined_deviation, float(sum(cand_deviations.values())), self.tries, self._rng
        )

        if accepted:
            own[index, :] = candidate
            dist_self[index, :] = new_self
            dist_self[:, index] = new_self
            if which == 1:
                self._dist_cross[index, :] = new_cross
            else:
                self._dist_cross[:, index] = new_cross
            self._counts = cand_counts
            self.deviations = cand_deviations
            self.accepts += 1
            logging.debug(
                "Try %d accepted (%d accepted): deviations self1=%.6f, self2=%.6f, cross=%.6f",
                self.tries,
                self.accepts,
                self.deviations["self1"],
                self.deviations["self2"],
                self.deviations["cross"],
            )

        if self.record_history:
            self.history.append(self.combined_deviation)

        return accepted

    def _stop_reason(self, start_time: float) -> str | None:
        """Reason for stopping the search before convergence, if any."""

        if self.tries >= self.max_iterations:
            return f"maximum number of tries ({self.max_iterations}) reached"
        if self.timeout is not None and time.monotonic() - start_time > self.timeout:
            return f"timeout of {self.timeout} seconds reached"
        if self.cancel is not None and self.cancel.is_set():
            return "search cancelled"
        return None

    def _record_outputs(self, start_time: float) -> None:
        """Store the final state and counters of the search in the metadata."""

        self.elapsed = time.monotonic() - start_time
        self._meta["outputs"] = {
            "state": self.state,
            "tries": self.tries,
            "accepts": self.accepts,
            "refills": self.pool.refills if self.pool is not None else 0,
            "deviations": dict(self.deviations),
            "elapsed": self.elapsed,
        }

    def plot_diagnostics(self) -> None:
        """Draw the raster mask with observed and randomized points, and the three distance distributions."""

        fig = plt.figure(figsize=(15, 9))
        ax_points = fig.add_subplot(2, 1, 1)
        axes_dist = [fig.add_subplot(2, 3, 4 + i) for i in range(3)]
        plot_randomized_points(self, ax=ax_points)
        plot_distance_distributions(self, axes=axes_dist)
        fig.tight_layout()

    def run(self) -> RandomizationEngine:
        """
        Search randomized point sets until every deviation is at most the tolerance.

        :raises ConvergenceFailure: If the search stops before converging and best_effort is False.
        :raises DegenerateDistanceError: If a non-finite distance appears during the search, the engine being left
            in state ABORTED.

        :return: The engine, in state CONVERGED (or ABORTED with best_effort).
        """

        start_time = time.monotonic()

        # If logging level <= INFO or verbose, will use progressbar
        pbar = tqdm(
            total=self.max_iterations,
            desc="   Randomizing",
            disable=not (self.verbose or logging.getLogger().getEffectiveLevel() <= logging.INFO),
        )

        reason = None
        try:
            self._start()
            while not self.converged:
                reason = self._stop_reason(start_time)
                if reason is not None:
                    break
                if self.step():
                    pbar.set_postfix_str(
                        f"deviation: {self.combined_deviation:.6f} | accepted: {self.accepts} of {self.tries} tries"
                    )
                pbar.update(1)
        except DegenerateDistanceError:
            self.state = EngineState.ABORTED
            self._record_outputs(start_time)
            raise
        finally:
            pbar.close()

        self.state = EngineState.CONVERGED if self.converged else EngineState.ABORTED
        self._record_outputs(start_time)

        if self.verbose:
            self.plot_diagnostics()

        if self.state == EngineState.CONVERGED:
            logging.info(
                "Randomization converged after %d tries (%d accepted) in %.1f seconds.",
                self.tries,
                self.accepts,
                self.elapsed,
            )
            return self

        msg = (
            f"Randomization did not converge: {reason} with deviations "
            + ", ".join(f"{cat}={self.deviations[cat]:.6f}" for cat in CATEGORIES)
            + f" above tolerance {self.tol} ({self.accepts} accepted of {self.tries} tries)."
        )
        if self.best_effort:
            warnings.warn(msg + " Returning the current randomized points.")
            return self

        raise ConvergenceFailure(msg, tries=self.tries, accepts=self.accepts, deviations=self.deviations)

    def result(self) -> tuple[Any, Any]:
        """Randomized points in the same representation as the inputs."""

        if self.state not in (EngineState.CONVERGED, EngineState.ABORTED):
            raise ValueError("The randomization was not run yet, call run() first.")

        return from_point_set(self._x1, self.rand1, self.crs), from_point_set(self._x2, self.rand2, self.crs)

    @overload
    def info(self, as_str: Literal[False] = ...) -> None: ...

    @overload
    def info(self, as_str: Literal[True]) -> str: ...

    def info(self, as_str: bool = False) -> None | str:
        """Summarize information about this randomization."""

        # Define max tabulation: longest name + 2 spaces
        tab = np.max([len(v) for v in dict_key_to_str.values()]) + 6

        def format_values(val: Any) -> str:
            if isinstance(val, (float, np.floating)):
                return f"{val:.6g}"
            elif isinstance(val, dict):
                return ", ".join(f"{k}: {format_values(v)}" for k, v in val.items())
            elif isinstance(val, EngineState):
                return val.name
            elif callable(val) and hasattr(val, "__name__"):
                return val.__name__
            return str(val)

        def format_level(level: Mapping[str, Any]) -> Iterable[str]:
            for k, v in level.items():
                yield f"  {dict_key_to_str[k]}:".ljust(tab) + f"{format_values(v)}\n"

        final_str = ["Randomization information\n", "  State:".ljust(tab) + f"{self.state.name}\n", "Inputs\n"]
        final_str += list(format_level(self._meta["inputs"]))
        final_str += ["Outputs\n"]
        if self._meta["outputs"]:
            final_str += list(format_level(self._meta["outputs"]))
        else:
            final_str += ["  None yet (run not called)\n"]

        if as_str:
            return "".join(final_str)
        else:
            print("".join(final_str))
            return None


def randomize_by_self_and_other_detailed(
    x1: Any,
    x2: Any,
    raster: gu.Raster | RasterMask | str,
    bins: int = 20,
    tol: float = 0.001,
    distance_func: DistanceFunc | None = None,
    verbose: bool = False,
    **options: Any,
) -> RandomizationEngine:
    """
    Same as `randomize_by_self_and_other`, but return the finished RandomizationEngine for diagnostics (observed and
    randomized distributions, deviations, number of tries).
    """

    engine = RandomizationEngine(
        x1, x2, raster, bins=bins, tol=tol, distance_func=distance_func, verbose=verbose, **options
    )

    return engine.run()


def randomize_by_self_and_other(
    x1: Any,
    x2: Any,
    raster: gu.Raster | RasterMask | str,
    bins: int = 20,
    tol: float = 0.001,
    distance_func: DistanceFunc | None = None,
    verbose: bool = False,
    **options: Any,
) -> tuple[Any, Any]:
    """
    Randomize the location of two sets of geographic points with respect to one another, retaining the distribution
    of pairwise distances within each set and between the two sets, up to a tolerance.

    Points are placed only within valid cells of the raster. The result is a null model of the two point patterns,
    for instance to test whether two species co-occur more than expected from their spatial structure alone.

    :param x1: First point set: array, list or DataFrame with longitude and latitude as first two columns,
        GeoDataFrame or GeoSeries of points, or geoutils.Vector.
    :param x2: Second point set, as x1.
    :param raster: Raster, path to a raster or RasterMask. Only the first band is used, points are not located in
        nodata cells.
    :param bins: Number of overlapping bins across which the distributions of pairwise distances are computed. Bins
        cover 0 to 1.1 times the largest observed distance of each category.
    :param tol: Maximum root-sum-of-squares deviation between observed and randomized distributions, for each of the
        three categories (within x1, within x2, between x1 and x2).
    :param distance_func: Distance function of a single point and other points. Defaults to the great-circle distance.
    :param verbose: Whether to display a progress bar and draw the diagnostic panels once the search stops.
    :param options: Options of RandomizationEngine: crs, overlap, acceptance, escape_every, max_iterations,
        timeout, best_effort, cancel, random_state, area_weighted, jitter, min_pool_size, max_pool_size,
        record_history.

    :raises InvalidInputError: If points, CRS or parameters are invalid.
    :raises InsufficientValidAreaError: If the raster has no valid cell.
    :raises ConvergenceFailure: If the search stops before converging (unless best_effort=True).

    :return: Randomized x1 and x2, in the same representation as the inputs.
    """

    engine = randomize_by_self_and_other_detailed(
        x1, x2, raster, bins=bins, tol=tol, distance_func=distance_func, verbose=verbose, **options
    )

    return engine.result()
