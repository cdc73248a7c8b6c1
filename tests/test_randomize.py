"""Functions to test the randomization of point patterns."""

from __future__ import annotations

import threading
import warnings
from pathlib import Path

import geopandas as gpd
import geoutils as gu
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest
from pyproj import CRS

import randgeo
from randgeo.distance import (
    cross_distances,
    distance_euclidean,
    distance_haversine,
    self_distances,
)
from randgeo.errors import (
    ConvergenceFailure,
    DegenerateDistanceError,
    InsufficientValidAreaError,
    InvalidInputError,
)
from randgeo.histogram import deviation, hist_overlap
from randgeo.randomize import (
    AnnealingAcceptance,
    EngineState,
    GreedyAcceptance,
    RandomizationEngine,
    _pool_size,
    randomize_by_self_and_other,
    randomize_by_self_and_other_detailed,
)
from randgeo.sampling import RasterMask

PointsXY = tuple[np.ndarray, np.ndarray]


class TestAcceptance:

    rng = np.random.default_rng(42)

    def test_greedy(self) -> None:
        greedy = GreedyAcceptance(escape_every=3)

        assert greedy.accept(1.0, 0.5, 1, self.rng)
        assert not greedy.accept(0.5, 0.5, 1, self.rng)
        assert not greedy.accept(0.5, 1.0, 2, self.rng)
        # Unconditional acceptance every 3 tries
        assert greedy.accept(0.5, 1.0, 3, self.rng)
        assert greedy.accept(0.5, 1.0, 6, self.rng)

        strict = GreedyAcceptance(escape_every=None)
        assert not any(strict.accept(0.5, 1.0, t, self.rng) for t in range(1, 100))

        assert repr(greedy) == "GreedyAcceptance(escape_every=3)"

    @pytest.mark.parametrize("escape_every", [0, -5, 2.5, True])  # type: ignore
    def test_greedy_errors(self, escape_every: object) -> None:
        with pytest.raises(InvalidInputError, match="Escape period"):
            GreedyAcceptance(escape_every=escape_every)  # type: ignore

    def test_annealing(self) -> None:
        annealing = AnnealingAcceptance(temperature=0.1, cooling=0.5, min_temperature=1e-6)

        assert annealing.temperature_at(0) == pytest.approx(0.1)
        assert annealing.temperature_at(2) == pytest.approx(0.025)
        assert annealing.temperature_at(1000) == pytest.approx(1e-6)

        assert annealing.accept(1.0, 0.5, 1, self.rng)
        # Much worse moves at low temperature are never accepted
        assert not annealing.accept(0.5, 1.5, 1000, self.rng)
        # Slightly worse moves at high temperature are mostly accepted
        hot = AnnealingAcceptance(temperature=10, cooling=1)
        assert np.mean([hot.accept(0.5, 0.51, 1, self.rng) for _ in range(1000)]) > 0.95

        with pytest.raises(InvalidInputError, match="temperatures"):
            AnnealingAcceptance(temperature=0)
        with pytest.raises(InvalidInputError, match="cooling"):
            AnnealingAcceptance(cooling=1.5)


def test_pool_size() -> None:
    """The candidate pool grows with the number of points and precision, within bounds."""

    assert _pool_size(10, bins=20, tol=0.001, min_pool_size=10000, max_pool_size=1_000_000) == 10000
    assert _pool_size(200, bins=20, tol=0.001, min_pool_size=10000, max_pool_size=1_000_000) == 200 * 400
    assert _pool_size(1000, bins=20, tol=0.001, min_pool_size=10000, max_pool_size=1_000_000) == 1_000_000


class TestRandomizationEngine:
    def test_init(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Observed distributions are computed at instantiation, nothing is searched yet."""

        x1, x2 = points_xy
        engine = RandomizationEngine(x1, x2, grid_raster, bins=5, tol=0.1)

        assert engine.state == EngineState.INITIALIZING
        assert engine.n1 == 5 and engine.n2 == 5
        assert set(engine.observed.keys()) == {"self1", "self2", "cross"}
        assert np.sum(engine.observed["self1"].counts) >= 10
        for cat, dists in (
            ("self1", self_distances(x1)),
            ("self2", self_distances(x2)),
            ("cross", cross_distances(x1, x2)),
        ):
            assert engine.breaks[cat].shape == (5, 2)
            assert engine.breaks[cat][-1, 1] == pytest.approx(1.1 * np.max(dists))

        info = engine.info(as_str=True)
        assert "Randomization information" in info
        assert "Number of overlapping bins" in info
        assert "None yet" in info

        with pytest.raises(ValueError, match="call run"):
            engine.result()

    def test_converges_at_start(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """With a tolerance above the largest possible deviation, the initial state is accepted."""

        x1, x2 = points_xy
        engine = randomize_by_self_and_other_detailed(x1, x2, grid_raster, bins=5, tol=2, random_state=42)

        assert engine.state == EngineState.CONVERGED
        assert engine.tries == 0
        assert engine.rand1.shape == (5, 2)
        assert engine.rand2.shape == (5, 2)

    def test_convergence(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Randomized points reproduce the observed distributions up to the tolerance, and fall in valid cells."""

        x1, x2 = points_xy
        engine = randomize_by_self_and_other_detailed(
            x1, x2, grid_raster, bins=5, tol=0.05, jitter=True, max_iterations=50000, random_state=42
        )
        r1, r2 = engine.result()

        assert engine.state == EngineState.CONVERGED
        assert engine.converged
        assert engine.tries <= 50000
        assert all(dev <= 0.05 for dev in engine.deviations.values())

        # Deviations recomputed from scratch on the returned points agree with the incremental ones
        for cat, dists in (
            ("self1", self_distances(r1)),
            ("self2", self_distances(r2)),
            ("cross", cross_distances(r1, r2)),
        ):
            distrib = hist_overlap(dists, engine.breaks[cat])
            assert np.array_equal(distrib.counts, engine.randomized[cat].counts)
            assert deviation(distrib.proportion, engine.observed[cat].proportion) == pytest.approx(
                engine.deviations[cat]
            )
            assert deviation(distrib.proportion, engine.observed[cat].proportion) <= 0.05

        # Cardinality and validity
        assert r1.shape == x1.shape and r2.shape == x2.shape
        mask = RasterMask(grid_raster)
        assert np.all(mask.contains(r1)) and np.all(mask.contains(r2))

        # Outputs are stored in the metadata
        assert engine._meta["outputs"]["state"] == EngineState.CONVERGED
        assert engine._meta["outputs"]["tries"] == engine.tries
        assert "Number of tries" in engine.info(as_str=True)

    def test_incremental_distances(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Distance matrices and counts updated at each accepted move match a full recomputation."""

        x1, x2 = points_xy
        engine = RandomizationEngine(x1, x2, grid_raster, bins=5, tol=1e-9, jitter=True, random_state=1)

        for _ in range(300):
            engine.step()

        assert engine.accepts > 0
        assert np.allclose(engine._dist_self1, randgeo.distance.point_distance(engine.rand1))
        assert np.allclose(engine._dist_self2, randgeo.distance.point_distance(engine.rand2))
        assert np.allclose(engine._dist_cross, randgeo.distance.point_distance(engine.rand1, engine.rand2))
        cross = hist_overlap(cross_distances(engine.rand1, engine.rand2), engine.breaks["cross"])
        assert np.array_equal(engine._counts["cross"], cross.counts)

    def test_monotonic_without_escape(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Without escape moves, the combined deviation never increases."""

        x1, x2 = points_xy
        engine = RandomizationEngine(
            x1, x2, grid_raster, bins=5, tol=1e-9, escape_every=None, record_history=True, random_state=42
        )

        for _ in range(500):
            engine.step()

        assert len(engine.history) == 500
        assert np.all(np.diff(engine.history) <= 0)

    def test_escape_moves(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Escape moves are always accepted."""

        x1, x2 = points_xy
        engine = RandomizationEngine(x1, x2, grid_raster, bins=5, tol=1e-9, escape_every=1, random_state=42)

        assert all(engine.step() for _ in range(50))
        assert engine.accepts == 50

    def test_deterministic(self, points_xy: PointsXY, half_raster: gu.Raster) -> None:
        """A fixed random state gives the same randomization."""

        x1, x2 = points_xy
        kwargs = {
            "bins": 5,
            "tol": 1e-9,
            "jitter": True,
            "max_iterations": 200,
            "best_effort": True,
            "record_history": True,
        }

        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            e1 = randomize_by_self_and_other_detailed(x1, x2, half_raster, random_state=7, **kwargs)
            e2 = randomize_by_self_and_other_detailed(x1, x2, half_raster, random_state=7, **kwargs)
            e3 = randomize_by_self_and_other_detailed(x1, x2, half_raster, random_state=8, **kwargs)

        assert np.array_equal(e1.rand1, e2.rand1)
        assert np.array_equal(e1.rand2, e2.rand2)
        assert e1.history == e2.history
        assert not np.array_equal(e1.rand1, e3.rand1)

        # Points are only placed in the western valid half
        assert np.all(e1.rand1[:, 0] < 5) and np.all(e1.rand2[:, 0] < 5)

    def test_history_on_request(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """The combined deviation of every try is only kept when requested."""

        x1, x2 = points_xy
        engine = RandomizationEngine(x1, x2, grid_raster, bins=5, tol=1e-9, random_state=42)

        for _ in range(20):
            engine.step()

        assert engine.tries == 20
        assert engine.history == []

    def test_verbose_is_advisory(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Verbose mode draws diagnostic panels but does not change the randomization."""

        x1, x2 = points_xy
        kwargs = {"bins": 5, "tol": 1e-9, "jitter": True, "max_iterations": 300, "best_effort": True}

        plt.close("all")
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            quiet = randomize_by_self_and_other_detailed(x1, x2, grid_raster, random_state=3, **kwargs)
            assert plt.get_fignums() == []
            loud = randomize_by_self_and_other_detailed(x1, x2, grid_raster, random_state=3, verbose=True, **kwargs)

        # One figure with the points and the three distributions
        assert len(plt.get_fignums()) == 1
        assert len(plt.gcf().axes) == 4
        plt.close("all")

        assert np.array_equal(quiet.rand1, loud.rand1)
        assert np.array_equal(quiet.rand2, loud.rand2)
        assert quiet.tries == loud.tries

    def test_degenerate_distance_mid_search(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """A distance function turning non-finite during the search stops the run, leaving it aborted."""

        x1, x2 = points_xy
        calls = {"n": 0}

        def failing_distance(point: np.ndarray, points: np.ndarray) -> np.ndarray:
            calls["n"] += 1
            dists = distance_haversine(point, points)
            if calls["n"] > 200:
                dists[:] = np.nan
            return dists

        engine = RandomizationEngine(
            x1, x2, grid_raster, bins=5, tol=1e-9, distance_func=failing_distance, random_state=42
        )
        with pytest.raises(DegenerateDistanceError, match="Non-finite distance"):
            engine.run()

        assert engine.state == EngineState.ABORTED
        assert engine.tries > 0
        assert engine._meta["outputs"]["state"] == EngineState.ABORTED
        assert engine._meta["outputs"]["tries"] == engine.tries

        # Points of the last accepted state are still available
        r1, r2 = engine.result()
        mask = RasterMask(grid_raster)
        assert np.all(mask.contains(r1)) and np.all(mask.contains(r2))

    @pytest.mark.parametrize(  # type: ignore
        "shape, bounds, x1, x2",
        [
            ((1, 10), (0, 0, 10, 1), [[1.5, 0.5], [7.5, 0.5]], [[3.5, 0.5], [8.5, 0.5]]),
            ((10, 1), (0, 0, 1, 10), [[0.5, 1.5], [0.5, 7.5]], [[0.5, 3.5], [0.5, 8.5]]),
        ],
    )
    def test_thin_raster(
        self,
        make_raster,  # type: ignore
        shape: tuple[int, int],
        bounds: tuple[float, float, float, float],
        x1: list[list[float]],
        x2: list[list[float]],
    ) -> None:
        """Rasters of a single row or column are valid masks."""

        raster = make_raster(np.ones(shape, dtype=bool), bounds, CRS.from_epsg(4326))
        engine = randomize_by_self_and_other_detailed(
            np.array(x1), np.array(x2), raster, bins=5, tol=2, jitter=True, random_state=42
        )

        assert engine.state == EngineState.CONVERGED
        assert engine.mask.valid.shape == shape
        assert np.all(engine.mask.contains(engine.rand1)) and np.all(engine.mask.contains(engine.rand2))

    def test_raster_mask_options(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Sampling options of a RasterMask are used, and conflicting options are rejected."""

        x1, x2 = points_xy

        with pytest.raises(InvalidInputError, match="jitter=True conflicts"):
            RandomizationEngine(x1, x2, RasterMask(grid_raster), jitter=True)
        with pytest.raises(InvalidInputError, match="area_weighted=False conflicts"):
            RandomizationEngine(x1, x2, RasterMask(grid_raster), area_weighted=False)

        # Matching or unset options use the mask as configured
        for kwargs in ({}, {"jitter": True}):
            engine = RandomizationEngine(x1, x2, RasterMask(grid_raster, jitter=True), random_state=42, **kwargs)
            engine._start()
            assert not np.allclose(engine.rand1 % 1, 0.5)

        engine = RandomizationEngine(x1, x2, RasterMask(grid_raster), random_state=42)
        engine._start()
        assert np.allclose(engine.rand1 % 1, 0.5)

    def test_max_iterations(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """The search is bounded, raising or returning with a warning."""

        x1, x2 = points_xy
        kwargs = {"bins": 20, "tol": 1e-9, "jitter": True, "max_iterations": 50, "random_state": 42}

        with pytest.raises(ConvergenceFailure, match="maximum number of tries") as e:
            randomize_by_self_and_other(x1, x2, grid_raster, **kwargs)
        assert e.value.tries == 50
        assert set(e.value.deviations.keys()) == {"self1", "self2", "cross"}

        with pytest.warns(UserWarning, match="Returning the current randomized points"):
            engine = randomize_by_self_and_other_detailed(x1, x2, grid_raster, best_effort=True, **kwargs)
        assert engine.state == EngineState.ABORTED
        assert engine.tries == 50
        r1, r2 = engine.result()
        assert r1.shape == (5, 2) and r2.shape == (5, 2)

    def test_timeout_and_cancel(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        x1, x2 = points_xy

        with pytest.raises(ConvergenceFailure, match="timeout"):
            randomize_by_self_and_other(x1, x2, grid_raster, tol=1e-9, timeout=1e-9, random_state=42)

        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ConvergenceFailure, match="cancelled") as e:
            randomize_by_self_and_other(x1, x2, grid_raster, tol=1e-9, cancel=cancel, random_state=42)
        assert e.value.tries == 0

    def test_annealing(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        x1, x2 = points_xy
        engine = randomize_by_self_and_other_detailed(
            x1,
            x2,
            grid_raster,
            bins=4,
            tol=0.2,
            jitter=True,
            acceptance=AnnealingAcceptance(temperature=0.05, cooling=0.999),
            max_iterations=100000,
            random_state=42,
        )

        assert engine.state == EngineState.CONVERGED
        assert "AnnealingAcceptance" in engine.info(as_str=True)

    def test_output_types(self, points_xy: PointsXY, grid_raster: gu.Raster) -> None:
        """Outputs have the same representation as inputs."""

        x1, x2 = points_xy
        df1 = pd.DataFrame({"lon": x1[:, 0], "lat": x1[:, 1], "id": range(5)})
        gdf2 = gpd.GeoDataFrame({"id": range(5)}, geometry=gpd.points_from_xy(x2[:, 0], x2[:, 1]), crs="EPSG:4326")

        r1, r2 = randomize_by_self_and_other(df1, gdf2, grid_raster, bins=5, tol=2, random_state=42)

        assert isinstance(r1, pd.DataFrame) and list(r1.columns) == ["lon", "lat", "id"]
        assert isinstance(r2, gpd.GeoDataFrame) and r2.crs == gdf2.crs
        assert list(r1["id"]) == list(range(5))
        assert len(r2) == 5

        r1_list, _ = randomize_by_self_and_other(x1.tolist(), x2, grid_raster, bins=5, tol=2, random_state=42)
        assert isinstance(r1_list, np.ndarray)

    def test_raster_as_path_and_mask(self, points_xy: PointsXY, half_raster: gu.Raster, tmp_path: Path) -> None:
        x1, x2 = points_xy
        path = str(tmp_path / "mask.tif")
        half_raster.save(path)

        r1, _ = randomize_by_self_and_other(x1, x2, path, bins=5, tol=2, random_state=42)
        assert np.all(r1[:, 0] < 5)

        r1, _ = randomize_by_self_and_other(x1, x2, RasterMask(half_raster), bins=5, tol=2, random_state=42)
        assert np.all(r1[:, 0] < 5)

    def test_projected(self, projected_raster: gu.Raster) -> None:
        """A custom distance function keeps points in their projected CRS."""

        x1 = np.array([[501500, 1500], [505500, 12500], [512500, 3500]])
        x2 = np.array([[518500, 18500], [502500, 9500], [509500, 15500]])

        engine = randomize_by_self_and_other_detailed(
            x1,
            x2,
            projected_raster,
            bins=5,
            tol=2,
            crs="EPSG:32633",
            distance_func=distance_euclidean,
            random_state=1,
        )

        assert engine.crs.to_epsg() == 32633
        assert np.all(RasterMask(projected_raster).contains(engine.rand1))

    def test_errors(
        self, points_xy: PointsXY, grid_raster: gu.Raster, empty_raster: gu.Raster, projected_raster: gu.Raster
    ) -> None:
        x1, x2 = points_xy

        with pytest.raises(InsufficientValidAreaError, match="no valid cell"):
            randomize_by_self_and_other(x1, x2, empty_raster)
        with pytest.raises(InvalidInputError, match="at least two points"):
            randomize_by_self_and_other(x1[:1], x2, grid_raster)
        with pytest.raises(InvalidInputError, match="at least two points"):
            randomize_by_self_and_other(x1, x2[:1], grid_raster)
        with pytest.raises(InvalidInputError, match="are not the same"):
            randomize_by_self_and_other(x1, x2, projected_raster)
        with pytest.raises(InvalidInputError, match="same coordinates"):
            randomize_by_self_and_other(np.ones((3, 2)), x2, grid_raster)
        with pytest.raises(InvalidInputError, match="Number of bins"):
            randomize_by_self_and_other(x1, x2, grid_raster, bins=1)
        with pytest.raises(InvalidInputError, match="Tolerance"):
            randomize_by_self_and_other(x1, x2, grid_raster, tol=0)
        with pytest.raises(InvalidInputError, match="Maximum number of tries"):
            randomize_by_self_and_other(x1, x2, grid_raster, max_iterations=0)
        with pytest.raises(InvalidInputError, match="Timeout"):
            randomize_by_self_and_other(x1, x2, grid_raster, timeout=-1)
        with pytest.raises(InvalidInputError, match="Acceptance"):
            randomize_by_self_and_other(x1, x2, grid_raster, acceptance="greedy")
        with pytest.raises(InvalidInputError, match="callable"):
            randomize_by_self_and_other(x1, x2, grid_raster, distance_func="haversine")
