import math
import time

import numpy as np
import pytest

from conftest_utils import RecordingFetcher, make_raster
from elevplot.compute import (
    MILES_PER_DEGREE,
    build_grid,
    compute_bounds,
    flatten_raster,
    reshape_samples,
    run,
)
from elevplot.errors import (
    InvalidInputError,
    NoDataError,
    RetrievalError,
    ShapeMismatchError,
)
from elevplot.models import GeoBoundingBox, QueryInput, RasterSamples
from elevplot.tiles import DEFAULT_ZOOM, PRJ_LONGLAT_WGS84


def _samples(n: int, distinct_keys: int) -> RasterSamples:
    index = np.arange(n, dtype=np.float64)
    return RasterSamples(row_keys=index % distinct_keys, elevations=index)


# ---------------------------------------------------------------------------
# compute_bounds
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "lat, lon, radius",
    [
        (45.373601, -121.695942, 1.0),
        (0.0, 0.0, 0.1),
        (-33.9, 151.2, 10.0),
        (89.0, 179.0, 5.5),
        (-90.0, -180.0, 2.0),
    ],
)
def test_bounds_square_in_degree_space(lat, lon, radius):
    bounds = compute_bounds(lat, lon, radius)

    assert bounds.max_lat >= bounds.min_lat
    assert bounds.max_lon >= bounds.min_lon
    expected = 2 * radius / 69
    assert math.isclose(bounds.max_lat - bounds.min_lat, expected, rel_tol=1e-9)
    assert math.isclose(bounds.max_lon - bounds.min_lon, expected, rel_tol=1e-9)


def test_bounds_zero_radius_is_degenerate():
    bounds = compute_bounds(45.0, -121.0, 0)

    assert bounds.max_lat == bounds.min_lat == 45.0
    assert bounds.max_lon == bounds.min_lon == -121.0


def test_bounds_one_degree_at_69_miles():
    assert MILES_PER_DEGREE == 69
    assert compute_bounds(0, 0, 69) == GeoBoundingBox(
        max_lat=1.0, min_lat=-1.0, max_lon=1.0, min_lon=-1.0
    )


def test_bounds_ignore_latitude_for_longitude_span():
    """Flat miles-per-degree on both axes, even near the pole."""
    near_equator = compute_bounds(0.0, 10.0, 3.0)
    near_pole = compute_bounds(80.0, 10.0, 3.0)

    assert math.isclose(
        near_equator.max_lon - near_equator.min_lon,
        near_pole.max_lon - near_pole.min_lon,
    )


@pytest.mark.parametrize(
    "lat, lon, radius, match",
    [
        (90.5, 0.0, 1.0, "Latitude"),
        (-91.0, 0.0, 1.0, "Latitude"),
        (0.0, 180.1, 1.0, "Longitude"),
        (0.0, -200.0, 1.0, "Longitude"),
        (0.0, 0.0, -0.5, "Radius"),
        (float("nan"), 0.0, 1.0, "Non-finite"),
        (0.0, 0.0, float("inf"), "Non-finite"),
    ],
)
def test_bounds_reject_invalid_input(lat, lon, radius, match):
    with pytest.raises(InvalidInputError, match=match):
        compute_bounds(lat, lon, radius)


def test_bounds_accept_full_longitude_range():
    """Longitude is not limited to the latitude range."""
    bounds = compute_bounds(45.0, -121.7, 1.0)
    assert bounds.min_lon < -121.0


def test_corners_order():
    bounds = GeoBoundingBox(max_lat=2.0, min_lat=1.0, max_lon=4.0, min_lon=3.0)

    assert bounds.corners() == ((4.0, 2.0), (4.0, 1.0), (3.0, 2.0), (3.0, 1.0))


# ---------------------------------------------------------------------------
# reshape_samples
# ---------------------------------------------------------------------------
class TestReshape:
    def test_twelve_samples_three_rows(self):
        grid = reshape_samples(_samples(12, 3))

        assert grid.shape == (3, 4)

    def test_fills_column_by_column(self):
        grid = reshape_samples(_samples(12, 3))

        np.testing.assert_array_equal(grid[:, 0], [0.0, 1.0, 2.0])
        np.testing.assert_array_equal(grid[:, 1], [3.0, 4.0, 5.0])
        np.testing.assert_array_equal(grid[0, :], [0.0, 3.0, 6.0, 9.0])

    def test_deterministic(self):
        samples = _samples(12, 3)

        first = reshape_samples(samples)
        second = reshape_samples(samples)

        assert first.tobytes() == second.tobytes()
        assert first.dtype == np.float64

    def test_uneven_count_raises(self):
        with pytest.raises(ShapeMismatchError, match="10 samples"):
            reshape_samples(_samples(10, 3))

    def test_empty_raises_no_data(self):
        with pytest.raises(NoDataError):
            reshape_samples(RasterSamples(np.empty(0), np.empty(0)))

    def test_row_count_independent_of_key_order(self):
        keys = [5.0, -1.0, 2.0] * 2
        samples = RasterSamples(np.array(keys), np.arange(6, dtype=np.float64))

        grid = reshape_samples(samples)

        np.testing.assert_array_equal(grid, [[0.0, 3.0], [1.0, 4.0], [2.0, 5.0]])

    def test_mismatched_array_lengths_raise(self):
        samples = RasterSamples(np.zeros(4), np.zeros(6))

        with pytest.raises(ShapeMismatchError, match="4 row keys"):
            reshape_samples(samples)


# ---------------------------------------------------------------------------
# flatten_raster
# ---------------------------------------------------------------------------
def test_flatten_walks_rows_with_x_as_key():
    raster = make_raster([[1, 2, 3], [4, 5, 6]], xs=[10.0, 20.0, 30.0])

    samples = flatten_raster(raster)

    np.testing.assert_array_equal(samples.row_keys, [10.0, 20.0, 30.0] * 2)
    np.testing.assert_array_equal(samples.elevations, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])


def test_flatten_rejects_mismatched_coordinates():
    raster = make_raster([[1, 2, 3]], xs=[0.0, 1.0])

    with pytest.raises(ShapeMismatchError):
        flatten_raster(raster)


def test_flatten_and_reshape_radius_ten_raster():
    """A raster the size of a 10-mile query at z=14 stays in numpy end to end."""
    n_rows, n_cols = 3500, 5000
    values = np.arange(n_rows * n_cols, dtype=np.float64).reshape(n_rows, n_cols)
    raster = make_raster(values, xs=np.linspace(-121.84, -121.55, n_cols))

    started = time.perf_counter()
    samples = flatten_raster(raster)
    grid = reshape_samples(samples)
    elapsed = time.perf_counter() - started

    assert isinstance(samples.elevations, np.ndarray)
    assert grid.shape == (n_cols, n_rows)
    assert grid[0, 1] == values[1, 0]
    assert grid[-1, -1] == values[-1, -1]
    assert elapsed < 20.0


# ---------------------------------------------------------------------------
# build_grid
# ---------------------------------------------------------------------------
class TestBuildGrid:
    bounds = compute_bounds(45.373601, -121.695942, 1.0)

    def test_zero_raster_gives_zero_grid(self):
        fetch = RecordingFetcher(make_raster(np.zeros((4, 4))))

        grid = build_grid(self.bounds, fetch=fetch)

        assert grid.shape == (4, 4)
        assert not grid.any()

    def test_calls_collaborator_with_fixed_parameters(self):
        fetch = RecordingFetcher(make_raster(np.zeros((4, 4))))

        build_grid(self.bounds, fetch=fetch)

        assert fetch.calls == [
            {
                "locations": self.bounds.corners(),
                "prj": PRJ_LONGLAT_WGS84,
                "z": DEFAULT_ZOOM,
                "clip": "bbox",
                "verbose": False,
            }
        ]
        assert DEFAULT_ZOOM == 14

    def test_grid_rows_follow_raster_columns(self):
        values = np.arange(6, dtype=np.float64).reshape(2, 3)
        fetch = RecordingFetcher(make_raster(values))

        grid = build_grid(self.bounds, fetch=fetch)

        np.testing.assert_array_equal(grid, values.T)

    def test_empty_raster_raises_no_data(self):
        fetch = RecordingFetcher(make_raster(np.empty((0, 0))))

        with pytest.raises(NoDataError):
            build_grid(self.bounds, fetch=fetch)

    def test_missing_cells_raise_no_data(self):
        values = np.zeros((3, 3))
        values[1, 1] = np.nan
        fetch = RecordingFetcher(make_raster(values))

        with pytest.raises(NoDataError, match="missing"):
            build_grid(self.bounds, fetch=fetch)

    def test_retrieval_error_propagates(self):
        fetch = RecordingFetcher(error=RetrievalError("rate limited"))

        with pytest.raises(RetrievalError, match="rate limited"):
            build_grid(self.bounds, fetch=fetch)
        assert len(fetch.calls) == 1


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------
def test_run_returns_terrain_data():
    fetch = RecordingFetcher(make_raster(np.full((3, 5), 1200.0)))
    query = QueryInput(center_lat=45.373601, center_lon=-121.695942, radius_miles=1.0)

    terrain = run(query, fetch=fetch)

    assert terrain.query is query
    assert terrain.bounds == compute_bounds(45.373601, -121.695942, 1.0)
    assert terrain.grid.shape == (5, 3)
    assert terrain.zoom == DEFAULT_ZOOM
    assert (terrain.grid == 1200.0).all()


def test_run_validates_before_fetching():
    fetch = RecordingFetcher(make_raster(np.zeros((2, 2))))

    with pytest.raises(InvalidInputError):
        run(QueryInput(center_lat=123.0, center_lon=0.0, radius_miles=1.0), fetch=fetch)
    assert fetch.calls == []


def test_run_passes_zoom_override():
    fetch = RecordingFetcher(make_raster(np.zeros((2, 2))))

    terrain = run(QueryInput(0.0, 0.0, 1.0), zoom=10, fetch=fetch)

    assert fetch.calls[0]["z"] == 10
    assert terrain.zoom == 10
