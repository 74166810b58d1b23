# tests/test_grid.py
import numpy as np
import pandas as pd
import pytest

from regionkrige.boundary import RegionBoundary
from regionkrige.exceptions import ValidationError
from regionkrige.grid import GRID_COLUMNS, build_grid, validate_resolution


# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------


@pytest.fixture
def square() -> RegionBoundary:
    return RegionBoundary.rectangle(0.0, 0.0, 10.0, 10.0)


@pytest.fixture
def l_shape() -> RegionBoundary:
    """The 10x10 square without its upper-right quadrant."""
    return RegionBoundary.from_rings(
        [[(0, 0), (10, 0), (10, 5), (5, 5), (5, 10), (0, 10)]]
    )


# ---------------------------------------------------------------------
# Shape, order and determinism
# ---------------------------------------------------------------------


@pytest.mark.parametrize("nx, ny", [(1, 1), (2, 7), (13, 4), (50, 50)])
def test_grid_size_is_product_of_resolutions(square, nx, ny):
    grid = build_grid(square, nx, ny)
    assert len(grid) == nx * ny
    assert list(grid.columns) == GRID_COLUMNS
    assert grid["in_region"].dtype == bool


def test_scenario_rectangle_3x3_all_inside(square):
    """A 3x3 grid on the full rectangle hits corners, edge midpoints and centre."""
    grid = build_grid(square, 3, 3)
    assert len(grid) == 9
    assert grid["in_region"].all()
    pts = set(zip(grid["longitude"], grid["latitude"]))
    assert pts == {(x, y) for x in (0.0, 5.0, 10.0) for y in (0.0, 5.0, 10.0)}


def test_longitude_varies_fastest(square):
    grid = build_grid(square, 3, 2)
    assert grid["longitude"].tolist() == [0.0, 5.0, 10.0, 0.0, 5.0, 10.0]
    assert grid["latitude"].tolist() == [0.0, 0.0, 0.0, 10.0, 10.0, 10.0]
    image = grid["longitude"].to_numpy().reshape(2, 3)
    assert np.array_equal(image[0], [0.0, 5.0, 10.0])


def test_grid_is_deterministic(l_shape):
    a = build_grid(l_shape, 17, 9)
    b = build_grid(l_shape, 17, 9)
    pd.testing.assert_frame_equal(a, b, check_exact=True)


def test_grid_spans_bbox_edges():
    region = RegionBoundary.rectangle(-124.7, 24.5, -67.0, 49.4)
    grid = build_grid(region, 5, 4)
    assert grid["longitude"].min() == -124.7
    assert grid["longitude"].max() == -67.0
    assert grid["latitude"].min() == 24.5
    assert grid["latitude"].max() == 49.4


# ---------------------------------------------------------------------
# Region membership
# ---------------------------------------------------------------------


def test_excluded_quadrant_is_out_of_region(l_shape):
    grid = build_grid(l_shape, 11, 11)
    excluded = (grid["longitude"] > 5) & (grid["latitude"] > 5)
    assert not grid.loc[excluded, "in_region"].any()
    assert grid.loc[~excluded, "in_region"].all()


def test_half_region_excludes_points_east_of_5(square):
    grid = build_grid(square, 11, 5)
    west_half = RegionBoundary.rectangle(0.0, 0.0, 5.0, 10.0)
    inside = west_half.contains(grid["longitude"], grid["latitude"])
    assert not inside[grid["longitude"].to_numpy() > 5].any()
    assert inside[grid["longitude"].to_numpy() <= 5].all()


def test_multi_ring_grid_masks_gap_between_islands():
    islands = RegionBoundary.from_rings(
        [
            [(0, 0), (2, 0), (2, 2), (0, 2)],
            [(8, 8), (10, 8), (10, 10), (8, 10)],
        ]
    )
    grid = build_grid(islands, 11, 11)
    lon, lat = grid["longitude"], grid["latitude"]
    expected = ((lon <= 2) & (lat <= 2)) | ((lon >= 8) & (lat >= 8))
    assert grid["in_region"].tolist() == expected.tolist()


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------


@pytest.mark.parametrize(
    "bad",
    [0, -3, 2.5, float("nan"), float("inf"), "10", [10], (3,), None, True, np.array([3, 4])],
)
def test_invalid_resolution_raises(square, bad):
    with pytest.raises(ValidationError):
        build_grid(square, bad, 5)
    with pytest.raises(ValidationError):
        build_grid(square, 5, bad)


@pytest.mark.parametrize("good, expected", [(3, 3), (3.0, 3), (np.int64(4), 4), (np.float32(2.0), 2)])
def test_integral_resolutions_are_accepted(good, expected):
    assert validate_resolution(good, "resolution_x") == expected


def test_boundary_type_is_checked():
    with pytest.raises(ValidationError):
        build_grid([(0, 0), (1, 0), (1, 1)], 3, 3)
