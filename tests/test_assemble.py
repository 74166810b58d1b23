# tests/test_assemble.py
import numpy as np
import pandas as pd
import pytest

from regionkrige.assemble import RESULT_COLUMNS, assemble_result
from regionkrige.boundary import RegionBoundary
from regionkrige.exceptions import InvariantViolation
from regionkrige.grid import build_grid


@pytest.fixture
def grid() -> pd.DataFrame:
    """4x3 lattice over a triangle, so some points fall outside."""
    tri = RegionBoundary.from_rings([[(0, 0), (3, 0), (0, 2)]])
    return build_grid(tri, 4, 3)


def test_columns_and_order_follow_grid(grid):
    preds = np.arange(len(grid), dtype=float)
    out = assemble_result(grid, preds)
    assert list(out.columns) == RESULT_COLUMNS
    assert len(out) == len(grid)
    np.testing.assert_array_equal(out["longitude"], grid["longitude"])
    np.testing.assert_array_equal(out["latitude"], grid["latitude"])
    np.testing.assert_array_equal(out["in_region"], grid["in_region"])


def test_outside_points_are_masked_whatever_was_predicted(grid):
    assert (~grid["in_region"]).any()
    preds = np.full(len(grid), 7.5)
    out = assemble_result(grid, preds)
    inside = out["in_region"].to_numpy()
    assert out.loc[~inside, "interpolated_value"].isna().all()
    assert (out.loc[inside, "interpolated_value"] == 7.5).all()


def test_missing_predictions_inside_stay_missing(grid):
    preds = np.ones(len(grid))
    preds[0] = np.nan  # (0, 0) is a vertex, hence inside
    out = assemble_result(grid, preds)
    assert bool(out.loc[0, "in_region"])
    assert np.isnan(out.loc[0, "interpolated_value"])


def test_length_mismatch_raises(grid):
    with pytest.raises(InvariantViolation):
        assemble_result(grid, np.zeros(len(grid) - 1))


def test_accepts_lists_and_series(grid):
    preds = list(range(len(grid)))
    a = assemble_result(grid, preds)
    b = assemble_result(grid, pd.Series(preds, dtype=float))
    pd.testing.assert_frame_equal(a, b)
