# src/regionkrige/assemble.py
# SPDX-License-Identifier: MIT
"""Merge grid geometry, region mask and predictions into the result table."""

from __future__ import annotations

import numpy as np
import pandas as pd

from .exceptions import InvariantViolation


__all__ = ["RESULT_COLUMNS", "assemble_result"]


RESULT_COLUMNS = ["interpolated_value", "longitude", "latitude", "in_region"]


def assemble_result(grid: pd.DataFrame, predictions) -> pd.DataFrame:
    """Zip grid rows with predictions and mask everything outside the region.

    Parameters
    ----------
    grid :
        Grid table with ``longitude``, ``latitude`` and ``in_region``.
    predictions :
        One value per grid row, in grid order.

    Returns
    -------
    DataFrame
        Columns :data:`RESULT_COLUMNS`, one row per grid row. The value is
        ``NaN`` wherever ``in_region`` is false, whatever was predicted
        there, so renderers can leave those cells transparent.
    """
    values = np.asarray(predictions, dtype=float).ravel()
    if values.size != len(grid):
        raise InvariantViolation(
            f"Got {values.size} predictions for {len(grid)} grid points."
        )
    in_region = grid["in_region"].to_numpy(dtype=bool)
    out = pd.DataFrame(
        {
            "interpolated_value": np.where(in_region, values, np.nan),
            "longitude": grid["longitude"].to_numpy(dtype=float),
            "latitude": grid["latitude"].to_numpy(dtype=float),
            "in_region": in_region,
        },
        columns=RESULT_COLUMNS,
    )
    return out
