# src/regionkrige/grid.py
# SPDX-License-Identifier: MIT
"""
Regular prediction lattices restricted to a region.

:func:`build_grid` spans the bounding box of a
:class:`~regionkrige.boundary.RegionBoundary` with ``resolution_x`` evenly
spaced longitudes and ``resolution_y`` evenly spaced latitudes (both edges
included) and tags every lattice point with its region membership.

Row order
---------
Longitude varies fastest: the first ``resolution_x`` rows are the whole
first (southernmost) latitude row, west to east, then the next latitude,
and so on. ``values.reshape(resolution_y, resolution_x)`` therefore gives an
image with latitude on the first axis.
"""

from __future__ import annotations

from typing import Tuple

import numbers

import numpy as np
import pandas as pd

from .boundary import RegionBoundary
from .exceptions import ValidationError


__all__ = ["GRID_COLUMNS", "validate_resolution", "build_grid", "grid_axes"]


GRID_COLUMNS = ["longitude", "latitude", "in_region"]


def validate_resolution(value, name: str) -> int:
    """Return ``value`` as a positive ``int`` or raise :class:`ValidationError`.

    Accepted: Python/NumPy integers and floats with an integral value.
    Rejected: booleans, strings, sequences/arrays, non-integral or
    non-finite numbers and anything below 1.
    """
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise ValidationError(f"Invalid {name}: {name} must be a single integer, got {value!r}.")
    if isinstance(value, numbers.Integral):
        out = int(value)
    else:
        f = float(value)
        if not f.is_integer():
            raise ValidationError(f"Invalid {name}: {name} must be integral, got {value!r}.")
        out = int(f)
    if out < 1:
        raise ValidationError(f"Invalid {name}: {name} must be >= 1, got {value!r}.")
    return out


def grid_axes(
    boundary: RegionBoundary, resolution_x: int, resolution_y: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Evenly spaced longitudes and latitudes over the boundary's bbox."""
    lon_min, lat_min, lon_max, lat_max = boundary.bbox
    longitudes = np.linspace(lon_min, lon_max, resolution_x)
    latitudes = np.linspace(lat_min, lat_max, resolution_y)
    return longitudes, latitudes


def build_grid(
    boundary: RegionBoundary,
    resolution_x: int = 50,
    resolution_y: int = 50,
) -> pd.DataFrame:
    """Build the lattice of candidate prediction points.

    Parameters
    ----------
    boundary :
        Region of interest.
    resolution_x, resolution_y :
        Number of longitudes and latitudes (positive integers).

    Returns
    -------
    DataFrame
        ``resolution_x * resolution_y`` rows with columns
        ``["longitude", "latitude", "in_region"]`` (see module docstring
        for the row order).
    """
    nx = validate_resolution(resolution_x, "resolution_x")
    ny = validate_resolution(resolution_y, "resolution_y")
    if not isinstance(boundary, RegionBoundary):
        raise ValidationError("boundary must be a RegionBoundary.")

    longitudes, latitudes = grid_axes(boundary, nx, ny)
    lon_mesh, lat_mesh = np.meshgrid(longitudes, latitudes)  # shape (ny, nx)
    lon_flat = lon_mesh.ravel()
    lat_flat = lat_mesh.ravel()

    return pd.DataFrame(
        {
            "longitude": lon_flat,
            "latitude": lat_flat,
            "in_region": boundary.contains(lon_flat, lat_flat).astype(bool),
        },
        columns=GRID_COLUMNS,
    )
