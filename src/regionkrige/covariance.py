# src/regionkrige/covariance.py
# SPDX-License-Identifier: MIT
"""
Distances and isotropic correlation functions.

Locations are ``(n, 2)`` arrays of ``[longitude, latitude]`` in degrees.

Distance modes
--------------
``"sphere"``
    Chordal distance (km) between points on a sphere of radius
    ``earth_radius_km``, computed from the great-circle angle returned by
    :func:`sklearn.metrics.pairwise.haversine_distances`. Chordal distance
    is monotone in the great-circle distance, and every correlation family
    below stays positive definite on the sphere when evaluated on it.
``"planar"``
    Euclidean distance on raw lon/lat degrees. Only reasonable for small
    regions far from the poles; it is never used unless asked for.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np
from sklearn.metrics.pairwise import euclidean_distances, haversine_distances


DISTANCE_MODES = ("sphere", "planar")


def _exponential(h: np.ndarray) -> np.ndarray:
    return np.exp(-h)


def _matern32(h: np.ndarray) -> np.ndarray:
    s = np.sqrt(3.0) * h
    return (1.0 + s) * np.exp(-s)


def _matern52(h: np.ndarray) -> np.ndarray:
    s = np.sqrt(5.0) * h
    return (1.0 + s + s * s / 3.0) * np.exp(-s)


def _gaussian(h: np.ndarray) -> np.ndarray:
    return np.exp(-(h * h))


COVARIANCE_FUNCTIONS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "exponential": _exponential,
    "matern32": _matern32,
    "matern52": _matern52,
    "gaussian": _gaussian,
}


def pairwise_distances(
    a: np.ndarray,
    b: np.ndarray,
    *,
    mode: str = "sphere",
    earth_radius_km: float = 6371.0088,
) -> np.ndarray:
    """Distance matrix between two sets of ``[lon, lat]`` locations.

    Parameters
    ----------
    a, b :
        Arrays of shape ``(n, 2)`` and ``(m, 2)`` in degrees.
    mode :
        ``"sphere"`` or ``"planar"`` (see module docstring).
    earth_radius_km :
        Sphere radius for ``mode="sphere"``.

    Returns
    -------
    np.ndarray
        ``(n, m)`` matrix, km for ``"sphere"`` and degrees for ``"planar"``.
    """
    a = np.asarray(a, dtype=float).reshape(-1, 2)
    b = np.asarray(b, dtype=float).reshape(-1, 2)
    if mode == "planar":
        return euclidean_distances(a, b)
    if mode != "sphere":
        raise ValueError(f"Unknown distance mode {mode!r}.")
    # haversine_distances wants [lat, lon] in radians
    angle = haversine_distances(np.radians(a[:, ::-1]), np.radians(b[:, ::-1]))
    return 2.0 * earth_radius_km * np.sin(angle / 2.0)


def correlation(distances: np.ndarray, range_: float, covfun: str = "exponential") -> np.ndarray:
    """Evaluate the correlation family ``covfun`` at ``distances / range_``."""
    return COVARIANCE_FUNCTIONS[covfun](np.asarray(distances, dtype=float) / float(range_))


__all__ = [
    "COVARIANCE_FUNCTIONS",
    "DISTANCE_MODES",
    "pairwise_distances",
    "correlation",
]
