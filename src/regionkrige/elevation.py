# src/regionkrige/elevation.py
# SPDX-License-Identifier: MIT
"""
Adapters for external covariate providers (typically an elevation lookup).

A provider is any callable ``provider(longitudes, latitudes)`` returning a
sequence of floats parallel to its inputs. Providers may be slow or
network-bound, so :func:`attach_covariate` calls them exactly once per
distinct location set, and :func:`memoize_provider` adds an on-disk cache
(:class:`joblib.Memory`) shared between runs.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Memory

from .exceptions import InvariantViolation, ValidationError


__all__ = ["CovariateProvider", "attach_covariate", "memoize_provider"]


CovariateProvider = Callable[[np.ndarray, np.ndarray], Sequence[float]]


def attach_covariate(
    frame: pd.DataFrame,
    provider: CovariateProvider,
    *,
    name: str = "elevation",
    lon_col: str = "longitude",
    lat_col: str = "latitude",
) -> pd.DataFrame:
    """Return a copy of ``frame`` with a provider-derived covariate column.

    Duplicate coordinates are looked up once. The provider is called a
    single time with all distinct ``(lon, lat)`` pairs; rows with a missing
    coordinate get ``NaN``.

    Parameters
    ----------
    frame :
        Table holding ``lon_col`` and ``lat_col``.
    provider :
        Covariate lookup (see module docstring).
    name :
        Name of the new column.
    lon_col, lat_col :
        Coordinate columns in ``frame``.

    Returns
    -------
    DataFrame
        Copy of ``frame`` with column ``name`` (overwritten if present).
    """
    missing = [c for c in (lon_col, lat_col) if c not in frame.columns]
    if missing:
        raise ValidationError(f"Table is missing coordinate columns: {missing}")

    out = frame.copy()
    coords = out[[lon_col, lat_col]].astype(float)
    # rows without coordinates are never sent to the provider
    uniq = coords[np.isfinite(coords.to_numpy()).all(axis=1)]
    uniq = uniq.drop_duplicates().reset_index(drop=True)
    if uniq.empty:
        out[name] = np.full(len(out), np.nan)
        return out

    values = np.asarray(
        provider(uniq[lon_col].to_numpy(), uniq[lat_col].to_numpy()), dtype=float
    ).ravel()
    if values.size != len(uniq):
        raise InvariantViolation(
            f"Covariate provider returned {values.size} values for {len(uniq)} locations."
        )
    uniq[name] = values
    looked_up = coords.merge(uniq, on=[lon_col, lat_col], how="left", sort=False)
    out[name] = looked_up[name].to_numpy()
    return out


def memoize_provider(
    provider: CovariateProvider, cache_dir: Optional[str]
) -> CovariateProvider:
    """Wrap ``provider`` with a :class:`joblib.Memory` disk cache.

    ``cache_dir=None`` disables caching but keeps the same call signature.
    The provider must be a module-level function so joblib can hash it.
    """
    cached = Memory(location=cache_dir, verbose=0).cache(provider)

    def _lookup(longitudes, latitudes):
        return cached(
            np.asarray(longitudes, dtype=float), np.asarray(latitudes, dtype=float)
        )

    return _lookup
