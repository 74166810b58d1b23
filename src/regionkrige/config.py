# src/regionkrige/config.py
# SPDX-License-Identifier: MIT
"""
Fit/predict settings for the kriging engine.

:class:`KrigingConfig` is a frozen dataclass so a single instance can be
shared by every request of a process. It can be persisted as JSON next to
other run artifacts and re-loaded later.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Dict, Optional

import json
import math
import os

from .covariance import COVARIANCE_FUNCTIONS, DISTANCE_MODES
from .exceptions import ConfigurationError


_METHODS = ("ml", "reml")


@dataclass(frozen=True)
class KrigingConfig:
    """Settings shared by :class:`~regionkrige.kriging.SpatialPredictor`.

    Attributes
    ----------
    covfun :
        Isotropic correlation family (``"exponential"``, ``"matern32"``,
        ``"matern52"`` or ``"gaussian"``).
    distance :
        ``"sphere"`` (chordal distance on the sphere, in km) or ``"planar"``
        (Euclidean distance on raw lon/lat degrees; degraded mode for small
        regions only).
    method :
        ``"ml"`` (maximum likelihood) or ``"reml"`` (restricted ML).
    fixed_range :
        Hold the spatial range at this value instead of estimating it.
        Units follow ``distance`` (km or degrees).
    fixed_nugget :
        Hold the nugget-to-partial-sill ratio at this value. ``0.0`` gives
        an exact interpolator.
    min_observations :
        Minimum number of complete observations accepted by ``fit``.
    rcond :
        Reciprocal condition estimate (from the Cholesky diagonal) below
        which the covariance matrix is treated as singular.
    max_iter, tol :
        Optimiser limits. Both are fixed so fits are reproducible.
    earth_radius_km :
        Sphere radius used for ``distance="sphere"``.
    batch_size :
        Number of prediction locations processed per block.
    verbose :
        Show ``tqdm`` progress bars during prediction and cross-validation.
    """

    covfun: str = "exponential"
    distance: str = "sphere"
    method: str = "ml"
    fixed_range: Optional[float] = None
    fixed_nugget: Optional[float] = None
    min_observations: int = 2
    rcond: float = 1e-12
    max_iter: int = 200
    tol: float = 1e-9
    earth_radius_km: float = 6371.0088
    batch_size: int = 5000
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.covfun not in COVARIANCE_FUNCTIONS:
            raise ConfigurationError(
                f"Unknown covfun {self.covfun!r}; "
                f"expected one of {sorted(COVARIANCE_FUNCTIONS)}."
            )
        if self.distance not in DISTANCE_MODES:
            raise ConfigurationError(
                f"Unknown distance {self.distance!r}; expected one of {list(DISTANCE_MODES)}."
            )
        if self.method not in _METHODS:
            raise ConfigurationError(
                f"Unknown method {self.method!r}; expected one of {list(_METHODS)}."
            )
        if self.fixed_range is not None and not (
            math.isfinite(self.fixed_range) and self.fixed_range > 0
        ):
            raise ConfigurationError("fixed_range must be a positive finite number.")
        if self.fixed_nugget is not None and not (
            math.isfinite(self.fixed_nugget) and self.fixed_nugget >= 0
        ):
            raise ConfigurationError("fixed_nugget must be a non-negative finite number.")
        if int(self.min_observations) < 2:
            raise ConfigurationError("min_observations must be at least 2.")
        if not (0.0 < self.rcond < 1.0):
            raise ConfigurationError("rcond must lie in (0, 1).")
        if int(self.max_iter) < 1 or not (self.tol > 0):
            raise ConfigurationError("max_iter must be >= 1 and tol > 0.")
        if not (self.earth_radius_km > 0):
            raise ConfigurationError("earth_radius_km must be positive.")
        if int(self.batch_size) < 1:
            raise ConfigurationError("batch_size must be >= 1.")

    # -----------------------------------------------------------------
    # (de)serialisation
    # -----------------------------------------------------------------

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict) -> "KrigingConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**d)

    @classmethod
    def load(cls, path: str) -> "KrigingConfig":
        """Load a config from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def save(self, path: str) -> None:
        """Save the config to a JSON file."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)


__all__ = ["KrigingConfig"]
