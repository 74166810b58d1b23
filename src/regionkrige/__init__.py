"""
regionkrige
===========

Kriging interpolation of sparse point observations onto a regular grid
masked to a region boundary.

Typical workflow
----------------
1. Describe the region with a :class:`RegionBoundary` (one or more rings;
   even-odd rule, points on an edge are inside).
2. Build the prediction lattice with :func:`build_grid`.
3. Call :func:`interpolate` with a ``"response ~ predictors"``
   specification, the observation table and the grid.

Main entry points
-----------------
- :class:`RegionBoundary`, :class:`GeoPoint`
- :func:`build_grid`
- :func:`parse_design`, :class:`DesignBuilder`
- :class:`SpatialPredictor`, :class:`FittedModel`, :class:`KrigingConfig`
- :func:`assemble_result`
- :func:`interpolate`
- :func:`attach_covariate`, :func:`memoize_provider`
- :class:`StationCatalog`, :func:`validate_station_id`
- :func:`cross_validate_loo`, :func:`regression_metrics`

Example
-------
    >>> import pandas as pd
    >>> from regionkrige import RegionBoundary, build_grid, interpolate
    >>> region = RegionBoundary.rectangle(-100.0, 30.0, -90.0, 40.0)
    >>> grid = build_grid(region, resolution_x=40, resolution_y=40)
    >>> result = interpolate(
    ...     "avg_temp ~ longitude + latitude",
    ...     observations=stations_march,
    ...     grid=grid,
    ... )
    >>> result.columns.tolist()
    ['interpolated_value', 'longitude', 'latitude', 'in_region']
"""

from __future__ import annotations

# Public version (update in sync with pyproject.toml)
__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Errors and configuration
# ---------------------------------------------------------------------------

from .exceptions import (
    RegionKrigeError,
    ValidationError,
    NotFoundError,
    ConfigurationError,
    ModelFitError,
    InvariantViolation,
)
from .config import KrigingConfig

# ---------------------------------------------------------------------------
# Core interpolation pipeline
# ---------------------------------------------------------------------------

from .boundary import GeoPoint, RegionBoundary
from .grid import build_grid
from .design import DesignBuilder, DesignSpec, Transform, Variable, parse_design
from .kriging import FittedModel, SpatialPredictor
from .assemble import assemble_result
from .pipeline import interpolate

# ---------------------------------------------------------------------------
# Collaborators and evaluation
# ---------------------------------------------------------------------------

from .elevation import attach_covariate, memoize_provider
from .stations import StationCatalog, validate_station_id
from .metrics import kge, nse, regression_metrics
from .validation import cross_validate_loo

__all__ = [
    "__version__",
    # errors / config
    "RegionKrigeError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "ModelFitError",
    "InvariantViolation",
    "KrigingConfig",
    # core
    "GeoPoint",
    "RegionBoundary",
    "build_grid",
    "DesignBuilder",
    "DesignSpec",
    "Transform",
    "Variable",
    "parse_design",
    "FittedModel",
    "SpatialPredictor",
    "assemble_result",
    "interpolate",
    # collaborators / evaluation
    "attach_covariate",
    "memoize_provider",
    "StationCatalog",
    "validate_station_id",
    "kge",
    "nse",
    "regression_metrics",
    "cross_validate_loo",
]
