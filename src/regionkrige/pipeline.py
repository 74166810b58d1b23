# src/regionkrige/pipeline.py
# SPDX-License-Identifier: MIT
"""
End-to-end interpolation: observations + grid -> masked prediction table.

Stages, in order::

    parse spec -> (optional) attach provider covariate
               -> resolve grid predictors      (fails fast, no linear algebra)
               -> fitting design (drops incomplete rows)
               -> SpatialPredictor.fit
               -> prediction design -> SpatialPredictor.predict
               -> assemble_result (region mask)
"""

from __future__ import annotations

from typing import Optional, Tuple, Union

import logging

import numpy as np
import pandas as pd

from .assemble import assemble_result
from .config import KrigingConfig
from .design import DesignBuilder, DesignSpec, parse_design
from .elevation import CovariateProvider, attach_covariate
from .exceptions import ValidationError
from .grid import GRID_COLUMNS
from .kriging import FittedModel, SpatialPredictor


logger = logging.getLogger(__name__)

__all__ = ["interpolate", "validate_grid", "validate_observations"]


def validate_grid(grid: pd.DataFrame) -> None:
    """Check that ``grid`` looks like the output of :func:`build_grid`."""
    if not isinstance(grid, pd.DataFrame):
        raise ValidationError("Invalid grid: grid must be a DataFrame.")
    missing = [c for c in GRID_COLUMNS if c not in grid.columns]
    if missing:
        raise ValidationError(f"Invalid grid: missing columns {missing}.")
    if grid.empty:
        raise ValidationError("Invalid grid: grid must have at least one point.")


def validate_observations(observations: pd.DataFrame, lon_col: str, lat_col: str) -> None:
    if not isinstance(observations, pd.DataFrame):
        raise ValidationError("Invalid observations: observations must be a DataFrame.")
    missing = [c for c in (lon_col, lat_col) if c not in observations.columns]
    if missing:
        raise ValidationError(f"Invalid observations: missing coordinate columns {missing}.")


def interpolate(
    spec: Union[str, DesignSpec],
    observations: pd.DataFrame,
    grid: pd.DataFrame,
    *,
    covariate_provider: Optional[CovariateProvider] = None,
    covariate_name: str = "elevation",
    lon_col: str = "longitude",
    lat_col: str = "latitude",
    config: Optional[KrigingConfig] = None,
    return_model: bool = False,
) -> Union[pd.DataFrame, Tuple[pd.DataFrame, FittedModel]]:
    """Fit a kriging model to ``observations`` and predict on ``grid``.

    Parameters
    ----------
    spec :
        ``"response ~ predictors"`` string or a parsed
        :class:`~regionkrige.design.DesignSpec`. Observation coordinate
        columns may be used as predictors; on the grid they resolve to its
        ``longitude`` / ``latitude`` columns.
    observations :
        One row per observation with the response, ``lon_col``, ``lat_col``
        and every covariate referenced by ``spec``.
    grid :
        Grid table from :func:`~regionkrige.grid.build_grid`, optionally with
        extra covariate columns.
    covariate_provider :
        Optional lookup (e.g. elevation). Used only when ``spec`` references
        ``covariate_name``; it is then called once for the observation
        locations and once for the grid.
    covariate_name :
        Column name given to the provider's values.
    lon_col, lat_col :
        Coordinate columns of ``observations``.
    config :
        Fit/predict settings.
    return_model :
        If ``True`` return ``(result, fitted_model)``.

    Returns
    -------
    DataFrame
        Columns ``["interpolated_value", "longitude", "latitude",
        "in_region"]`` in grid order, ``NaN`` outside the region.
    """
    cfg = config or KrigingConfig()
    design_spec = parse_design(spec)
    validate_grid(grid)
    validate_observations(observations, lon_col, lat_col)
    observations = observations.reset_index(drop=True)

    if covariate_provider is not None and covariate_name in design_spec.operands:
        observations = attach_covariate(
            observations, covariate_provider, name=covariate_name, lon_col=lon_col, lat_col=lat_col
        )
        grid = attach_covariate(grid, covariate_provider, name=covariate_name)

    builder = DesignBuilder(
        design_spec, coordinate_aliases={lon_col: "longitude", lat_col: "latitude"}
    )
    # both sides resolve before anything is fitted
    builder.validate(grid, predict=True)
    builder.validate(observations)

    y, X = builder.build(observations, required=(lon_col, lat_col))
    locs = observations.loc[X.index, [lon_col, lat_col]].to_numpy(dtype=float)
    logger.info(
        "Fitting %s on %d observations (%d excluded for missing values).",
        design_spec,
        len(y),
        builder.n_dropped_,
    )

    predictor = SpatialPredictor(cfg)
    fitted = predictor.fit(y.to_numpy(), locs, X)

    X_pred = builder.build_predict(grid)
    grid_locs = np.column_stack(
        [grid["longitude"].to_numpy(dtype=float), grid["latitude"].to_numpy(dtype=float)]
    )
    predictions = predictor.predict(fitted, grid_locs, X_pred)

    result = assemble_result(grid, predictions)
    if return_model:
        return result, fitted
    return result
