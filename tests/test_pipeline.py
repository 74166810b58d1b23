# tests/test_pipeline.py
import logging

import numpy as np
import pandas as pd
import pytest

from regionkrige.assemble import RESULT_COLUMNS
from regionkrige.boundary import RegionBoundary
from regionkrige.config import KrigingConfig
from regionkrige.exceptions import ConfigurationError, ValidationError
from regionkrige.grid import build_grid
from regionkrige.kriging import FittedModel, SpatialPredictor
from regionkrige.pipeline import interpolate


# ---------------------------------------------------------------------
# Synthetic toy dataset
# ---------------------------------------------------------------------


def _temperature(lon, lat):
    return 20.0 + 0.4 * (lon + 95.0) - 0.8 * (lat - 35.0) + np.sin(lon) * np.cos(lat)


def _elevation(lon, lat):
    return 300.0 + 120.0 * np.sin(np.asarray(lon) * 0.7) + 80.0 * np.cos(np.asarray(lat) * 1.3)


@pytest.fixture
def observations() -> pd.DataFrame:
    """
    25 stations scattered over the box [-100, -90] x [30, 40].

    Columns:
        station | longitude | latitude | slope | temp
    """
    rng = np.random.default_rng(11)
    gx, gy = np.meshgrid(np.linspace(-99.5, -90.5, 5), np.linspace(30.5, 39.5, 5))
    lon = gx.ravel() + rng.uniform(-0.3, 0.3, gx.size)
    lat = gy.ravel() + rng.uniform(-0.3, 0.3, gy.size)
    return pd.DataFrame(
        {
            "station": np.arange(100, 100 + lon.size),
            "longitude": lon,
            "latitude": lat,
            "slope": rng.uniform(0.0, 5.0, lon.size),
            "temp": _temperature(lon, lat),
        }
    )


@pytest.fixture
def region() -> RegionBoundary:
    """The box without its north-east quadrant."""
    return RegionBoundary.from_rings(
        [[(-100, 30), (-90, 30), (-90, 35), (-95, 35), (-95, 40), (-100, 40)]]
    )


@pytest.fixture
def grid(region) -> pd.DataFrame:
    return build_grid(region, 11, 11)


# ---------------------------------------------------------------------
# Result table
# ---------------------------------------------------------------------


def test_result_layout_and_mask(observations, grid):
    out = interpolate("temp ~ longitude + latitude", observations, grid)
    assert list(out.columns) == RESULT_COLUMNS
    assert len(out) == len(grid)
    np.testing.assert_array_equal(out["longitude"], grid["longitude"])
    np.testing.assert_array_equal(out["latitude"], grid["latitude"])

    inside = out["in_region"].to_numpy()
    assert inside.any() and (~inside).any()
    assert out.loc[~inside, "interpolated_value"].isna().all()
    assert np.isfinite(out.loc[inside, "interpolated_value"]).all()


def test_predictions_are_close_to_the_field(observations, grid):
    out = interpolate("temp ~ longitude + latitude", observations, grid)
    inside = out[out["in_region"]]
    truth = _temperature(inside["longitude"].to_numpy(), inside["latitude"].to_numpy())
    assert np.max(np.abs(inside["interpolated_value"].to_numpy() - truth)) < 3.0


def test_interpolation_is_deterministic(observations, grid):
    a = interpolate("temp ~ longitude + latitude", observations, grid)
    b = interpolate("temp ~ longitude + latitude", observations, grid)
    pd.testing.assert_frame_equal(a, b)


def test_exact_at_observed_grid_points():
    """Stations sitting on lattice points are reproduced with zero nugget."""
    grid = build_grid(RegionBoundary.rectangle(-100.0, 30.0, -90.0, 40.0), 6, 6)
    picked = grid.iloc[[0, 4, 9, 14, 20, 23, 29, 35]]
    obs = pd.DataFrame(
        {
            "longitude": picked["longitude"].to_numpy(),
            "latitude": picked["latitude"].to_numpy(),
            "temp": _temperature(picked["longitude"].to_numpy(), picked["latitude"].to_numpy()),
        }
    )
    out = interpolate("temp ~ 1", obs, grid, config=KrigingConfig(fixed_nugget=0.0))
    np.testing.assert_allclose(
        out.loc[picked.index, "interpolated_value"], obs["temp"], atol=1e-6
    )


def test_return_model(observations, grid):
    out, fitted = interpolate(
        "temp ~ longitude + latitude", observations, grid, return_model=True
    )
    assert isinstance(fitted, FittedModel)
    assert fitted.n_obs == len(observations)
    assert fitted.column_names == ("(Intercept)", "longitude", "latitude")
    assert len(out) == len(grid)


def test_non_default_index_is_ignored(observations, grid):
    shuffled = observations.set_index(pd.Index(np.arange(len(observations)) * 7 + 3))
    a = interpolate("temp ~ latitude", observations, grid)
    b = interpolate("temp ~ latitude", shuffled, grid)
    pd.testing.assert_frame_equal(a, b)


# ---------------------------------------------------------------------
# Predictor resolution
# ---------------------------------------------------------------------


def test_missing_grid_covariate_fails_before_fitting(observations, grid, monkeypatch):
    def _no_fit(self, *args, **kwargs):
        raise AssertionError("fit must not be reached")

    monkeypatch.setattr(SpatialPredictor, "fit", _no_fit)
    with pytest.raises(ConfigurationError, match="slope"):
        interpolate("temp ~ latitude + slope", observations, grid)


def test_grid_covariate_column_is_used(observations, grid):
    g = grid.assign(slope=2.0)
    out = interpolate("temp ~ latitude + slope", observations, g)
    assert np.isfinite(out.loc[out["in_region"], "interpolated_value"]).all()


def test_custom_coordinate_column_names(observations, grid):
    obs = observations.rename(columns={"longitude": "LONGITUDE", "latitude": "LATITUDE"})
    out = interpolate(
        "temp ~ LONGITUDE + LATITUDE",
        obs,
        grid,
        lon_col="LONGITUDE",
        lat_col="LATITUDE",
    )
    ref = interpolate("temp ~ longitude + latitude", observations, grid)
    np.testing.assert_allclose(
        out["interpolated_value"], ref["interpolated_value"], rtol=1e-8, equal_nan=True
    )


def test_missing_response_rows_are_dropped_and_logged(observations, grid, caplog):
    obs = observations.copy()
    obs.loc[3, "temp"] = np.nan
    with caplog.at_level(logging.INFO, logger="regionkrige"):
        _, fitted = interpolate(
            "temp ~ longitude + latitude", obs, grid, return_model=True
        )
    assert fitted.n_obs == len(obs) - 1
    assert f"Excluded 1 of {len(obs)} fitting rows with missing values." in caplog.text


def test_unknown_response_raises(observations, grid):
    with pytest.raises(ConfigurationError):
        interpolate("rain ~ latitude", observations, grid)


def test_malformed_spec_raises(observations, grid):
    with pytest.raises(ConfigurationError):
        interpolate("temp ~ ", observations, grid)


# ---------------------------------------------------------------------
# Covariate provider
# ---------------------------------------------------------------------


def test_provider_called_once_per_side(observations, grid):
    calls = []

    def provider(lons, lats):
        calls.append(len(lons))
        return _elevation(lons, lats)

    out = interpolate(
        "temp ~ latitude + elevation", observations, grid, covariate_provider=provider
    )
    assert calls == [len(observations), len(grid)]
    assert np.isfinite(out.loc[out["in_region"], "interpolated_value"]).all()


def test_provider_unused_when_not_referenced(observations, grid):
    def provider(lons, lats):
        raise AssertionError("provider must not be called")

    out = interpolate("temp ~ latitude", observations, grid, covariate_provider=provider)
    assert len(out) == len(grid)


# ---------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------


def test_invalid_grid(observations, grid):
    with pytest.raises(ValidationError):
        interpolate("temp ~ 1", observations, grid.drop(columns="in_region"))
    with pytest.raises(ValidationError):
        interpolate("temp ~ 1", observations, grid.iloc[:0])
    with pytest.raises(ValidationError):
        interpolate("temp ~ 1", observations, grid.to_numpy())


def test_invalid_observations(observations, grid):
    with pytest.raises(ValidationError):
        interpolate("temp ~ 1", observations.drop(columns="latitude"), grid)
    with pytest.raises(ValidationError):
        interpolate("temp ~ 1", observations.to_dict("records"), grid)


def test_rows_with_missing_coordinates_are_dropped(observations, grid, caplog):
    obs = observations.copy()
    obs.loc[2, "latitude"] = np.nan
    obs.loc[7, "longitude"] = np.nan
    with caplog.at_level(logging.INFO, logger="regionkrige"):
        out, fitted = interpolate("temp ~ 1", obs, grid, return_model=True)
    assert fitted.n_obs == len(obs) - 2
    assert f"Excluded 2 of {len(obs)} fitting rows with missing values." in caplog.text
    assert np.isfinite(out.loc[out["in_region"], "interpolated_value"]).all()


def test_missing_coordinates_are_not_sent_to_the_provider(observations, grid):
    obs = observations.copy()
    obs.loc[4, "longitude"] = np.nan
    seen = []

    def provider(lons, lats):
        seen.append(np.isfinite(lons).all() and np.isfinite(lats).all())
        return _elevation(lons, lats)

    _, fitted = interpolate(
        "temp ~ elevation", obs, grid, covariate_provider=provider, return_model=True
    )
    assert seen == [True, True]
    assert fitted.n_obs == len(obs) - 1
