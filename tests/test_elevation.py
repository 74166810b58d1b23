# tests/test_elevation.py
import numpy as np
import pandas as pd
import pytest

from regionkrige.elevation import attach_covariate, memoize_provider
from regionkrige.exceptions import InvariantViolation, ValidationError


CALLS = []


def fake_dem(longitudes, latitudes):
    """Module-level provider so joblib can hash it."""
    CALLS.append(len(longitudes))
    return 1000.0 + 10.0 * np.asarray(longitudes) - 5.0 * np.asarray(latitudes)


@pytest.fixture(autouse=True)
def _reset_calls():
    CALLS.clear()
    yield
    CALLS.clear()


@pytest.fixture
def frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "longitude": [-100.0, -99.0, -100.0, -98.0],
            "latitude": [35.0, 36.0, 35.0, 37.0],
            "temp": [1.0, 2.0, 3.0, 4.0],
        },
        index=[10, 20, 30, 40],
    )


def test_attach_dedupes_and_keeps_order(frame):
    out = attach_covariate(frame, fake_dem)
    assert CALLS == [3]
    expected = 1000.0 + 10.0 * frame["longitude"] - 5.0 * frame["latitude"]
    np.testing.assert_allclose(out["elevation"], expected)
    assert list(out.index) == [10, 20, 30, 40]
    assert "elevation" not in frame.columns


def test_attach_custom_names(frame):
    f = frame.rename(columns={"longitude": "x", "latitude": "y"})
    out = attach_covariate(f, fake_dem, name="dem", lon_col="x", lat_col="y")
    assert "dem" in out.columns
    with pytest.raises(ValidationError):
        attach_covariate(f, fake_dem)


def test_attach_empty_frame():
    empty = pd.DataFrame({"longitude": [], "latitude": []})
    out = attach_covariate(empty, fake_dem)
    assert out["elevation"].empty
    assert CALLS == []


def test_provider_length_mismatch(frame):
    with pytest.raises(InvariantViolation):
        attach_covariate(frame, lambda lons, lats: [1.0])


def test_memoized_provider_hits_disk_cache(frame, tmp_path):
    cached = memoize_provider(fake_dem, str(tmp_path / "cache"))
    a = attach_covariate(frame, cached)
    b = attach_covariate(frame, cached)
    assert CALLS == [3]
    pd.testing.assert_frame_equal(a, b)


def test_memoize_without_location_still_works(frame):
    out = attach_covariate(frame, memoize_provider(fake_dem, None))
    assert CALLS == [3]
    assert np.isfinite(out["elevation"]).all()


def test_rows_without_coordinates_are_not_looked_up(frame):
    f = frame.copy()
    f.loc[20, "latitude"] = np.nan
    out = attach_covariate(f, fake_dem)
    assert CALLS == [2]
    assert np.isnan(out.loc[20, "elevation"])
    assert np.isfinite(out.loc[[10, 30, 40], "elevation"]).all()

    f["longitude"] = np.nan
    out = attach_covariate(f, fake_dem)
    assert CALLS == [2]
    assert out["elevation"].isna().all()
