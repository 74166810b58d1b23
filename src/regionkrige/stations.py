# src/regionkrige/stations.py
# SPDX-License-Identifier: MIT
"""
Read-only station catalog used to validate and locate interpolation inputs.

The catalog is loaded once (from any table with an id column and WGS-84
coordinates) and passed explicitly to whatever needs it. It only answers
"does this station exist and where is it"; ingestion and time filtering of
station records live elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

import numbers

import numpy as np
import pandas as pd

from .boundary import GeoPoint
from .exceptions import NotFoundError, ValidationError


__all__ = ["validate_station_id", "StationCatalog"]


def validate_station_id(station_id) -> Union[int, float]:
    """Check that ``station_id`` is a single finite number.

    A length-1 list/tuple/array/Series is unwrapped. Anything else raises
    :class:`ValidationError`.
    """
    if isinstance(station_id, (list, tuple, np.ndarray, pd.Series)):
        if len(station_id) != 1:
            raise ValidationError("Invalid station ID: station ID must be numeric of length 1")
        station_id = station_id[0] if not isinstance(station_id, pd.Series) else station_id.iloc[0]
    if (
        isinstance(station_id, (bool, np.bool_))
        or not isinstance(station_id, numbers.Real)
        or not np.isfinite(float(station_id))
    ):
        raise ValidationError("Invalid station ID: station ID must be numeric of length 1")
    if float(station_id).is_integer():
        return int(station_id)
    return float(station_id)


@dataclass(frozen=True, eq=False)
class StationCatalog:
    """Station identifiers with their coordinates.

    Parameters
    ----------
    table :
        One row per station with ``id_col``, ``lon_col`` and ``lat_col``.
    id_col, lon_col, lat_col :
        Column names in ``table``.
    """

    table: pd.DataFrame
    id_col: str = "station"
    lon_col: str = "longitude"
    lat_col: str = "latitude"

    def __post_init__(self) -> None:
        cols = [self.id_col, self.lon_col, self.lat_col]
        missing = [c for c in cols if c not in self.table.columns]
        if missing:
            raise ValidationError(f"Station table is missing columns: {missing}")
        t = self.table.copy()
        for c in (self.lon_col, self.lat_col):
            t[c] = pd.to_numeric(t[c], errors="raise").astype(float)
        if t[self.id_col].duplicated().any():
            raise ValidationError("Station table contains duplicated station identifiers.")
        object.__setattr__(self, "table", t.set_index(self.id_col, drop=False))

    @property
    def ids(self) -> List:
        return self.table[self.id_col].tolist()

    def __len__(self) -> int:
        return len(self.table)

    def __contains__(self, station_id) -> bool:
        try:
            sid = validate_station_id(station_id)
        except ValidationError:
            return False
        return sid in self.table.index

    def locate(self, station_id) -> GeoPoint:
        """Coordinates of one station.

        Raises
        ------
        ValidationError
            ``station_id`` is not a single number.
        NotFoundError
            ``station_id`` is not in the catalog.
        """
        sid = validate_station_id(station_id)
        if sid not in self.table.index:
            raise NotFoundError(
                f"Invalid station ID: station {sid} could not be found in the catalog"
            )
        row = self.table.loc[sid]
        return GeoPoint(float(row[self.lon_col]), float(row[self.lat_col]))

    def observations(
        self,
        values: pd.DataFrame,
        *,
        id_col: Optional[str] = None,
    ) -> pd.DataFrame:
        """Attach station coordinates to a per-station value table.

        Parameters
        ----------
        values :
            One row per station (e.g. a monthly mean) with an id column.
        id_col :
            Id column in ``values``; defaults to the catalog's ``id_col``.

        Returns
        -------
        DataFrame
            ``values`` with ``longitude`` and ``latitude`` columns added,
            ready for :func:`regionkrige.pipeline.interpolate`.
        """
        id_col = id_col or self.id_col
        if id_col not in values.columns:
            raise ValidationError(f"Value table is missing the id column {id_col!r}.")
        ids = [validate_station_id(s) for s in values[id_col].tolist()]
        unknown = sorted({s for s in ids if s not in self.table.index})
        if unknown:
            raise NotFoundError(f"Station IDs not found in the catalog: {unknown}")
        out = values.drop(columns=["longitude", "latitude"], errors="ignore").copy()
        coords = self.table.loc[ids, [self.lon_col, self.lat_col]].to_numpy()
        out["longitude"] = coords[:, 0]
        out["latitude"] = coords[:, 1]
        return out
