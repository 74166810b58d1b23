# src/regionkrige/boundary.py
# SPDX-License-Identifier: MIT
"""
Region boundaries and point-in-region tests.

A :class:`RegionBoundary` is a set of closed rings of ``(longitude,
latitude)`` vertices. Membership follows the **even-odd rule** across all
rings: a point is inside when it falls inside an odd number of rings. With
this rule a hole is simply one more ring inside an outer ring, and
separate land masses are separate rings that never overlap.

A point lying on any ring edge (or vertex) is always inside, whatever the
parity says.

Each ring is held as a prepared :class:`shapely.geometry.Polygon`; the
vectorised predicates :func:`shapely.contains_xy` (strict interior) and
:func:`shapely.intersects_xy` on the ring's exterior (edges and vertices)
do the geometry.

Boundaries are immutable and meant to be loaded once per process and passed
explicitly to :func:`regionkrige.grid.build_grid`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, NamedTuple, Sequence, Tuple

import json
import math

import numpy as np
import pandas as pd
import shapely
from shapely.errors import GeometryTypeError
from shapely.geometry import LinearRing, MultiPolygon, Polygon, shape

from .exceptions import ValidationError


__all__ = ["GeoPoint", "RegionBoundary"]


class GeoPoint(NamedTuple):
    """A (longitude, latitude) pair in WGS-84 degrees."""

    longitude: float
    latitude: float


Ring = Tuple[GeoPoint, ...]


# ---------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------


def _as_ring(vertices: Iterable[Sequence[float]]) -> Ring:
    """Normalise a vertex sequence to a tuple of GeoPoints (open ring)."""
    try:
        pts = [GeoPoint(float(v[0]), float(v[1])) for v in vertices]
    except (TypeError, ValueError, IndexError) as exc:
        raise ValidationError(f"Ring vertices must be (longitude, latitude) pairs: {exc}") from exc
    if len(pts) > 1 and pts[0] == pts[-1]:
        pts = pts[:-1]
    if not all(math.isfinite(p.longitude) and math.isfinite(p.latitude) for p in pts):
        raise ValidationError("Ring vertices must be finite numbers.")
    if len(set(pts)) < 3:
        raise ValidationError("A ring needs at least 3 distinct vertices.")
    return tuple(pts)


def _polygon_rings(geom) -> List:
    """Exterior and interior rings of a (Multi)Polygon, in order."""
    if isinstance(geom, Polygon):
        return [geom.exterior.coords, *(r.coords for r in geom.interiors)]
    if isinstance(geom, MultiPolygon):
        return [ring for poly in geom.geoms for ring in _polygon_rings(poly)]
    raise ValidationError(f"Unsupported GeoJSON geometry type: {geom.geom_type!r}")


# ---------------------------------------------------------------------
# Public boundary type
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class RegionBoundary:
    """Immutable set of closed rings describing an area of interest.

    Parameters
    ----------
    rings :
        One or more sequences of ``(longitude, latitude)`` vertices. The
        closing vertex may be repeated or omitted.
    """

    rings: Tuple[Ring, ...]
    _polygons: Tuple[Polygon, ...] = field(init=False, repr=False, compare=False)
    _edges: Tuple[LinearRing, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        rings = tuple(_as_ring(r) for r in self.rings)
        if not rings:
            raise ValidationError("A boundary needs at least one ring.")
        polygons = tuple(Polygon(ring) for ring in rings)
        edges = tuple(poly.exterior for poly in polygons)
        shapely.prepare(polygons)
        shapely.prepare(edges)
        object.__setattr__(self, "rings", rings)
        object.__setattr__(self, "_polygons", polygons)
        object.__setattr__(self, "_edges", edges)

    # -----------------------------------------------------------------
    # Constructors
    # -----------------------------------------------------------------

    @classmethod
    def from_rings(cls, rings: Iterable[Iterable[Sequence[float]]]) -> "RegionBoundary":
        return cls(tuple(tuple(r) for r in rings))

    @classmethod
    def rectangle(
        cls, lon_min: float, lat_min: float, lon_max: float, lat_max: float
    ) -> "RegionBoundary":
        """Single axis-aligned rectangular ring."""
        if not (lon_min < lon_max and lat_min < lat_max):
            raise ValidationError(
                "Rectangle needs lon_min < lon_max and lat_min < lat_max; "
                f"got ({lon_min}, {lat_min}, {lon_max}, {lat_max})."
            )
        return cls.from_rings(
            [[(lon_min, lat_min), (lon_max, lat_min), (lon_max, lat_max), (lon_min, lat_max)]]
        )

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        *,
        ring_col: str = "ring",
        lon_col: str = "longitude",
        lat_col: str = "latitude",
    ) -> "RegionBoundary":
        """Build a boundary from a long vertex table (one row per vertex).

        Vertices are grouped by ``ring_col`` in order of first appearance;
        row order within a ring is the vertex order.
        """
        missing = [c for c in (ring_col, lon_col, lat_col) if c not in df.columns]
        if missing:
            raise ValidationError(f"Boundary table is missing columns: {missing}")
        rings: List[List[Tuple[float, float]]] = []
        for _, g in df.groupby(ring_col, sort=False):
            rings.append(list(zip(g[lon_col].to_numpy(), g[lat_col].to_numpy())))
        return cls.from_rings(rings)

    @classmethod
    def from_geojson(cls, obj: dict) -> "RegionBoundary":
        """Build a boundary from a GeoJSON mapping.

        Accepts ``Polygon`` and ``MultiPolygon`` geometries, a ``Feature``
        wrapping one, or a ``FeatureCollection``. Every ring (exterior or
        interior) becomes one ring of the boundary; the even-odd rule turns
        interior rings into holes.
        """
        if not isinstance(obj, dict):
            raise ValidationError("GeoJSON input must be a mapping.")
        if obj.get("type") == "FeatureCollection":
            geoms = [f.get("geometry") or {} for f in obj.get("features", [])]
        elif obj.get("type") == "Feature":
            geoms = [obj.get("geometry") or {}]
        else:
            geoms = [obj]

        rings: List = []
        for g in geoms:
            try:
                geom = shape(g)
            except (GeometryTypeError, AttributeError, KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"Invalid GeoJSON geometry: {exc}") from exc
            rings.extend(_polygon_rings(geom))
        return cls.from_rings(rings)

    @classmethod
    def load_geojson(cls, path: str) -> "RegionBoundary":
        """Read a GeoJSON file (UTF-8) and build a boundary from it."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_geojson(json.load(f))

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        """``(lon_min, lat_min, lon_max, lat_max)`` over all rings."""
        lon_min, lat_min, lon_max, lat_max = shapely.total_bounds(self._polygons)
        return float(lon_min), float(lat_min), float(lon_max), float(lat_max)

    def contains(self, longitudes, latitudes) -> np.ndarray:
        """Region membership of each (longitude, latitude) pair.

        Parameters
        ----------
        longitudes, latitudes :
            Array-likes of identical shape, in degrees.

        Returns
        -------
        np.ndarray of bool
            Same shape as the inputs. ``True`` when the point is inside an
            odd number of rings or lies on any ring edge.
        """
        lons = np.asarray(longitudes, dtype=float)
        lats = np.asarray(latitudes, dtype=float)
        if lons.shape != lats.shape:
            raise ValidationError(
                f"longitudes {lons.shape} and latitudes {lats.shape} must have the same shape."
            )
        px, py = lons.ravel(), lats.ravel()
        parity = np.zeros(px.shape, dtype=bool)
        edge = np.zeros(px.shape, dtype=bool)
        for poly, ring in zip(self._polygons, self._edges):
            parity ^= shapely.contains_xy(poly, px, py)
            edge |= shapely.intersects_xy(ring, px, py)
        return (parity | edge).reshape(lons.shape)

    def __contains__(self, point) -> bool:
        lon, lat = point
        return bool(self.contains([lon], [lat])[0])
