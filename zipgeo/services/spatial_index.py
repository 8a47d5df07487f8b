"""
Great-circle nearest-neighbour index over latitude/longitude points.

Points are sorted by latitude once at build time. A query only measures
points inside the latitude band that the search radius can reach, since
the great-circle distance between two points is never less than
``R * |lat1 - lat2|`` (latitudes in radians). Distances inside the band are
exact haversine distances, so the band only prunes and never changes the
answer.
"""
import math
import numbers
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from zipgeo.schemas import Point

# IUGG mean Earth radius
EARTH_RADIUS_KM = 6371.0088

# Widens the latitude band so points sitting exactly on the radius are not
# lost to rounding in the band edges.
_BAND_SLACK_DEG = 1e-9


@dataclass(frozen=True)
class Neighbor:
    """A matched point: its insertion position and distance from the query."""
    index: int
    distance_km: float


def _haversine(lat1, lon1, lat2, lon2):
    """Great-circle distance in km between points given in radians."""
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(h, 0.0, 1.0)))


def haversine_km(lat1, lon1, lat2, lon2):
    """Great-circle distance in km between points given in degrees.

    Accepts scalars or numpy arrays (broadcast).
    """
    return _haversine(
        np.radians(lat1), np.radians(lon1), np.radians(lat2), np.radians(lon2)
    )


def check_radius(radius_km) -> float:
    """Return ``radius_km`` as a float, or raise ValueError if it is unusable."""
    if isinstance(radius_km, bool) or not isinstance(radius_km, numbers.Real):
        raise ValueError(f"radius must be a number, got {radius_km!r}")
    radius = float(radius_km)
    if not math.isfinite(radius) or radius <= 0:
        raise ValueError(f"radius must be a positive finite number, got {radius_km!r}")
    return radius


class SpatialIndex:
    """Immutable index answering bounded-radius, top-K nearest queries."""

    def __init__(self, coordinates: Iterable[Tuple[float, float]]):
        coords = np.asarray(list(coordinates), dtype=float).reshape(-1, 2)
        # Stable sort keeps insertion order among equal latitudes; NaN goes last
        self._order = np.argsort(coords[:, 0], kind="stable")
        self._lat = coords[self._order, 0]
        self._lat_rad = np.radians(self._lat)
        self._lon_rad = np.radians(coords[self._order, 1])

    @classmethod
    def from_points(cls, points: Sequence[Point]) -> "SpatialIndex":
        return cls((p.latitude, p.longitude) for p in points)

    def __len__(self) -> int:
        return int(self._lat.shape[0])

    def query(
        self,
        lat: float,
        lon: float,
        k: int = 1,
        radius_km: float = 50.0,
    ) -> List[Neighbor]:
        """
        Find up to ``k`` points within ``radius_km`` of ``(lat, lon)``.

        Results are ordered nearest first; equal distances keep insertion
        order. The radius is inclusive.

        Raises:
            ValueError: if ``radius_km`` is not a positive finite number.
        """
        radius = check_radius(radius_km)
        if k <= 0 or len(self) == 0:
            return []

        band = math.degrees(radius / EARTH_RADIUS_KM) + _BAND_SLACK_DEG
        lo = int(np.searchsorted(self._lat, lat - band, side="left"))
        hi = int(np.searchsorted(self._lat, lat + band, side="right"))
        if lo >= hi:
            return []

        distances = _haversine(
            math.radians(lat), math.radians(lon),
            self._lat_rad[lo:hi], self._lon_rad[lo:hi],
        )
        # NaN distances compare False and drop out here
        within = np.flatnonzero(distances <= radius)
        if within.size == 0:
            return []

        ids = self._order[lo:hi][within]
        found = distances[within]
        ranked = np.lexsort((ids, found))[:k]
        return [Neighbor(index=int(ids[i]), distance_km=float(found[i])) for i in ranked]

    def nearest(self, lat: float, lon: float, radius_km: float) -> Optional[Neighbor]:
        """Single closest point within ``radius_km``, or None."""
        matches = self.query(lat, lon, k=1, radius_km=radius_km)
        return matches[0] if matches else None
