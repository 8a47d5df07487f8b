"""Reverse geocoding: coordinates to the nearest ZIP code."""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from zipgeo.exceptions import InvalidQueryError, NoResultError, SnapshotUnavailableError
from zipgeo.schemas import Point, ZipRecord
from zipgeo.services.kv_store import EPOCH_KEY, LIST_KEY, MASTER_KEY, KVStore
from zipgeo.services.spatial_index import SpatialIndex, check_radius

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedSnapshot:
    """A published snapshot with its spatial index, ready for queries."""
    epoch: int
    points: List[Point]
    records: Dict[str, ZipRecord]
    index: SpatialIndex


class IndexCache:
    """
    Holds the index for the most recent epoch.

    Epochs only grow, so a cached snapshot newer than the requested epoch
    is served as-is.

    Concurrent callers asking for a new epoch wait on one rebuild instead
    of each building their own.
    """

    def __init__(self):
        self._snapshot: Optional[IndexedSnapshot] = None
        self._lock = asyncio.Lock()

    @property
    def epoch(self) -> Optional[int]:
        return self._snapshot.epoch if self._snapshot else None

    async def get(
        self,
        epoch: int,
        loader: Callable[[int], Awaitable[IndexedSnapshot]],
    ) -> IndexedSnapshot:
        snapshot = self._snapshot
        if snapshot is not None and snapshot.epoch >= epoch:
            return snapshot
        async with self._lock:
            snapshot = self._snapshot
            if snapshot is not None and snapshot.epoch >= epoch:
                return snapshot
            snapshot = await loader(epoch)
            self._snapshot = snapshot
            return snapshot

    def invalidate(self) -> None:
        self._snapshot = None


@dataclass
class ReverseResult:
    lat: float
    long: float
    result: Point
    zip_code: str
    city: str
    distance_km: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lat": self.lat,
            "long": self.long,
            "result": self.result.model_dump(),
            "zipCode": self.zip_code,
            "city": self.city,
            "distanceKm": round(self.distance_km, 3),
        }


def validate_coordinates(lat: float, lon: float) -> None:
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidQueryError("Invalid latitude or longitude")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise InvalidQueryError("Invalid latitude or longitude")


class ReverseGeocoder:
    """Finds the ZIP code nearest to a coordinate."""

    def __init__(self, store: KVStore, cache: IndexCache):
        self.store = store
        self.cache = cache

    async def reverse(self, lat: float, lon: float, radius_km: float) -> ReverseResult:
        """
        Resolve ``(lat, lon)`` to the nearest ZIP code within ``radius_km``.

        When several ZIP codes share the matched coordinates, the one that
        came first in the ingested source wins.

        Raises:
            InvalidQueryError: bad coordinates or radius.
            NoResultError: nothing loaded, empty dataset, or no match.
            SnapshotUnavailableError: snapshot entries missing or out of step.
        """
        validate_coordinates(lat, lon)
        try:
            radius = check_radius(radius_km)
        except ValueError as e:
            raise InvalidQueryError("Invalid radius value") from e

        marker = await self.store.get_json(EPOCH_KEY)
        if marker is None:
            raise NoResultError("No ZIP code data has been loaded")

        epoch = marker.get("epoch") if isinstance(marker, dict) else None
        if not isinstance(epoch, int):
            raise SnapshotUnavailableError("ZIP code snapshot marker is malformed")

        snapshot = await self.cache.get(epoch, self._load)
        if len(snapshot.index) == 0:
            raise NoResultError("No ZIP codes available")

        match = snapshot.index.nearest(lat, lon, radius)
        if match is None:
            raise NoResultError("No ZIP code found for the given coordinates")

        point = snapshot.points[match.index]
        record = snapshot.records.get(point.zip)
        if record is None:
            raise NoResultError("No ZIP code found for the given coordinates")

        return ReverseResult(
            lat=lat,
            long=lon,
            result=point,
            zip_code=record.zip,
            city=record.city,
            distance_km=match.distance_km,
        )

    async def _load(self, epoch: int) -> IndexedSnapshot:
        start = time.perf_counter()
        # LIST and MASTER come from one statement, so they belong to one commit
        entries = await self.store.get_many_with_metadata([LIST_KEY, MASTER_KEY])
        if LIST_KEY not in entries or MASTER_KEY not in entries:
            raise SnapshotUnavailableError("Failed to fetch master ZIP code data")
        points_raw, points_meta = entries[LIST_KEY]
        master_raw, master_meta = entries[MASTER_KEY]

        # A populate may commit after the marker read; serve the newer pair
        loaded_epoch = (points_meta or {}).get("epoch")
        if (
            not isinstance(loaded_epoch, int)
            or loaded_epoch != (master_meta or {}).get("epoch")
            or loaded_epoch < epoch
        ):
            raise SnapshotUnavailableError("ZIP code snapshot is out of date")
        epoch = loaded_epoch

        points = [Point.model_validate(item) for item in points_raw]
        records: Dict[str, ZipRecord] = {}
        for item in master_raw:
            record = ZipRecord.model_validate(item)
            records.setdefault(record.zip, record)

        index = SpatialIndex.from_points(points)
        logger.info(
            "Built spatial index for epoch %d over %d points in %.2fs",
            epoch, len(index), time.perf_counter() - start,
        )
        return IndexedSnapshot(epoch=epoch, points=points, records=records, index=index)
