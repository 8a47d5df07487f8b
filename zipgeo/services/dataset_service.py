"""Publish ingested ZIP records as a snapshot and read them back."""
import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from zipgeo.exceptions import InvalidQueryError, NoResultError, SnapshotUnavailableError
from zipgeo.schemas import ZipRecord
from zipgeo.services.kv_store import (
    EPOCH_KEY, LIST_KEY, MASTER_KEY, Entry, KeyInfo, KVStore
)

logger = logging.getLogger(__name__)

ZIP_PATTERN = re.compile(r"[0-9]{5}")


@dataclass
class PopulateResult:
    count: int
    skipped: int
    elapsed_seconds: float
    epoch: int

    @property
    def message(self) -> str:
        text = (
            f"Finished uploading {self.count} ZIP code datas "
            f"in {self.elapsed_seconds:.2f} seconds"
        )
        if self.skipped:
            text += f" ({self.skipped} rows skipped)"
        return text


def zip_metadata(record: ZipRecord) -> Dict[str, Any]:
    return {"zip": record.zip, "long": record.longitude, "latitude": record.latitude}


def bulk_entries(records: Sequence[ZipRecord]) -> List[Dict[str, Any]]:
    """Per-ZIP entries shaped for an external bulk key-value load."""
    return [
        {
            "key": record.zip,
            "value": json.dumps(record.model_dump()),
            "metadata": zip_metadata(record),
        }
        for record in records
    ]


class DatasetService:
    """Service for writing and reading the ZIP code snapshot."""

    def __init__(
        self,
        store: KVStore,
        write_zip_entries: bool = True,
        lock: Optional[asyncio.Lock] = None,
    ):
        self.store = store
        self.write_zip_entries = write_zip_entries
        # Populates sharing this lock run one at a time
        self.lock = lock or asyncio.Lock()

    async def current_epoch(self) -> Optional[Dict[str, Any]]:
        """The epoch marker of the published snapshot, or None if nothing is loaded."""
        return await self.store.get_json(EPOCH_KEY)

    async def populate(self, records: Sequence[ZipRecord], skipped: int = 0) -> PopulateResult:
        """
        Publish ``records`` as the new snapshot.

        MASTER (full records), LIST (points, same order), the per-ZIP
        entries and the EPOCH marker are written in a single transaction,
        so readers see either the previous snapshot or this one.
        """
        start = time.perf_counter()
        async with self.lock:
            marker = await self.current_epoch()
            epoch = (marker or {}).get("epoch", 0) + 1

            master = [record.model_dump() for record in records]
            points = [record.point().model_dump() for record in records]
            logger.debug("Found %d ZIP codes in the master list", len(master))

            entries = [
                Entry(MASTER_KEY, master, {"description": "List of all ZIP codes", "epoch": epoch}),
                Entry(
                    LIST_KEY,
                    points,
                    {"description": "List of all ZIP codes with latitude and longitude", "epoch": epoch},
                ),
            ]
            if self.write_zip_entries:
                entries.extend(
                    Entry(record.zip, master[i], zip_metadata(record))
                    for i, record in enumerate(records)
                )
            entries.append(Entry(EPOCH_KEY, {
                "epoch": epoch,
                "count": len(records),
                "skipped": skipped,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }))
            await self.store.put_many(entries)

        elapsed = time.perf_counter() - start
        logger.info("Published epoch %d with %d ZIP codes in %.2fs", epoch, len(records), elapsed)
        return PopulateResult(
            count=len(records), skipped=skipped, elapsed_seconds=elapsed, epoch=epoch
        )

    async def get_record(self, zip_code: str) -> Dict[str, Any]:
        """
        Get the stored record for a ZIP code.

        Raises:
            InvalidQueryError: if ``zip_code`` is not five digits.
            NoResultError: if no record is stored for it.
        """
        if not zip_code or not ZIP_PATTERN.fullmatch(zip_code):
            raise InvalidQueryError("Invalid ZIP code")
        record = await self.store.get_json(zip_code)
        if record is None:
            raise NoResultError("ZIP code not found")
        return record

    async def get_master(self) -> List[Dict[str, Any]]:
        master = await self.store.get_json(MASTER_KEY)
        if master is None:
            raise SnapshotUnavailableError("Failed to fetch master ZIP code data")
        return master

    async def get_points(self) -> List[Dict[str, Any]]:
        points = await self.store.get_json(LIST_KEY)
        if points is None:
            raise SnapshotUnavailableError("Failed to fetch ZIP code list")
        return points

    async def list_zip_keys(self, page_size: int = 1000) -> List[KeyInfo]:
        """Every stored key except the reserved snapshot keys."""
        return await self.store.list_all(page_size=page_size)
