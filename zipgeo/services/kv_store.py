"""Key-value persistence on top of a single SQL table."""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zipgeo.models import KVEntry

logger = logging.getLogger(__name__)

# Reserved snapshot keys
MASTER_KEY = "MASTER"
LIST_KEY = "LIST"
EPOCH_KEY = "EPOCH"
RESERVED_KEYS = frozenset({MASTER_KEY, LIST_KEY, EPOCH_KEY})


@dataclass
class Entry:
    """A value to write. ``value`` is stored as-is; non-strings are JSON encoded."""
    key: str
    value: Any
    metadata: Optional[Dict[str, Any]] = None

    def encoded(self) -> str:
        return self.value if isinstance(self.value, str) else json.dumps(self.value)


@dataclass
class KeyInfo:
    name: str
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class KeyPage:
    """One page of a key listing, in key order."""
    keys: List[KeyInfo] = field(default_factory=list)
    list_complete: bool = True
    cursor: Optional[str] = None


class KVStore:
    """Get / put / list over the ``kv_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        """Raw stored text for ``key``, or None."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(KVEntry.value).where(KVEntry.key == key)
            )
            return result.scalar_one_or_none()

    async def get_json(self, key: str) -> Optional[Any]:
        """Decoded JSON value for ``key``, or None."""
        raw = await self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def get_with_metadata(self, key: str) -> Tuple[Optional[Any], Optional[Dict[str, Any]]]:
        """Decoded value and metadata for ``key``; ``(None, None)`` if absent."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(KVEntry.value, KVEntry.meta).where(KVEntry.key == key)
            )
            row = result.first()
        if row is None:
            return None, None
        return json.loads(row.value), row.meta

    async def get_many_with_metadata(
        self, keys: Iterable[str]
    ) -> Dict[str, Tuple[Any, Optional[Dict[str, Any]]]]:
        """Decoded value and metadata for each present key, read in one statement."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(KVEntry.key, KVEntry.value, KVEntry.meta).where(KVEntry.key.in_(list(keys)))
            )
            rows = result.all()
        return {row.key: (json.loads(row.value), row.meta) for row in rows}

    async def put(self, key: str, value: Any, metadata: Optional[Dict[str, Any]] = None) -> None:
        await self.put_many([Entry(key, value, metadata)])

    async def put_many(self, entries: Iterable[Entry]) -> int:
        """Upsert all ``entries`` in one transaction. Returns the number written."""
        now = datetime.utcnow()
        rows = [
            {"key": e.key, "value": e.encoded(), "metadata": e.metadata, "updated_at": now}
            for e in entries
        ]
        if not rows:
            return 0

        async with self._session_factory() as session:
            async with session.begin():
                await self._upsert(session, rows)
        logger.debug("Wrote %d entries", len(rows))
        return len(rows)

    async def _upsert(self, session: AsyncSession, rows: List[Dict[str, Any]]) -> None:
        table = KVEntry.__table__
        dialect = session.get_bind().dialect.name

        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert as dialect_insert
            else:
                from sqlalchemy.dialects.sqlite import insert as dialect_insert
            stmt = dialect_insert(table)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c["key"]],
                set_={
                    "value": stmt.excluded["value"],
                    "metadata": stmt.excluded["metadata"],
                    "updated_at": stmt.excluded["updated_at"],
                },
            )
            await session.execute(stmt, rows)
            return

        # Generic path: replace inside the same transaction
        await session.execute(delete(table).where(table.c["key"].in_([r["key"] for r in rows])))
        await session.execute(insert(table), rows)

    async def list_keys(
        self,
        limit: int = 1000,
        cursor: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> KeyPage:
        """
        List keys in ascending order, ``limit`` per page.

        Pass the returned ``cursor`` back in to fetch the next page;
        ``list_complete`` is True on the last page.
        """
        stmt = select(KVEntry.key, KVEntry.meta).order_by(KVEntry.key).limit(limit + 1)
        if cursor is not None:
            stmt = stmt.where(KVEntry.key > cursor)
        if prefix:
            stmt = stmt.where(KVEntry.key.startswith(prefix))

        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()

        complete = len(rows) <= limit
        keys = [KeyInfo(name=row.key, metadata=row.meta) for row in rows[:limit]]
        return KeyPage(
            keys=keys,
            list_complete=complete,
            cursor=None if complete or not keys else keys[-1].name,
        )

    async def list_all(
        self,
        exclude: Iterable[str] = RESERVED_KEYS,
        page_size: int = 1000,
    ) -> List[KeyInfo]:
        """Drain every page of :meth:`list_keys`, dropping ``exclude`` keys."""
        skip = set(exclude)
        page = await self.list_keys(limit=page_size)
        keys = list(page.keys)
        while not page.list_complete:
            page = await self.list_keys(limit=page_size, cursor=page.cursor)
            keys.extend(page.keys)
        return [k for k in keys if k.name not in skip]
