"""Repository for the ``test`` table: randomized batch writes and bulk erase."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from itemstore.db.database import Database, Transaction
from itemstore.db.schema import ITEMS_TABLE
from itemstore.models.item import CountResult, Item
from itemstore.utils.batching import chunked, partition_sizes
from itemstore.utils.ids import IdGenerator

logger = logging.getLogger(__name__)

_INSERT_SQL = f"INSERT INTO {ITEMS_TABLE} (groupId, name) VALUES (?, ?)"
_DELETE_ALL_SQL = f"DELETE FROM {ITEMS_TABLE}"

ITEM_COUNT_SQL = f"SELECT COUNT(*) AS count FROM {ITEMS_TABLE}"
GROUP_COUNT_SQL = f"SELECT COUNT(DISTINCT groupId) AS count FROM {ITEMS_TABLE}"


@dataclass
class BatchInsertResult:
    """Shape chosen by one ``insert_random_items`` call."""

    item_count: int
    batch_size: int
    group_ids: list[str] = field(default_factory=list)

    @property
    def batch_sizes(self) -> list[int]:
        return partition_sizes(self.item_count, self.batch_size)


class ItemRepository:
    """Writes items in randomly shaped groups, erases them all at once."""

    def __init__(
        self,
        db: Database,
        ids: Optional[IdGenerator] = None,
        item_range: tuple[int, int] = (8, 16),
        batch_range: tuple[int, int] = (3, 6),
    ):
        self._db = db
        self._ids = ids or IdGenerator()
        self._item_range = item_range
        self._batch_range = batch_range

    async def insert_random_items(self) -> BatchInsertResult:
        """Insert 8 to 16 items split into sub-batches of 3 to 6, in one transaction.

        Each sub-batch gets its own group id. Any failure rolls back every
        sub-batch and surfaces as ``TransactionError``.
        """
        logger.info("insertRandomItems called")
        item_count = self._ids.rand_int(*self._item_range)
        items = [f"Item {i}" for i in range(item_count)]
        batch_size = self._ids.rand_int(*self._batch_range)
        result = BatchInsertResult(item_count=item_count, batch_size=batch_size)

        async with self._db.transaction() as tx:
            for batch in chunked(items, batch_size):
                group_id = self._ids.new_id()
                await self.insert_items(tx, group_id, batch)
                result.group_ids.append(group_id)

        logger.info(
            f"Inserted {item_count} items in {len(result.group_ids)} groups "
            f"(batch size {batch_size})"
        )
        return result

    async def insert_items(self, tx: Transaction, group_id: str, names: Sequence[str]) -> None:
        """Insert ``names`` under ``group_id`` inside an open transaction."""
        for name in names:
            await tx.execute(_INSERT_SQL, (group_id, name))

    async def clear_all_items(self) -> int:
        """Delete every item in one transaction; returns the deleted row count."""
        logger.info("clearAllItems called")
        async with self._db.transaction() as tx:
            deleted = await tx.execute(_DELETE_ALL_SQL)
        logger.info(f"Cleared {deleted} items")
        return deleted

    # -- reads -----------------------------------------------------------------

    async def count_items(self) -> int:
        return CountResult.from_rows(await self._db.fetchall(ITEM_COUNT_SQL)).count

    async def count_groups(self) -> int:
        return CountResult.from_rows(await self._db.fetchall(GROUP_COUNT_SQL)).count

    async def list_items(self, group_id: Optional[str] = None) -> list[Item]:
        if group_id:
            rows = await self._db.fetchall(
                f"SELECT * FROM {ITEMS_TABLE} WHERE groupId = ? ORDER BY id", (group_id,)
            )
        else:
            rows = await self._db.fetchall(f"SELECT * FROM {ITEMS_TABLE} ORDER BY id")
        return [Item.from_row(r) for r in rows]

    async def group_sizes(self) -> dict[str, int]:
        rows: list[dict[str, Any]] = await self._db.fetchall(
            f"SELECT groupId, COUNT(*) AS size FROM {ITEMS_TABLE} "
            f"GROUP BY groupId ORDER BY MIN(id)"
        )
        return {r["groupId"]: r["size"] for r in rows}
