"""Item service: the operations a presentation layer drives.

Facade over the item repository and the reactive registry: trigger a random
batch insert, clear everything, and subscribe to live item/group counts.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from itemstore.config import StoreConfig
from itemstore.db.database import Database
from itemstore.db.item_repo import (
    GROUP_COUNT_SQL,
    ITEM_COUNT_SQL,
    BatchInsertResult,
    ItemRepository,
)
from itemstore.db.reactive import ErrorCallback, ReactiveQueryRegistry, Rows, Subscription
from itemstore.db.schema import ITEMS_TABLE
from itemstore.errors import TransactionError
from itemstore.models.item import CountResult
from itemstore.utils.ids import IdGenerator

logger = logging.getLogger(__name__)

CountCallback = Callable[[int], None]


class ItemService:
    """
    Facade for batch writes, bulk erase and live counts.

    Dependencies are injected so tests can seed the random source or
    share one registry between several services.
    """

    def __init__(
        self,
        db: Database,
        registry: Optional[ReactiveQueryRegistry] = None,
        ids: Optional[IdGenerator] = None,
        config: Optional[StoreConfig] = None,
    ):
        self._db = db
        # An injected registry belongs to the caller
        self._owns_registry = registry is None
        self._registry = registry or ReactiveQueryRegistry(db)
        if config is not None:
            self._repo = ItemRepository(
                db, ids=ids, item_range=config.item_range, batch_range=config.batch_range
            )
        else:
            self._repo = ItemRepository(db, ids=ids)

    @property
    def repository(self) -> ItemRepository:
        return self._repo

    @property
    def registry(self) -> ReactiveQueryRegistry:
        return self._registry

    # -- writes ----------------------------------------------------------------

    async def insert_random_items(self) -> BatchInsertResult:
        try:
            result = await self._repo.insert_random_items()
        except TransactionError as e:
            logger.error(f"Insert transaction failed: {e}")
            raise
        logger.info("Transaction completed successfully")
        return result

    async def clear_all_items(self) -> int:
        try:
            deleted = await self._repo.clear_all_items()
        except TransactionError as e:
            logger.error(f"Clear transaction failed: {e}")
            raise
        logger.info("Clear transaction completed successfully")
        return deleted

    # -- live counts -----------------------------------------------------------

    async def subscribe_item_count(
        self, callback: CountCallback, on_error: Optional[ErrorCallback] = None
    ) -> Subscription:
        logger.info("Setting up item count reactive query")
        return await self._subscribe_count(ITEM_COUNT_SQL, callback, on_error)

    async def subscribe_group_count(
        self, callback: CountCallback, on_error: Optional[ErrorCallback] = None
    ) -> Subscription:
        logger.info("Setting up group count reactive query")
        return await self._subscribe_count(GROUP_COUNT_SQL, callback, on_error)

    async def _subscribe_count(
        self, query: str, callback: CountCallback, on_error: Optional[ErrorCallback]
    ) -> Subscription:
        def deliver(rows: Rows) -> None:
            count = CountResult.from_rows(rows).count
            logger.debug(f"Count callback ({query}): {count}")
            callback(count)

        return await self._registry.subscribe(
            query, (), {ITEMS_TABLE}, deliver, on_error=on_error
        )

    async def close(self) -> None:
        """Close the registry if this service created it."""
        if self._owns_registry:
            await self._registry.close()
