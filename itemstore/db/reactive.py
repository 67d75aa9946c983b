"""Reactive queries: re-run a read query whenever a watched table is committed.

A subscription pairs a query with the tables it depends on. The registry
listens to ``Database`` commits; every commit that wrote to a watched table
schedules one re-execution per affected subscription, and the fresh rows are
handed to the subscriber's callback. Results are not deduplicated.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import defaultdict
from typing import Any, Callable, Iterable, Optional

from itemstore.db.database import Database
from itemstore.errors import QueryError

logger = logging.getLogger(__name__)

Rows = list[dict[str, Any]]
ResultCallback = Callable[[Rows], None]
ErrorCallback = Callable[[QueryError], None]

_subscription_ids = itertools.count(1)


class Subscription:
    """Handle for one standing query. ``dispose()`` is terminal and idempotent."""

    def __init__(
        self,
        registry: "ReactiveQueryRegistry",
        query: str,
        params: tuple,
        tables: frozenset[str],
        callback: ResultCallback,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.id = next(_subscription_ids)
        self.query = query
        self.params = params
        self.tables = tables
        self.callback = callback
        self.on_error = on_error
        self._registry = registry
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._registry._unregister(self)

    unsubscribe = dispose

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "active" if self._active else "disposed"
        return f"<Subscription #{self.id} {state} tables={sorted(self.tables)}>"


class ReactiveQueryRegistry:
    """Maps table names to the subscriptions watching them."""

    def __init__(self, db: Database):
        self._db = db
        self._by_table: dict[str, set[Subscription]] = defaultdict(set)
        self._pending: set[asyncio.Task] = set()
        db.add_commit_listener(self.notify)

    async def subscribe(
        self,
        query: str,
        params: Iterable[Any],
        tables: Iterable[str],
        callback: ResultCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """Register ``query`` and deliver its current result before returning."""
        watched = frozenset(t.lower() for t in tables)
        if not watched:
            raise ValueError("A reactive query needs at least one watched table")
        sub = Subscription(self, query, tuple(params), watched, callback, on_error)
        for table in watched:
            self._by_table[table].add(sub)
        logger.debug(f"Registered {sub!r}")
        try:
            await self._deliver(sub)
        except BaseException:
            # No handle reaches the caller on failure
            sub.dispose()
            raise
        return sub

    def notify(self, tables: Iterable[str]) -> None:
        """Schedule one re-execution per active subscription watching ``tables``."""
        changed = frozenset(t.lower() for t in tables)
        affected: dict[int, Subscription] = {}
        for table in changed:
            for sub in self._by_table.get(table, ()):
                if sub.active:
                    affected[sub.id] = sub
        if not affected:
            return
        loop = asyncio.get_running_loop()
        logger.debug(f"Tables {sorted(changed)} changed, refreshing {len(affected)} subscription(s)")
        for sub in affected.values():
            task = loop.create_task(self._refresh(sub))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _refresh(self, sub: Subscription) -> None:
        try:
            await self._deliver(sub)
        except Exception:
            logger.exception(f"Callback of {sub!r} raised")

    async def _deliver(self, sub: Subscription) -> None:
        if not sub.active:
            return
        try:
            rows = await self._db.fetchall(sub.query, sub.params)
        except Exception as e:
            error = QueryError(f"Reactive query failed: {e}", query=sub.query)
            error.__cause__ = e
            if sub.on_error is not None:
                sub.on_error(error)
            else:
                logger.exception(f"{sub!r} could not refresh; it stays active")
            return
        if not sub.active:
            return
        sub.callback(rows)

    async def wait_idle(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def subscriptions(self, table: Optional[str] = None) -> list[Subscription]:
        if table is not None:
            return sorted(self._by_table.get(table.lower(), ()), key=lambda s: s.id)
        unique = {s.id: s for subs in self._by_table.values() for s in subs}
        return [unique[k] for k in sorted(unique)]

    async def close(self) -> None:
        """Dispose every subscription and stop listening to the database."""
        for sub in self.subscriptions():
            sub.dispose()
        self._db.remove_commit_listener(self.notify)
        await self.wait_idle()

    def _unregister(self, sub: Subscription) -> None:
        for table in sub.tables:
            subs = self._by_table.get(table)
            if subs is None:
                continue
            subs.discard(sub)
            if not subs:
                del self._by_table[table]
        logger.debug(f"Disposed {sub!r}")
