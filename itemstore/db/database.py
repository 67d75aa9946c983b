"""Core database connection with ACID transaction support and commit notifications."""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional, TypeVar

import aiosqlite

from itemstore.db.schema import SCHEMA_DDL
from itemstore.errors import SchemaError, TransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")
CommitListener = Callable[[frozenset], None]

# INSERT [OR ...] INTO t | REPLACE INTO t | UPDATE [OR ...] t | DELETE FROM t
_MUTATION_RE = re.compile(
    r"""^\s*(?:
        (?:INSERT(?:\s+OR\s+\w+)?|REPLACE)\s+INTO
        |UPDATE(?:\s+OR\s+\w+)?
        |DELETE\s+FROM
    )\s+(?:main\.)?["`\[]?(\w+)""",
    re.IGNORECASE | re.VERBOSE,
)


def mutated_table(sql: str) -> Optional[str]:
    """Return the (lower-cased) table a write statement targets, or None for reads."""
    match = _MUTATION_RE.match(sql)
    return match.group(1).lower() if match else None


class Transaction:
    """Execution context handed to the body of ``Database.transaction()``.

    Every statement of an open transaction must go through this object; it
    records which tables were written so they can be announced on commit.
    """

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn
        self.touched: set[str] = set()

    async def execute(self, sql: str, params: Iterable[Any] = ()) -> int:
        """Execute one statement; returns the affected row count."""
        async with self._conn.execute(sql, tuple(params)) as cursor:
            rowcount = cursor.rowcount
        table = mutated_table(sql)
        if table:
            self.touched.add(table)
        return rowcount

    async def fetchone(self, sql: str, params: Iterable[Any] = ()) -> Optional[dict[str, Any]]:
        async with self._conn.execute(sql, tuple(params)) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetchall(self, sql: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        async with self._conn.execute(sql, tuple(params)) as cursor:
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]


class Database:
    """
    Async SQLite wrapper with explicit ACID transaction support.

    Implements the Unit-of-Work pattern: every mutation goes through
    ``transaction()``, which commits on success and rolls back on failure.
    After each successful commit the set of written tables is published to
    the registered commit listeners.

    One instance owns exactly one connection. Construct it explicitly and
    pass it to whatever needs it; there is no module-level singleton.
    """

    def __init__(self, path: Optional[Path | str] = None, schema: str = SCHEMA_DDL):
        from itemstore.config import get_db_path
        if path is None:
            self.path: Path = get_db_path()
        elif isinstance(path, str):
            self.path = Path(path)
        else:
            self.path = path
        self._schema = schema
        self._conn: Optional[aiosqlite.Connection] = None
        # A single connection shares one SQLite transaction scope, so tasks
        # must take turns holding it.
        self._lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()
        # Task currently inside transaction(), if any
        self._tx_task: Optional[asyncio.Task] = None
        self._listeners: list[CommitListener] = []

    @classmethod
    async def open(cls, path: Optional[Path | str] = None, schema: str = SCHEMA_DDL) -> "Database":
        """Connect and create the schema. Raises ``SchemaError`` on failure."""
        db = cls(path, schema=schema)
        try:
            await db.init()
        except SchemaError:
            await db.close()
            raise
        return db

    async def __aenter__(self) -> "Database":
        try:
            await self.init()
        except SchemaError:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -- connection lifecycle --------------------------------------------------

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def connection(self) -> aiosqlite.Connection:
        """Return the owned connection, opening it on first use.

        Concurrent callers on a closed handle wait for a single connect.
        """
        if self._conn is not None:
            return self._conn
        async with self._connect_lock:
            if self._conn is None:
                self._ensure_dir()
                # Autocommit outside explicit BEGIN ... COMMIT blocks
                conn = await aiosqlite.connect(str(self.path), isolation_level=None)
                conn.row_factory = aiosqlite.Row
                try:
                    await conn.execute("PRAGMA journal_mode = WAL")
                except sqlite3.Error:
                    await conn.close()
                    raise
                self._conn = conn
                logger.info(f"Opened database at {self.path}")
        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info(f"Closed database at {self.path}")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def init(self) -> None:
        """Create all tables (idempotent)."""
        logger.info("Initializing database...")
        try:
            conn = await self.connection()
            await conn.executescript(self._schema)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Database initialization failed: {e}")
            raise SchemaError(f"Could not initialize schema at {self.path}: {e}") from e
        logger.info("Database initialized successfully")

    # -- commit listeners ------------------------------------------------------

    def add_commit_listener(self, listener: CommitListener) -> None:
        self._listeners.append(listener)

    def remove_commit_listener(self, listener: CommitListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, tables: Iterable[str]) -> None:
        changed = frozenset(tables)
        if not changed:
            return
        for listener in list(self._listeners):
            try:
                listener(changed)
            except Exception:
                # Already committed: listener failures are logged, never raised
                logger.exception(f"Commit listener {listener!r} failed")

    # -- transaction helpers ---------------------------------------------------

    def _check_not_in_transaction(self, operation: str) -> None:
        # The lock is not reentrant: waiting on it from the owning task never returns
        if self._tx_task is not None and self._tx_task is asyncio.current_task():
            raise TransactionError(
                f"Database.{operation}() called inside an open transaction; "
                f"use the Transaction object for statements inside transaction()"
            )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """ACID transaction: commits on success, rolls back on exception.

        Transactions do not nest. Inside the ``async with`` body every
        statement must go through the yielded ``Transaction``; calling
        ``transaction()``, ``execute()`` or ``fetch*()`` on the same
        ``Database`` from the task that holds the transaction raises
        ``TransactionError`` (and rolls the outer transaction back when
        it propagates).
        """
        self._check_not_in_transaction("transaction")
        conn = await self.connection()
        async with self._lock:
            try:
                await conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise TransactionError(f"Could not begin transaction: {e}") from e
            tx = Transaction(conn)
            self._tx_task = asyncio.current_task()
            try:
                yield tx
                await conn.execute("COMMIT")
            except TransactionError:
                await self._rollback(conn)
                raise
            except Exception as e:
                await self._rollback(conn)
                logger.error(f"Transaction failed: {e}")
                raise TransactionError(f"Transaction rolled back: {e}") from e
            except BaseException:
                await self._rollback(conn)
                raise
            finally:
                self._tx_task = None
        logger.debug(f"Transaction committed, touched tables: {sorted(tx.touched)}")
        self._publish(tx.touched)

    async def run_transaction(self, work: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run ``work(tx)`` inside one transaction and return its result."""
        async with self.transaction() as tx:
            result = await work(tx)
        return result

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        if conn.in_transaction:
            await conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")

    # -- low-level query helpers -----------------------------------------------

    async def execute(self, sql: str, params: Iterable[Any] = ()) -> int:
        """Run one statement outside a transaction; it commits on its own."""
        self._check_not_in_transaction("execute")
        conn = await self.connection()
        async with self._lock:
            async with conn.execute(sql, tuple(params)) as cursor:
                rowcount = cursor.rowcount
        table = mutated_table(sql)
        if table:
            self._publish((table,))
        return rowcount

    async def fetchone(self, sql: str, params: Iterable[Any] = ()) -> Optional[dict[str, Any]]:
        self._check_not_in_transaction("fetchone")
        conn = await self.connection()
        async with self._lock:
            async with conn.execute(sql, tuple(params)) as cursor:
                row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetchall(self, sql: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        self._check_not_in_transaction("fetchall")
        conn = await self.connection()
        async with self._lock:
            async with conn.execute(sql, tuple(params)) as cursor:
                rows = await cursor.fetchall()
        return [dict(r) for r in rows]
