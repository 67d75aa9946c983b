"""Tests for the reactive query registry.

Deliveries triggered by commits run as background tasks, so every assertion
about them is preceded by ``registry.wait_idle()``.
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from itemstore.db.database import Database
from itemstore.db.item_repo import ITEM_COUNT_SQL, ItemRepository
from itemstore.db.reactive import ReactiveQueryRegistry
from itemstore.errors import QueryError, TransactionError
from tests.fakes import ScriptedIds


class TestReactiveQueryRegistry(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db = await Database.open(Path(self._tmp.name) / "test.db")
        self.registry = ReactiveQueryRegistry(self.db)
        self.results = []

    async def asyncTearDown(self):
        await self.registry.close()
        await self.db.close()
        self._tmp.cleanup()

    def _record(self, rows):
        self.results.append(rows[0]["count"])

    async def _insert(self, group="g", name="n"):
        async with self.db.transaction() as tx:
            await tx.execute("INSERT INTO test (groupId, name) VALUES (?, ?)", (group, name))

    async def test_initial_delivery_before_any_write(self):
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        self.assertEqual(self.results, [0])

    async def test_redelivers_after_commit(self):
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        await ItemRepository(self.db, ids=ScriptedIds([10, 4])).insert_random_items()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 10])

    async def test_unchanged_result_is_redelivered(self):
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        await ItemRepository(self.db).clear_all_items()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 0])

    async def test_bound_arguments(self):
        sub = await self.registry.subscribe(
            "SELECT COUNT(*) AS count FROM test WHERE groupId = ?", ["a"], {"test"}, self._record
        )
        self.assertEqual(sub.params, ("a",))
        await self._insert("a")
        await self._insert("b")
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 1, 1])

    async def test_dispose_stops_delivery(self):
        sub = await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        await self._insert()
        await self.registry.wait_idle()
        sub.dispose()
        await self._insert()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 1])
        self.assertFalse(sub.active)
        self.assertEqual(self.registry.subscriptions("test"), [])

    async def test_dispose_is_idempotent(self):
        sub = await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        sub.dispose()
        sub.unsubscribe()
        self.assertFalse(sub.active)

    async def test_subscription_as_context_manager(self):
        with await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record) as sub:
            self.assertTrue(sub.active)
        self.assertFalse(sub.active)

    async def test_dispose_while_delivery_in_flight(self):
        sub = await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        await self._insert()
        # The refresh task is scheduled but has not run yet
        sub.dispose()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0])

    async def test_unwatched_table_does_not_trigger(self):
        await self.db.execute("CREATE TABLE other (id INTEGER PRIMARY KEY, v TEXT)")
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        async with self.db.transaction() as tx:
            await tx.execute("INSERT INTO other (v) VALUES ('x')")
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0])

    async def test_one_delivery_per_commit(self):
        await self.db.execute("CREATE TABLE other (id INTEGER PRIMARY KEY, v TEXT)")
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test", "other"}, self._record)
        async with self.db.transaction() as tx:
            await tx.execute("INSERT INTO test (groupId, name) VALUES ('g', 'a')")
            await tx.execute("INSERT INTO test (groupId, name) VALUES ('g', 'b')")
            await tx.execute("INSERT INTO other (v) VALUES ('x')")
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 2])

    async def test_watched_table_names_are_case_insensitive(self):
        await self.registry.subscribe(ITEM_COUNT_SQL, (), ["TEST"], self._record)
        await self.db.execute("INSERT INTO Test (groupId, name) VALUES ('g', 'a')")
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 1])

    async def test_independent_subscriptions_each_notified(self):
        other = []
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        await self.registry.subscribe(
            ITEM_COUNT_SQL, (), {"test"}, lambda rows: other.append(rows[0]["count"])
        )
        await self._insert()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 1])
        self.assertEqual(other, [0, 1])

    async def test_rolled_back_transaction_not_notified(self):
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        with self.assertRaises(TransactionError):
            await ItemRepository(
                self.db, ids=ScriptedIds([12, 3], fail_on_id=4)
            ).insert_random_items()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0])

    async def test_query_error_goes_to_error_path(self):
        await self.db.execute("CREATE TABLE other (id INTEGER PRIMARY KEY)")
        errors = []
        sub = await self.registry.subscribe(
            "SELECT COUNT(*) AS count FROM other", (), {"test"}, self._record, on_error=errors.append
        )
        await self.db.execute("DROP TABLE other")
        await self._insert()
        await self.registry.wait_idle()

        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], QueryError)
        self.assertEqual(errors[0].query, "SELECT COUNT(*) AS count FROM other")
        self.assertTrue(sub.active)

        # Still active: recovers on the next commit
        await self.db.execute("CREATE TABLE other (id INTEGER PRIMARY KEY)")
        await self._insert()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [0, 0])

    async def test_query_error_logged_without_error_path(self):
        await self.db.execute("CREATE TABLE other (id INTEGER PRIMARY KEY)")
        sub = await self.registry.subscribe(
            "SELECT COUNT(*) AS count FROM other", (), {"test"}, self._record
        )
        await self.db.execute("DROP TABLE other")
        with self.assertLogs("itemstore.db.reactive", level="ERROR"):
            await self._insert()
            await self.registry.wait_idle()
        self.assertTrue(sub.active)

    async def test_initial_query_error_uses_error_path(self):
        errors = []
        sub = await self.registry.subscribe(
            "SELECT COUNT(*) AS count FROM missing", (), {"test"}, self._record,
            on_error=errors.append,
        )
        self.assertEqual(len(errors), 1)
        self.assertEqual(self.results, [])
        self.assertTrue(sub.active)

    async def test_callback_error_is_logged(self):
        def broken(_rows):
            if calls:
                raise RuntimeError("subscriber bug")
            calls.append(1)

        calls = []
        await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, broken)
        with self.assertLogs("itemstore.db.reactive", level="ERROR"):
            await self._insert()
            await self.registry.wait_idle()

    async def test_failing_first_callback_leaves_no_subscription(self):
        calls = []

        def broken(rows):
            calls.append(rows[0]["count"])
            if len(calls) == 1:
                raise RuntimeError("subscriber bug")

        with self.assertRaises(RuntimeError):
            await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, broken)
        self.assertEqual(self.registry.subscriptions(), [])

        await self.db.execute("INSERT INTO test (groupId, name) VALUES ('g', 'n')")
        await self.registry.wait_idle()
        self.assertEqual(calls, [0])

    async def test_failing_first_error_handler_leaves_no_subscription(self):
        def broken_handler(error):
            raise RuntimeError("handler bug")

        with self.assertRaises(RuntimeError):
            await self.registry.subscribe(
                "SELECT COUNT(*) AS count FROM missing", (), {"test"}, self._record,
                on_error=broken_handler,
            )
        self.assertEqual(self.registry.subscriptions("test"), [])

        await self._insert()
        await self.registry.wait_idle()
        self.assertEqual(self.results, [])

    async def test_requires_watched_table(self):
        with self.assertRaises(ValueError):
            await self.registry.subscribe(ITEM_COUNT_SQL, (), [], self._record)

    async def test_close_disposes_everything(self):
        sub = await self.registry.subscribe(ITEM_COUNT_SQL, (), {"test"}, self._record)
        await self.registry.close()
        await self._insert()
        await self.registry.wait_idle()
        self.assertFalse(sub.active)
        self.assertEqual(self.registry.subscriptions(), [])
        self.assertEqual(self.results, [0])
