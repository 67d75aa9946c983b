"""Database layer: async SQLite with ACID transactions, repositories and reactive queries."""

from itemstore.db.database import Database, Transaction, mutated_table
from itemstore.db.item_repo import BatchInsertResult, ItemRepository
from itemstore.db.reactive import ReactiveQueryRegistry, Subscription
from itemstore.db.schema import ITEMS_TABLE, SCHEMA_DDL

__all__ = [
    "Database", "Transaction", "mutated_table",
    "BatchInsertResult", "ItemRepository",
    "ReactiveQueryRegistry", "Subscription",
    "ITEMS_TABLE", "SCHEMA_DDL",
]
