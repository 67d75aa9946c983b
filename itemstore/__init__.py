"""itemstore: embedded SQLite item store with batched writes and reactive counts."""

from itemstore.db.database import Database, Transaction
from itemstore.db.item_repo import BatchInsertResult, ItemRepository
from itemstore.db.reactive import ReactiveQueryRegistry, Subscription
from itemstore.errors import ItemStoreError, QueryError, SchemaError, TransactionError
from itemstore.services.item_service import ItemService

__version__ = "0.1.0"

__all__ = [
    "BatchInsertResult",
    "Database",
    "ItemRepository",
    "ItemService",
    "ItemStoreError",
    "QueryError",
    "ReactiveQueryRegistry",
    "SchemaError",
    "Subscription",
    "Transaction",
    "TransactionError",
]
