"""Exception hierarchy for the storage core."""

from __future__ import annotations

from typing import Optional


class ItemStoreError(Exception):
    """Base class for every error raised by itemstore."""


class SchemaError(ItemStoreError):
    """The schema could not be created, or the store could not be opened.

    Fatal at startup: nothing works without the ``test`` table.
    """


class TransactionError(ItemStoreError):
    """A write transaction failed and was rolled back."""


class QueryError(ItemStoreError):
    """A reactive query failed to (re-)execute."""

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query
