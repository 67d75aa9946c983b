"""Domain models for the item store."""

from itemstore.models.item import CountResult, Item

__all__ = ["CountResult", "Item"]
