"""Services module"""
from .item_service import ItemService

__all__ = ["ItemService"]
