"""SQLAlchemy models."""

from src.models.item import Item, item_bought_by
from src.models.list import List, ListShare
from src.models.user import User

__all__ = [
    "User",
    "List",
    "ListShare",
    "Item",
    "item_bought_by",
]
