"""Storage layer - SQLite feeds, folders, feed errors and feed sizes."""

from feedstore.storage.db import FeedStore
from feedstore.storage.errors import ConstraintError, NotFoundError, StoreError, StoreIOError
from feedstore.storage.models import CUSTOM_ORDER_DEFAULT, Feed, FeedError, FeedSize, Folder

__all__ = [
    "FeedStore",
    "Feed",
    "FeedError",
    "FeedSize",
    "Folder",
    "CUSTOM_ORDER_DEFAULT",
    "StoreError",
    "NotFoundError",
    "ConstraintError",
    "StoreIOError",
]
