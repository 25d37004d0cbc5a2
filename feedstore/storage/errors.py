"""Error taxonomy for the storage layer.

Store methods never let these escape to callers (see ``FeedStore``); they
exist so that every statement fails the same way internally and each call
site can decide how much of the failure to surface.
"""

from __future__ import annotations

import sqlite3


class StoreError(Exception):
    """Base class for feed store failures."""


class NotFoundError(StoreError):
    """A single-row lookup matched nothing."""


class ConstraintError(StoreError):
    """A uniqueness, NOT NULL or foreign key constraint rejected a write."""


class StoreIOError(StoreError):
    """Any other failure reported by the database engine."""


def classify(exc: BaseException) -> StoreError:
    """Map a sqlite3 exception onto the store taxonomy."""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, sqlite3.IntegrityError):
        return ConstraintError(str(exc))
    return StoreIOError(str(exc))
