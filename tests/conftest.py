"""Shared fixtures for feed store tests."""

from __future__ import annotations

import pytest

from feedstore.storage.db import FeedStore


@pytest.fixture
def tmp_db(tmp_path):
    """Return a path to a temporary database file."""
    return str(tmp_path / "test.db")


@pytest.fixture
async def store(tmp_db):
    """Return an initialized FeedStore."""
    manager = FeedStore(tmp_db)
    await manager.initialize()
    yield manager
    await manager.close()
