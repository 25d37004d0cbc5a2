"""Async SQLite persistence for feeds, folders and per-feed telemetry."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import aiosqlite

from feedstore.storage.errors import NotFoundError, StoreError, classify
from feedstore.storage.migrations import apply_migrations
from feedstore.storage.models import (
    CUSTOM_ORDER_DEFAULT,
    Feed,
    FeedError,
    FeedSize,
    Folder,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE_MB = 16

Row = Dict[str, Any]


class FeedStore:
    """Feed, folder, error and size storage over a single SQLite connection.

    The store is constructed and owned by the service; nothing here is global.
    Every public method maps failures onto its own return convention and
    never raises store errors to the caller.

    Usage:
        store = FeedStore("data/feeds.db")
        await store.initialize()
        # ... use store ...
        await store.close()
    """

    def __init__(self, db_path: str, cache_size_mb: int = DEFAULT_CACHE_SIZE_MB):
        self.db_path = db_path
        self.cache_size_mb = cache_size_mb
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create database, apply migrations, and configure pragmas."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # Apply migrations synchronously (schema changes)
        apply_migrations(self.db_path)

        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute(f"PRAGMA cache_size=-{self.cache_size_mb * 1000}")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")

        logger.info("Feed store initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> FeedStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # --- Statement helpers ---

    async def _write(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one write statement in its own transaction. Returns rowcount."""
        assert self._conn is not None, "Feed store not initialized"
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(sql, params)
                await self._conn.commit()
            except sqlite3.Error as e:
                await self._conn.rollback()
                raise classify(e) from e
            return cursor.rowcount

    async def _write_returning(self, sql: str, params: Sequence[Any] = ()) -> Row:
        """Run one write statement with a RETURNING clause."""
        assert self._conn is not None, "Feed store not initialized"
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(sql, params)
                row = await cursor.fetchone()
                await self._conn.commit()
            except sqlite3.Error as e:
                await self._conn.rollback()
                raise classify(e) from e
        if row is None:
            raise NotFoundError("statement returned no row")
        return dict(row)

    async def _query_rows(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        assert self._conn is not None, "Feed store not initialized"
        try:
            cursor = await self._conn.execute(sql, params)
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise classify(e) from e
        return [dict(r) for r in rows]

    async def _query_one(self, sql: str, params: Sequence[Any] = ()) -> Row:
        assert self._conn is not None, "Feed store not initialized"
        try:
            cursor = await self._conn.execute(sql, params)
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise classify(e) from e
        if row is None:
            raise NotFoundError("no matching row")
        return dict(row)

    async def _update(self, sql: str, params: Sequence[Any]) -> bool:
        """Success means the statement ran; matching zero rows still counts."""
        try:
            await self._write(sql, params)
        except StoreError as e:
            logger.error("Update failed: %s", e)
            return False
        return True

    async def _list_feeds(self, sql: str) -> List[Feed]:
        """Collect feeds until the first failure; never returns None."""
        result: List[Feed] = []
        try:
            rows = await self._query_rows(sql)
        except StoreError as e:
            logger.error("Feed listing failed: %s", e)
            return result

        for row in rows:
            try:
                result.append(Feed.from_row(row))
            except (KeyError, ValueError) as e:
                logger.error("Feed listing stopped at row %r: %s", row.get("id"), e)
                break
        return result

    # --- Feeds ---

    async def create_feed(
        self,
        title: str,
        description: str,
        link: str,
        feed_link: str,
        custom_order: str = "",
        folder_id: Optional[int] = None,
    ) -> Optional[Feed]:
        """Insert a feed, or move an existing one with the same feed_link.

        On conflict only ``folder_id`` changes. The returned Feed mirrors the
        arguments of this call, with ``id`` taken from the stored row.
        """
        if not title:
            title = feed_link
        if not custom_order:
            custom_order = CUSTOM_ORDER_DEFAULT

        feed = Feed(
            id=0,
            title=title,
            description=description,
            link=link,
            feed_link=feed_link,
            folder_id=folder_id,
            custom_order=custom_order,
        )
        try:
            row = await self._write_returning(
                """INSERT INTO feeds (title, description, link, feed_link, folder_id, custom_order)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT (feed_link) DO UPDATE SET folder_id = ?
                   RETURNING id""",
                (*feed.to_row(), folder_id),
            )
        except StoreError as e:
            logger.error("Create feed %s failed: %s", feed_link, e)
            return None

        feed.id = row["id"]
        return feed

    async def delete_feed(self, feed_id: int) -> bool:
        """Delete a feed. Succeeds only when exactly one row is removed."""
        try:
            deleted = await self._write("DELETE FROM feeds WHERE id = ?", (feed_id,))
        except StoreError as e:
            logger.error("Delete feed %d failed: %s", feed_id, e)
            return False
        return deleted == 1

    async def rename_feed(self, feed_id: int, new_title: str) -> bool:
        return await self._update(
            "UPDATE feeds SET title = ? WHERE id = ?", (new_title, feed_id)
        )

    async def update_feed_folder(self, feed_id: int, new_folder_id: Optional[int]) -> bool:
        return await self._update(
            "UPDATE feeds SET folder_id = ? WHERE id = ?", (new_folder_id, feed_id)
        )

    async def update_feed_link(self, feed_id: int, new_link: str) -> bool:
        return await self._update(
            "UPDATE feeds SET feed_link = ? WHERE id = ?", (new_link, feed_id)
        )

    async def update_feed_icon(self, feed_id: int, icon: Optional[bytes]) -> bool:
        """Store an icon blob, or clear it with None."""
        return await self._update(
            "UPDATE feeds SET icon = ? WHERE id = ?", (icon, feed_id)
        )

    async def list_feeds(self) -> List[Feed]:
        """All feeds by title (case-insensitive); has_icon means a non-empty blob."""
        return await self._list_feeds(
            """SELECT id, folder_id, title, description, link, feed_link, custom_order,
                      IFNULL(LENGTH(icon), 0) > 0 AS has_icon
               FROM feeds
               ORDER BY title COLLATE NOCASE"""
        )

    async def list_feeds_missing_icons(self) -> List[Feed]:
        """Feeds whose icon was never set. A cleared-to-empty icon is not missing."""
        return await self._list_feeds(
            """SELECT id, folder_id, title, description, link, feed_link, custom_order
               FROM feeds
               WHERE icon IS NULL"""
        )

    async def get_feed(self, feed_id: int) -> Optional[Feed]:
        """Get a feed by ID, including its icon blob."""
        try:
            row = await self._query_one(
                """SELECT id, folder_id, title, description, link, feed_link, custom_order,
                          icon, IFNULL(icon, '') != '' AS has_icon
                   FROM feeds WHERE id = ?""",
                (feed_id,),
            )
            return Feed.from_row(row)
        except NotFoundError:
            return None
        except (StoreError, KeyError, ValueError) as e:
            logger.error("Get feed %d failed: %s", feed_id, e)
            return None

    async def count_feeds(self) -> int:
        try:
            row = await self._query_one("SELECT COUNT(*) AS n FROM feeds")
        except StoreError as e:
            logger.error("Count feeds failed: %s", e)
            return 0
        return row["n"]

    # --- Feed errors ---

    async def reset_feed_errors(self) -> None:
        """Clear every recorded feed error."""
        try:
            await self._write("DELETE FROM feed_errors")
        except StoreError as e:
            logger.error("Reset feed errors failed: %s", e)

    async def set_feed_error(self, feed_id: int, last_error: Union[str, BaseException]) -> None:
        """Record the latest error for a feed, replacing any earlier one."""
        try:
            await self._write(
                """INSERT INTO feed_errors (feed_id, error)
                   VALUES (?, ?)
                   ON CONFLICT (feed_id) DO UPDATE SET error = excluded.error""",
                (feed_id, str(last_error)),
            )
        except StoreError as e:
            logger.error("Set error for feed %d failed: %s", feed_id, e)

    async def get_feed_errors(self) -> Dict[int, str]:
        """Map of feed ID to its latest error message.

        A row that cannot be read is logged and still recorded with zero
        values (feed ID 0 or an empty message) rather than skipped.
        """
        errors: Dict[int, str] = {}
        try:
            rows = await self._query_rows("SELECT feed_id, error FROM feed_errors")
        except StoreError as e:
            logger.error("Get feed errors failed: %s", e)
            return errors

        for row in rows:
            try:
                entry = FeedError.from_row(row)
            except (KeyError, ValueError) as e:
                logger.error("Unreadable feed_errors row %r: %s", row, e)
                entry = FeedError(feed_id=_zero_feed_id(row), error="")
            errors[entry.feed_id] = entry.error
        return errors

    # --- Feed sizes ---

    async def set_feed_size(self, feed_id: int, size: int) -> None:
        """Record the latest content size for a feed, replacing any earlier one."""
        try:
            await self._write(
                """INSERT INTO feed_sizes (feed_id, size)
                   VALUES (?, ?)
                   ON CONFLICT (feed_id) DO UPDATE SET size = excluded.size""",
                (feed_id, size),
            )
        except StoreError as e:
            logger.error("Set size for feed %d failed: %s", feed_id, e)

    async def get_feed_sizes(self) -> Dict[int, int]:
        """Map of feed ID to last known size; unreadable rows behave as in get_feed_errors."""
        sizes: Dict[int, int] = {}
        try:
            rows = await self._query_rows("SELECT feed_id, size FROM feed_sizes")
        except StoreError as e:
            logger.error("Get feed sizes failed: %s", e)
            return sizes

        for row in rows:
            try:
                entry = FeedSize.from_row(row)
            except (KeyError, ValueError) as e:
                logger.error("Unreadable feed_sizes row %r: %s", row, e)
                entry = FeedSize(feed_id=_zero_feed_id(row), size=0)
            sizes[entry.feed_id] = entry.size
        return sizes

    # --- Folders ---

    async def create_folder(self, title: str) -> Optional[Folder]:
        """Create a folder, or return the existing one with the same title."""
        try:
            row = await self._write_returning(
                """INSERT INTO folders (title) VALUES (?)
                   ON CONFLICT (title) DO UPDATE SET title = excluded.title
                   RETURNING id, title, is_expanded""",
                (title,),
            )
            return Folder.from_row(row)
        except (StoreError, KeyError, ValueError) as e:
            logger.error("Create folder %r failed: %s", title, e)
            return None

    async def delete_folder(self, folder_id: int) -> bool:
        """Delete a folder; its feeds become unfiled."""
        try:
            deleted = await self._write("DELETE FROM folders WHERE id = ?", (folder_id,))
        except StoreError as e:
            logger.error("Delete folder %d failed: %s", folder_id, e)
            return False
        return deleted == 1

    async def list_folders(self) -> List[Folder]:
        result: List[Folder] = []
        try:
            rows = await self._query_rows(
                "SELECT id, title, is_expanded FROM folders ORDER BY title COLLATE NOCASE"
            )
        except StoreError as e:
            logger.error("Folder listing failed: %s", e)
            return result

        for row in rows:
            try:
                result.append(Folder.from_row(row))
            except (KeyError, ValueError) as e:
                logger.error("Folder listing stopped at row %r: %s", row.get("id"), e)
                break
        return result

    # --- Maintenance ---

    async def integrity_check(self) -> bool:
        """Run integrity check on the database."""
        try:
            row = await self._query_one("PRAGMA integrity_check")
        except StoreError as e:
            logger.error("Integrity check failed: %s", e)
            return False
        return next(iter(row.values())) == "ok"

    async def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        stats: Dict[str, Any] = {}
        queries = {
            "total_feeds": "SELECT COUNT(*) FROM feeds",
            "total_folders": "SELECT COUNT(*) FROM folders",
            "feeds_with_errors": "SELECT COUNT(*) FROM feed_errors",
            "feeds_missing_icons": "SELECT COUNT(*) FROM feeds WHERE icon IS NULL",
            "db_size_bytes": (
                "SELECT page_count * page_size FROM pragma_page_count(), pragma_page_size()"
            ),
        }
        for key, sql in queries.items():
            try:
                row = await self._query_one(sql)
            except StoreError as e:
                logger.error("Stats query %s failed: %s", key, e)
                stats[key] = 0
                continue
            stats[key] = next(iter(row.values()))
        return stats


def _zero_feed_id(row: Row) -> int:
    try:
        return int(row["feed_id"])
    except (KeyError, TypeError, ValueError):
        return 0
