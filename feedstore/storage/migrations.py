"""Version-controlled schema migrations for the feed store."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import List, Tuple

logger = logging.getLogger(__name__)

# Each migration is (version, description, list_of_sql_statements)
MigrationStep = Tuple[int, str, List[str]]

SCHEMA_SQL_PATH = Path(__file__).parent / "schema.sql"


def _get_migrations() -> List[MigrationStep]:
    """Return ordered list of migrations."""
    return [
        (
            1,
            "Initial schema: folders, feeds, feed_errors, indexes",
            [SCHEMA_SQL_PATH.read_text(encoding="utf-8")],
        ),
        (
            2,
            "Add feeds.custom_order for user-defined sorting",
            [
                "ALTER TABLE feeds ADD COLUMN custom_order TEXT NOT NULL DEFAULT '';",
            ],
        ),
        (
            3,
            "Add feed_sizes for content size telemetry",
            [
                """CREATE TABLE IF NOT EXISTS feed_sizes (
                       feed_id INTEGER NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
                       size    INTEGER NOT NULL DEFAULT 0
                   );""",
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_feed_sizes_feed_id ON feed_sizes(feed_id);",
            ],
        ),
    ]


def get_current_version(conn: sqlite3.Connection) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        return row[0] if row and row[0] is not None else 0
    except sqlite3.OperationalError:
        return 0


def apply_migrations(db_path: str) -> int:
    """Apply all pending migrations. Returns the final schema version."""
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    current = get_current_version(conn)
    applied = 0

    try:
        for version, description, statements in _get_migrations():
            if version <= current:
                continue

            logger.info("Applying migration v%d: %s", version, description)
            try:
                for sql in statements:
                    conn.executescript(sql)
                conn.execute(
                    "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                    (version, description),
                )
                conn.commit()
                applied += 1
            except Exception:
                conn.rollback()
                logger.exception("Migration v%d failed", version)
                raise

        final = get_current_version(conn)
    finally:
        conn.close()

    if applied:
        logger.info("Applied %d migration(s). Schema at v%d", applied, final)
    else:
        logger.debug("Schema up to date at v%d", final)

    return final


def reset_database(db_path: str) -> None:
    """Drop all tables and re-apply migrations from scratch. USE WITH CAUTION."""
    conn = sqlite3.connect(db_path)
    try:
        tables = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        ).fetchall()

        # Drop order is irrelevant with foreign keys off
        conn.execute("PRAGMA foreign_keys=OFF")
        for (name,) in tables:
            conn.execute(f"DROP TABLE IF EXISTS [{name}]")
        conn.commit()
    finally:
        conn.close()

    apply_migrations(db_path)
