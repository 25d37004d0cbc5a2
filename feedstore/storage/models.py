"""Data models for the feed store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

# Default custom_order for feeds added outside an OPML import. Non-empty so an
# ascending sort never mixes blanks in; it sorts after tokens such as "1" or "a".
CUSTOM_ORDER_DEFAULT = "xxxxxxxxx"


@dataclass
class Folder:
    """An optional grouping of feeds."""

    id: int
    title: str
    is_expanded: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> Folder:
        return cls(
            id=_int(row["id"]),
            title=_text(row["title"]),
            is_expanded=bool(row.get("is_expanded", 0)),
        )


@dataclass
class Feed:
    """A subscribed feed, keyed by its unique ``feed_link``.

    ``has_icon`` is never stored; each query derives it from the ``icon``
    column. ``icon`` itself is only populated by single-feed lookups.
    """

    id: int
    title: str
    feed_link: str
    folder_id: Optional[int] = None
    description: str = ""
    link: str = ""
    icon: Optional[bytes] = None
    has_icon: bool = False
    custom_order: str = CUSTOM_ORDER_DEFAULT

    def to_row(self) -> tuple:
        return (
            self.title,
            self.description,
            self.link,
            self.feed_link,
            self.folder_id,
            self.custom_order,
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> Feed:
        return cls(
            id=_int(row["id"]),
            folder_id=_opt_int(row.get("folder_id")),
            title=_text(row["title"]),
            description=row.get("description") or "",
            link=row.get("link") or "",
            feed_link=_text(row["feed_link"]),
            icon=_blob(row.get("icon")),
            has_icon=bool(row.get("has_icon", 0)),
            custom_order=_text(row.get("custom_order", CUSTOM_ORDER_DEFAULT)),
        )


@dataclass
class FeedError:
    """Most recent processing error recorded for a feed."""

    feed_id: int
    error: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> FeedError:
        return cls(feed_id=_int(row["feed_id"]), error=_text(row["error"]))


@dataclass
class FeedSize:
    """Last known content size of a feed."""

    feed_id: int
    size: int

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> FeedSize:
        return cls(feed_id=_int(row["feed_id"]), size=_int(row["size"]))


# --- Helpers ---

def _int(val: Any) -> int:
    """Strict integer conversion; NULL and non-integral values are rejected."""
    if val is None or isinstance(val, (bytes, float)):
        raise ValueError(f"expected integer column value, got {val!r}")
    return int(val)


def _opt_int(val: Any) -> Optional[int]:
    return None if val is None else _int(val)


def _text(val: Any) -> str:
    if not isinstance(val, str):
        raise ValueError(f"expected text column value, got {val!r}")
    return val


def _blob(val: Any) -> Optional[bytes]:
    if val is None:
        return None
    if not isinstance(val, bytes):
        raise ValueError(f"expected blob column value, got {val!r}")
    return val
