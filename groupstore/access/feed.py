"""
Recent-items feed for the background renderer.

The feed turns read-only fetches into entries the renderer can draw. It
never raises for storage problems: a renderer has no way to surface an
error, so an unavailable store degrades to an empty entry.

Invariants:
    - current_entry() never raises ResolveError or sqlite3.Error
    - watch() re-fetches on every change signal; it never applies deltas
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Protocol, Tuple

from ..errors import ResolveError
from ..store.models import ItemKind, ItemSnapshot
from .readonly_manager import DEFAULT_RECENT_LIMIT, ReadOnlyAccessManager

logger = logging.getLogger(__name__)

UNKNOWN_COLLECTION = "Unknown"


class ChangeSource(Protocol):
    """Anything that can wait for a "data changed" signal."""

    async def wait_for_change(self, timeout: Optional[float] = None) -> bool:
        ...


@dataclass(frozen=True)
class FeedEntry:
    """One renderable state of the feed.

    Attributes:
        generated_at: When the entry was built (Unix ms)
        items: Newest items first
        is_placeholder: True for the sample entry shown before data loads
    """

    generated_at: int
    items: Tuple[ItemSnapshot, ...] = field(default_factory=tuple)
    is_placeholder: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.items

    def lines(self) -> list[tuple[str, str]]:
        """(display text, collection name) per item."""
        return [
            (item.display_text, item.collection_name or UNKNOWN_COLLECTION)
            for item in self.items
        ]


def _now_ms() -> int:
    return int(time.time() * 1000)


class RecentItemsFeed:
    """Builds FeedEntry values from a ReadOnlyAccessManager.

    Example:
        >>> feed = RecentItemsFeed(reader, watcher=ChangeMarkerWatcher(marker_path))
        >>> async for entry in feed.watch():
        ...     render(entry.lines())
    """

    def __init__(
        self,
        reader: ReadOnlyAccessManager,
        limit: int = DEFAULT_RECENT_LIMIT,
        collection_id: Optional[str] = None,
        watcher: Optional[ChangeSource] = None,
        refresh_interval: float = 900.0,
    ) -> None:
        self.reader = reader
        self.limit = limit
        self.collection_id = collection_id
        self.watcher = watcher
        self.refresh_interval = refresh_interval

    def placeholder(self) -> FeedEntry:
        """Sample entry shown while the real one loads."""
        now = _now_ms()
        sample = ItemSnapshot(
            id="placeholder",
            kind=ItemKind.TEXT,
            collection_id="placeholder",
            created_at=now,
            text="Sample note",
            collection_name="Inbox",
        )
        return FeedEntry(generated_at=now, items=(sample,), is_placeholder=True)

    async def current_entry(self) -> FeedEntry:
        """Fetch the newest items; an unavailable store yields an empty entry."""
        try:
            items = await self.reader.fetch_recent(self.collection_id, self.limit)
        except (ResolveError, sqlite3.Error) as e:
            logger.warning(f"Feed degraded to empty: {e}")
            return FeedEntry(generated_at=_now_ms())
        return FeedEntry(generated_at=_now_ms(), items=tuple(items))

    async def watch(self, max_entries: Optional[int] = None) -> AsyncIterator[FeedEntry]:
        """Yield the current entry, then a fresh one after every change.

        Without a watcher the feed refreshes every ``refresh_interval``
        seconds. ``max_entries`` bounds the iteration (None = forever).
        """
        produced = 0
        while max_entries is None or produced < max_entries:
            yield await self.current_entry()
            produced += 1
            if max_entries is not None and produced >= max_entries:
                break
            if self.watcher is not None:
                await self.watcher.wait_for_change(None)
            else:
                await asyncio.sleep(self.refresh_interval)
