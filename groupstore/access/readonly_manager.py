"""
Read-only access manager for the background renderer.

The renderer opens the same file as the writers, at the same version, but
without authority to change it: it never migrates, never creates the file,
and never sends change signals. Every fetch runs in its own read
transaction and returns detached snapshots.

Invariants:
    - Concurrent get_handle() callers share one in-flight open
    - A version mismatch is SchemaMismatchError, never a migration
    - Resolution failures are not cached; the next refresh tries again
    - Snapshots are immutable copies, safe to hold across awaits
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import List, Optional

from ..schema.types import SchemaVersion, VersionId
from ..store.container import ContainerHandle
from ..store.locator import GroupContainerLocator
from ..store.models import CollectionSnapshot, ItemSnapshot
from ..store.repository import Repository
from ..store.resolver import ContainerResolver

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 5


def _fetch_recent(
    conn: sqlite3.Connection,
    schema: SchemaVersion,
    collection_id: Optional[str],
    limit: int,
) -> List[ItemSnapshot]:
    return Repository(conn, schema).items(collection_id, limit=limit)


def _list_collections(conn: sqlite3.Connection, schema: SchemaVersion) -> List[CollectionSnapshot]:
    return Repository(conn, schema).list_collections()


class ReadOnlyAccessManager:
    """Read-only access to the shared store.

    Example:
        >>> reader = ReadOnlyAccessManager(resolver, locator, "group.com.example.shared")
        >>> for item in await reader.fetch_recent(limit=5):
        ...     print(item.display_text)
    """

    def __init__(
        self,
        resolver: ContainerResolver,
        locator: GroupContainerLocator,
        group_id: str,
        file_name: str = "AppData.sqlite",
        target_version: Optional[VersionId] = None,
    ) -> None:
        self.resolver = resolver
        self.locator = locator
        self.group_id = group_id
        self.file_name = file_name
        self.target_version = target_version or resolver.registry.current_version().version
        self._handle: Optional[ContainerHandle] = None
        self._opening: Optional[asyncio.Future] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    async def get_handle(self) -> ContainerHandle:
        """Return the shared read-only handle, opening it on first use.

        Raises:
            ResolveError: If the store is unavailable or at another version
        """
        if self._handle is not None:
            return self._handle

        async with self._lock:
            if self._handle is not None:
                return self._handle
            if self._opening is None:
                self._opening = asyncio.ensure_future(self._open())
            opening = self._opening

        return await asyncio.shield(opening)

    async def _open(self) -> ContainerHandle:
        loop = asyncio.get_event_loop()
        try:
            handle = await loop.run_in_executor(None, self._open_blocking)
        except Exception as e:
            logger.warning(
                f"Read-only store unavailable for group '{self.group_id}': {e}",
                extra={"group_id": self.group_id},
            )
            raise
        finally:
            self._opening = None
        self._handle = handle
        return handle

    def _open_blocking(self) -> ContainerHandle:
        directory = self.resolver.locate(self.locator, self.group_id)
        return self.resolver.resolve(
            directory, self.file_name, self.target_version, read_only=True
        )

    async def fetch_recent(
        self,
        collection_id: Optional[str] = None,
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> List[ItemSnapshot]:
        """Newest items first, optionally restricted to one collection.

        Raises:
            ValueError: If limit is negative
            ResolveError: If the store cannot be opened
        """
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")
        handle = await self.get_handle()
        return await handle.read(_fetch_recent, handle.schema, collection_id, limit)

    async def list_collections(self) -> List[CollectionSnapshot]:
        handle = await self.get_handle()
        return await handle.read(_list_collections, handle.schema)

    async def close(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            await handle.aclose()
