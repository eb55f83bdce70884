"""
Write-access manager: the read/write entry point for trusted processes.

The primary application and the ingestion extension each hold one
WriteAccessManager. It resolves the shared container lazily on first use,
runs mutations inside BEGIN IMMEDIATE transactions, and emits one
best-effort change signal after every successful commit.

State machine:
    UNINITIALIZED -> RESOLVING -> READY   (terminal success)
                              +-> FAILED  (terminal, error cached)

Invariants:
    - Resolution happens at most once per manager; concurrent first callers
      await the same in-flight resolution
    - A resolution failure is cached and re-raised on every later access
    - At most one transaction is in flight per manager; transactions commit
      in the order they were issued
    - The change signal is sent exactly once per commit, after the commit,
      and its failure never reverts or surfaces to the write caller
    - Across processes, SQLite's file locking arbitrates; last commit wins

How to change safely:
    - Keep all SQL in Repository; bodies receive a Repository
    - Never retry resolution after FAILED; restart the process instead
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

from ..errors import (
    ConstraintViolationError,
    GroupStoreError,
    TransactionFailedError,
    WriteError,
)
from ..notify.base import ChangeNotifier
from ..schema.types import SchemaVersion, VersionId
from ..store.container import ContainerHandle
from ..store.locator import GroupContainerLocator
from ..store.models import CollectionSnapshot, ItemKind, ItemSnapshot
from ..store.repository import Repository
from ..store.resolver import ContainerResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_NOTIFY_TIMEOUT = 0.5


class ManagerState(Enum):
    """Lifecycle of an access manager's container handle."""

    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    READY = "ready"
    FAILED = "failed"


def _run_transaction(
    conn: sqlite3.Connection,
    schema: SchemaVersion,
    body: Callable[[Repository], T],
) -> T:
    conn.execute("BEGIN IMMEDIATE")
    try:
        result = body(Repository(conn, schema))
        conn.execute("COMMIT")
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    return result


def _run_read(conn: sqlite3.Connection, schema: SchemaVersion, body: Callable[[Repository], T]) -> T:
    return body(Repository(conn, schema))


class WriteAccessManager:
    """Read/write access to the shared store.

    Attributes:
        group_id: Shared group identifier
        file_name: Database file name inside the group directory
        target_version: Schema version this process opens at

    Example:
        >>> writer = WriteAccessManager(resolver, locator, "group.com.example.shared")
        >>> inbox = await writer.create_collection("Inbox")
        >>> await writer.add_item(inbox.id, ItemKind.LINK, url="https://example.com")
    """

    def __init__(
        self,
        resolver: ContainerResolver,
        locator: GroupContainerLocator,
        group_id: str,
        file_name: str = "AppData.sqlite",
        target_version: Optional[VersionId] = None,
        notifier: Optional[ChangeNotifier] = None,
        notifier_factory: Optional[Callable[[Path], ChangeNotifier]] = None,
        notify_timeout: float = DEFAULT_NOTIFY_TIMEOUT,
    ) -> None:
        self.resolver = resolver
        self.locator = locator
        self.group_id = group_id
        self.file_name = file_name
        self.target_version = target_version or resolver.registry.current_version().version
        self.notify_timeout = notify_timeout
        self._notifier = notifier
        self._notifier_factory = notifier_factory

        self._state = ManagerState.UNINITIALIZED
        self._handle: Optional[ContainerHandle] = None
        self._error: Optional[BaseException] = None
        self._resolving: Optional[asyncio.Future] = None
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        """The cached resolution error, when FAILED."""
        return self._error

    @property
    def notifier(self) -> Optional[ChangeNotifier]:
        return self._notifier

    async def handle(self) -> ContainerHandle:
        """Return the container handle, resolving it on first use.

        Raises:
            ResolveError: If the container cannot be located or opened
            MigrationError: If the stored data cannot be migrated
        """
        if self._state == ManagerState.READY and self._handle is not None:
            return self._handle
        if self._state == ManagerState.FAILED and self._error is not None:
            raise self._error

        async with self._init_lock:
            if self._resolving is None:
                self._state = ManagerState.RESOLVING
                self._resolving = asyncio.ensure_future(self._resolve())
            resolving = self._resolving

        # Resolution is never cancelled half-way; callers may stop waiting
        return await asyncio.shield(resolving)

    async def _resolve(self) -> ContainerHandle:
        loop = asyncio.get_event_loop()
        try:
            handle = await loop.run_in_executor(None, self._resolve_blocking)
        except Exception as e:
            self._state = ManagerState.FAILED
            self._error = e
            code = e.code if isinstance(e, GroupStoreError) else type(e).__name__
            logger.critical(
                f"Shared store unavailable for group '{self.group_id}': {e}",
                extra={"group_id": self.group_id, "error_code": code},
            )
            raise

        self._handle = handle
        if self._notifier is None and self._notifier_factory is not None:
            self._notifier = self._notifier_factory(handle.path.parent)
        self._state = ManagerState.READY
        return handle

    def _resolve_blocking(self) -> ContainerHandle:
        directory = self.resolver.locate(self.locator, self.group_id)
        return self.resolver.resolve(directory, self.file_name, self.target_version)

    async def with_transaction(self, body: Callable[[Repository], T]) -> T:
        """Run ``body`` in one write transaction and signal observers.

        ``body`` runs on an executor thread and receives a Repository bound
        to the open transaction. It commits when ``body`` returns and rolls
        back when it raises.

        Raises:
            ResolveError / MigrationError: If the container is unavailable
            ConstraintViolationError: Validation or integrity failure
            TransactionFailedError: Any other failure inside the transaction
        """
        handle = await self.handle()
        async with self._write_lock:
            try:
                result = await handle.run(_run_transaction, handle.schema, body)
            except WriteError:
                raise
            except sqlite3.IntegrityError as e:
                raise ConstraintViolationError(f"Integrity error: {e}", [str(e)]) from e
            except Exception as e:
                logger.warning(f"Write transaction failed: {e}", extra={"group_id": self.group_id})
                raise TransactionFailedError(f"Transaction failed: {e}", e) from e

        await self._signal_change()
        return result

    async def _signal_change(self) -> None:
        if self._notifier is None:
            return
        try:
            await asyncio.wait_for(self._notifier.notify(), self.notify_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Change notification timed out after {self.notify_timeout}s",
                extra={"group_id": self.group_id},
            )
        except Exception as e:
            logger.warning(
                f"Change notification failed: {e}",
                extra={"group_id": self.group_id},
            )

    async def read(self, body: Callable[[Repository], T]) -> T:
        """Run a read-only ``body`` against the writer's connection."""
        handle = await self.handle()
        return await handle.read(_run_read, handle.schema, body)

    # ------------------------------------------------------------------
    # Operations used by the presentation layer
    # ------------------------------------------------------------------

    async def create_collection(
        self,
        name: str,
        icon: Optional[str] = None,
        color_hex: Optional[str] = None,
    ) -> CollectionSnapshot:
        return await self.with_transaction(
            lambda repo: repo.create_collection(name, icon=icon, color_hex=color_hex)
        )

    async def list_collections(self) -> List[CollectionSnapshot]:
        return await self.read(lambda repo: repo.list_collections())

    async def reorder_collections(self, ordered_ids: Sequence[str]) -> List[CollectionSnapshot]:
        ids = list(ordered_ids)
        return await self.with_transaction(lambda repo: repo.reorder_collections(ids))

    async def delete_collection(self, collection_id: str) -> int:
        """Delete a collection and its items; returns the item count (-1 if absent)."""
        return await self.with_transaction(lambda repo: repo.delete_collection(collection_id))

    async def add_item(
        self,
        collection_id: str,
        kind: ItemKind,
        text: Optional[str] = None,
        url: Optional[str] = None,
        title: Optional[str] = None,
        subtitle: Optional[str] = None,
    ) -> ItemSnapshot:
        return await self.with_transaction(
            lambda repo: repo.add_item(
                collection_id, kind, text=text, url=url, title=title, subtitle=subtitle
            )
        )

    async def delete_item(self, item_id: str) -> bool:
        return await self.with_transaction(lambda repo: repo.delete_item(item_id))

    async def items_in(
        self,
        collection_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ItemSnapshot]:
        return await self.read(lambda repo: repo.items(collection_id, limit=limit))

    async def close(self) -> None:
        """Close the handle. The manager cannot be reopened."""
        if self._handle is not None:
            async with self._write_lock:
                await self._handle.aclose()
