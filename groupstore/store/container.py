"""
Container handle: the process-local connection to the shared store.

A ContainerHandle is bound to exactly one file path and one schema
version. It owns a single SQLite connection for the lifetime of the
process and runs every database function on the default executor so the
event loop never blocks on disk I/O.

Invariants:
    - One connection per handle, used by one executor thread at a time
    - Read-only handles are opened with mode=ro and query_only; they
      cannot alter the version tag or the table structure
    - Two processes never share a handle; they coordinate through the
      file and the notification channel only
"""

from __future__ import annotations

import asyncio
import functools
import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..schema.types import SchemaVersion, VersionId

logger = logging.getLogger(__name__)

T = TypeVar("T")


def open_connection(
    path: Path,
    read_only: bool,
    busy_timeout_ms: int = 5000,
    wal_mode: bool = True,
) -> sqlite3.Connection:
    """Open and configure an SQLite connection to ``path``.

    Read-only connections use a ``mode=ro`` URI, so a missing file is an
    error rather than silently created.
    """
    if read_only:
        target = path.resolve().as_uri() + "?mode=ro"
    else:
        target = str(path)

    conn = sqlite3.connect(
        target,
        timeout=busy_timeout_ms / 1000.0,
        isolation_level=None,  # Autocommit by default, explicit transactions
        check_same_thread=False,  # Serialized by ContainerHandle's lock
        uri=read_only,
    )
    conn.row_factory = sqlite3.Row

    try:
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        if read_only:
            conn.execute("PRAGMA query_only = ON")
        else:
            if wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


class ContainerHandle:
    """Opened connection to the shared store.

    Attributes:
        path: Database file path
        schema: Schema version the file is known to be at
        read_only: Whether the handle can write

    Example:
        >>> handle = resolver.resolve(directory, "AppData.sqlite", VersionId(1, 1, 0))
        >>> count = await handle.run(lambda conn: conn.execute("SELECT 1").fetchone()[0])
    """

    def __init__(
        self,
        path: Path,
        schema: SchemaVersion,
        conn: sqlite3.Connection,
        read_only: bool,
    ) -> None:
        self.path = path
        self.schema = schema
        self.read_only = read_only
        self._conn = conn
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def version(self) -> VersionId:
        return self.schema.version

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(conn, *args)`` on the executor, one call at a time."""
        async with self._lock:
            if self._closed:
                raise RuntimeError(f"Container handle for {self.path} is closed")
            return await asyncio.get_event_loop().run_in_executor(
                None, functools.partial(fn, self._conn, *args)
            )

    async def read(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn`` inside one read transaction (a point-in-time snapshot)."""
        return await self.run(_in_read_transaction, fn, *args)

    async def aclose(self) -> None:
        """Close after any in-flight call has finished."""
        async with self._lock:
            self.close()

    def close(self) -> None:
        """Close the connection. The handle is unusable afterwards."""
        if not self._closed:
            self._closed = True
            self._conn.close()
            logger.debug(f"Closed container handle {self.path}")

    def __repr__(self) -> str:
        mode = "ro" if self.read_only else "rw"
        return f"ContainerHandle({self.path}, {self.schema.version}, {mode})"


def _in_read_transaction(conn: sqlite3.Connection, fn: Callable[..., T], *args: Any) -> T:
    conn.execute("BEGIN")
    try:
        return fn(conn, *args)
    finally:
        conn.execute("COMMIT")
