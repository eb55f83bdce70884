"""
Container resolver for groupstore.

The resolver locates the shared group directory and opens the database
file in it at the version the caller expects:

    on-disk tag       writer                         read-only
    -----------       ------                         ---------
    file absent       create fresh at target         SchemaMismatchError
    == target         open                           open
    <  target         migrate in place, then open    SchemaMismatchError
    >  target         UnsupportedFutureVersionError  UnsupportedFutureVersionError
    foreign/corrupt   EngineOpenFailedError          EngineOpenFailedError

Invariants:
    - There is no fallback to a private location; an unresolvable group
      directory is LocationUnavailableError
    - The writer reads the tag through a read-only connection first, so a
      file from a newer build is never opened for writing
    - A read-only resolve never writes to the file
    - A failed migration leaves the file at its original version; it is
      never deleted or recreated

All methods block on disk I/O; async callers run them on an executor.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional, Union

from ..errors import (
    EngineOpenFailedError,
    LocationUnavailableError,
    SchemaMismatchError,
    UnsupportedFutureVersionError,
)
from ..migrate import ddl
from ..migrate.plan import MigrationPlan
from ..migrate.runner import migrate
from ..schema.registry import VersionRegistry
from ..schema.types import SchemaVersion, VersionId
from .container import ContainerHandle, open_connection
from .locator import GroupContainerLocator

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ContainerResolver:
    """Locates and opens the shared store.

    Example:
        >>> resolver = ContainerResolver(build_registry(), build_plan())
        >>> directory = resolver.locate(locator, "group.com.example.shared")
        >>> handle = resolver.resolve(directory, "AppData.sqlite", VersionId(1, 1, 0))
    """

    def __init__(
        self,
        registry: VersionRegistry,
        plan: MigrationPlan,
        busy_timeout_ms: int = 5000,
        wal_mode: bool = True,
    ) -> None:
        self.registry = registry
        self.plan = plan
        self.busy_timeout_ms = busy_timeout_ms
        self.wal_mode = wal_mode

    def locate(self, locator: GroupContainerLocator, group_id: str) -> Path:
        """Resolve the shared directory for ``group_id``.

        Raises:
            LocationUnavailableError: If the group is not provisioned
        """
        directory = locator.container_directory(group_id)
        if directory is None:
            raise LocationUnavailableError(group_id)
        directory = Path(directory)
        if not directory.is_dir():
            raise LocationUnavailableError(group_id, f"{directory} is not a directory")
        return directory

    def open_connection(self, path: Path, read_only: bool) -> sqlite3.Connection:
        """Open one engine connection (every open goes through here)."""
        try:
            return open_connection(
                path,
                read_only=read_only,
                busy_timeout_ms=self.busy_timeout_ms,
                wal_mode=self.wal_mode,
            )
        except sqlite3.Error as e:
            raise EngineOpenFailedError(str(path), e) from e

    def probe(self, group_directory: PathLike, file_name: str) -> Optional[VersionId]:
        """Read the stored version tag without writing.

        Returns:
            The tag, or None when the file is absent or has no tables yet

        Raises:
            EngineOpenFailedError: If the file is unreadable or foreign
        """
        path = Path(group_directory) / file_name
        if not path.exists():
            return None
        conn = self.open_connection(path, read_only=True)
        try:
            return self._read_tag(conn, path)
        finally:
            conn.close()

    def resolve(
        self,
        group_directory: PathLike,
        file_name: str,
        target_version: VersionId,
        read_only: bool = False,
    ) -> ContainerHandle:
        """Open the store at ``target_version``.

        Raises:
            LocationUnavailableError: If ``group_directory`` does not exist
            UnsupportedFutureVersionError: If the file is newer than the target
            SchemaMismatchError: Read-only open of an absent or older file
            EngineOpenFailedError: If the file cannot be opened or is foreign
            MigrationError: If the writer cannot migrate the file
        """
        target = self._target_schema(target_version)
        directory = Path(group_directory)
        if not directory.is_dir():
            raise LocationUnavailableError(directory.name, f"{directory} is not a directory")
        path = directory / file_name

        if read_only:
            return self._resolve_read_only(path, target)

        found = self.probe(directory, file_name)
        self._check_not_future(found, target_version)

        conn = self.open_connection(path, read_only=False)
        try:
            if found is None:
                found = self._create_if_empty(conn, path, target)
                self._check_not_future(found, target_version)
            if found is not None and found < target_version:
                logger.info(
                    f"Store at {path} is at schema {found}, migrating to {target_version}"
                )
                migrate(conn, self.registry, self.plan, found, target_version)
        except BaseException:
            conn.close()
            raise

        logger.info(
            f"Opened store {path} at schema {target_version}",
            extra={"mode": "rw"},
        )
        return ContainerHandle(path, target, conn, read_only=False)

    def _resolve_read_only(self, path: Path, target: SchemaVersion) -> ContainerHandle:
        if not path.exists():
            raise SchemaMismatchError(None, target.version)
        conn = self.open_connection(path, read_only=True)
        try:
            found = self._read_tag(conn, path)
            self._check_not_future(found, target.version)
            if found != target.version:
                raise SchemaMismatchError(found, target.version)
        except BaseException:
            conn.close()
            raise
        logger.info(
            f"Opened store {path} at schema {target.version}",
            extra={"mode": "ro"},
        )
        return ContainerHandle(path, target, conn, read_only=True)

    def _create_if_empty(
        self,
        conn: sqlite3.Connection,
        path: Path,
        target: SchemaVersion,
    ) -> Optional[VersionId]:
        """Create the schema in an empty file; return the tag if someone beat us."""
        conn.execute("BEGIN IMMEDIATE")
        try:
            found = self._read_tag(conn, path)
            if found is None:
                ddl.create_schema(conn, target)
                conn.execute("COMMIT")
                logger.info(f"Created store {path} at schema {target.version}")
                return None
            conn.execute("ROLLBACK")
            return found
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def _read_tag(self, conn: sqlite3.Connection, path: Path) -> Optional[VersionId]:
        try:
            found = ddl.read_version_tag(conn)
            if found is None and ddl.user_tables(conn):
                raise EngineOpenFailedError(str(path))
            return found
        except (sqlite3.Error, ValueError) as e:
            raise EngineOpenFailedError(str(path), e) from e

    def _check_not_future(self, found: Optional[VersionId], target: VersionId) -> None:
        if found is not None and found > target:
            logger.error(
                f"Store is at schema {found}; this build supports up to {target}",
                extra={"found": str(found), "supported": str(target)},
            )
            raise UnsupportedFutureVersionError(found, target)

    def _target_schema(self, target_version: VersionId) -> SchemaVersion:
        schema = self.registry.get(target_version)
        if schema is None:
            raise ValueError(f"Target schema {target_version} is not registered")
        return schema
