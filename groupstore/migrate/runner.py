"""
Generic migration walker.

migrate() interprets a MigrationPlan against an open SQLite connection.
The complete path is computed before the file is touched, then every step
runs inside a single BEGIN IMMEDIATE transaction and the version tag is
rewritten last. Either the file ends at the target version or it is left
exactly as it was.

Invariants:
    - A missing chain link is reported before any write
    - The tag never moves backwards; a file past the target is refused
    - One transaction spans the whole walk; any failure rolls all of it back
    - The file is never deleted or recreated here
    - Only the writer path calls this; read-only handles never migrate
"""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import List

from ..errors import MigrationError, TransformFailedError, UnsupportedFutureVersionError
from ..schema.registry import VersionRegistry
from ..schema.types import SchemaVersion, VersionId
from . import ddl
from .plan import MigrationKind, MigrationPlan, MigrationStep

logger = logging.getLogger(__name__)

STAGING_SUFFIX = "__migrating"


def migrate(
    conn: sqlite3.Connection,
    registry: VersionRegistry,
    plan: MigrationPlan,
    source: VersionId,
    target: VersionId,
) -> List[MigrationStep]:
    """Walk the store from ``source`` to ``target`` in one transaction.

    Args:
        conn: Writable connection in autocommit mode (isolation_level=None)
        registry: Versions known to this process
        plan: Steps between adjacent versions
        source: Version the caller observed on disk
        target: Version to reach

    Returns:
        The steps that were applied (empty if another writer got there first)

    Raises:
        MissingChainLinkError: If the plan has no step for an adjacent pair
        UnsupportedFutureVersionError: If the file is, or was moved, past ``target``
        TransformFailedError: If a step raised; nothing was written
    """
    steps = plan.path(registry, source, target)
    if not steps:
        return []

    start = time.monotonic()
    conn.execute("BEGIN IMMEDIATE")
    try:
        # Another writer may have moved the file between probe and lock
        on_disk = ddl.read_version_tag(conn)
        if on_disk != source:
            if on_disk == target:
                logger.info(f"Store already migrated to {target} by another writer")
                conn.execute("ROLLBACK")
                return []
            if on_disk is None:
                raise MigrationError(
                    "Store lost its version tag during migration",
                    code="MIGRATION_TAG_MISSING",
                )
            if on_disk > target:
                raise UnsupportedFutureVersionError(on_disk, target)
            steps = plan.path(registry, on_disk, target)

        for step in steps:
            old = registry.get(step.source)
            new = registry.get(step.target)
            try:
                if step.kind == MigrationKind.AUTOMATIC:
                    _apply_automatic(conn, old, new)
                else:
                    _apply_custom(conn, old, new, step)
            except Exception as e:
                raise TransformFailedError(step, e) from e
            logger.info(
                f"Applied migration step {step.source} -> {step.target}",
                extra={"kind": step.kind.value},
            )

        ddl.write_version_tag(conn, registry.get(target))
        conn.execute("COMMIT")

    except BaseException:
        conn.execute("ROLLBACK")
        raise

    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        f"Migrated store {source} -> {target} in {len(steps)} step(s)",
        extra={"elapsed_ms": round(elapsed_ms, 2)},
    )
    return steps


def _apply_automatic(
    conn: sqlite3.Connection,
    old: SchemaVersion,
    new: SchemaVersion,
) -> None:
    """Structural upgrade: new tables, new columns, index changes."""
    for rt in new.record_types:
        old_rt = old.get_record_type(rt.name)
        if old_rt is None:
            ddl.create_table(conn, rt)
        else:
            existing = set(ddl.table_columns(conn, rt.table))
            for f in rt.fields:
                if f.name not in existing:
                    ddl.add_column(conn, rt, f)
        ddl.sync_indexes(conn, rt)


def _apply_custom(
    conn: sqlite3.Connection,
    old: SchemaVersion,
    new: SchemaVersion,
    step: MigrationStep,
) -> None:
    """Rebuild every surviving table, passing records through transforms."""
    for rt in new.record_types:
        old_rt = old.get_record_type(rt.name)
        if old_rt is None:
            ddl.create_table(conn, rt)
            ddl.sync_indexes(conn, rt)
            continue

        transform = step.transforms.get(rt.name)
        records = ddl.select_records(conn, old_rt.table)
        staging = rt.table + STAGING_SUFFIX
        ddl.create_table(conn, rt, table=staging)

        kept = 0
        for record in records:
            result = transform(dict(record)) if transform is not None else record
            if result is None:
                continue
            ddl.insert_record(conn, rt, result, table=staging)
            kept += 1

        ddl.drop_table(conn, old_rt.table)
        ddl.rename_table(conn, staging, rt.table)
        ddl.sync_indexes(conn, rt)
        logger.debug(
            f"Rebuilt {rt.table}: {kept} of {len(records)} records kept",
            extra={"record_type": rt.name},
        )

    for old_rt in old.record_types:
        if new.get_record_type(old_rt.name) is None:
            ddl.drop_table(conn, old_rt.table)
