"""
SQL helpers shared by the migration walker and the repository.

Everything that turns a RecordTypeDef into SQLite structure lives here:
table and index DDL, the version tag table, and the raw record codec
(rows in and out as plain dicts).

Table layout:
    store_meta:
        - key TEXT PRIMARY KEY ('schema_version', 'schema_fingerprint')
        - value TEXT NOT NULL

    <record table> (one per RecordTypeDef):
        - id TEXT PRIMARY KEY
        - one column per field, named after the field

Invariants:
    - Statements here never open or close a transaction; callers own it
    - executescript() is never used (it commits implicitly)
    - Identifiers are always double-quoted
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from ..schema.compat import generate_fingerprint
from ..schema.types import ID_COLUMN, FieldDef, RecordTypeDef, SchemaVersion, VersionId

META_TABLE = "store_meta"
VERSION_KEY = "schema_version"
FINGERPRINT_KEY = "schema_fingerprint"


def quote(identifier: str) -> str:
    """Quote an SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def sql_literal(value: Any) -> str:
    """Render a default value as an SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return repr(value)
    return "'" + str(value).replace("'", "''") + "'"


def column_definition(f: FieldDef) -> str:
    """Column clause for a field, with its default."""
    parts = [quote(f.name), f.kind.sql_type]
    if f.default is not None:
        parts.append(f"DEFAULT {sql_literal(f.default)}")
        if f.required:
            parts.append("NOT NULL")
    elif f.required:
        parts.append("NOT NULL")
    return " ".join(parts)


def index_name(table: str, field_name: str) -> str:
    return f"idx_{table}_{field_name}"


def create_table(conn: sqlite3.Connection, rt: RecordTypeDef, table: Optional[str] = None) -> None:
    """Create the table for a record type (indexes are separate)."""
    columns = [f"{quote(ID_COLUMN)} TEXT PRIMARY KEY NOT NULL"]
    columns.extend(column_definition(f) for f in rt.fields)
    conn.execute(f"CREATE TABLE {quote(table or rt.table)} ({', '.join(columns)})")


def sync_indexes(conn: sqlite3.Connection, rt: RecordTypeDef) -> None:
    """Create indexes for indexed fields and drop those no longer indexed."""
    for f in rt.fields:
        name = index_name(rt.table, f.name)
        if f.indexed:
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS {quote(name)} ON {quote(rt.table)} ({quote(f.name)})"
            )
        else:
            conn.execute(f"DROP INDEX IF EXISTS {quote(name)}")


def add_column(conn: sqlite3.Connection, rt: RecordTypeDef, f: FieldDef) -> None:
    """Add a column for a field introduced by an automatic step."""
    conn.execute(f"ALTER TABLE {quote(rt.table)} ADD COLUMN {column_definition(f)}")


def drop_table(conn: sqlite3.Connection, table: str) -> None:
    conn.execute(f"DROP TABLE IF EXISTS {quote(table)}")


def rename_table(conn: sqlite3.Connection, old: str, new: str) -> None:
    conn.execute(f"ALTER TABLE {quote(old)} RENAME TO {quote(new)}")


def user_tables(conn: sqlite3.Connection) -> List[str]:
    """Names of all non-internal tables in the file."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' "
        "ORDER BY name"
    )
    return [row[0] for row in cursor.fetchall()]


def table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
    cursor = conn.execute(f"PRAGMA table_info({quote(table)})")
    return [row[1] for row in cursor.fetchall()]


def create_schema(conn: sqlite3.Connection, schema: SchemaVersion) -> None:
    """Create the tag table and every record table of a fresh store."""
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {META_TABLE} ("
        "key TEXT PRIMARY KEY NOT NULL, value TEXT NOT NULL)"
    )
    for rt in schema.record_types:
        create_table(conn, rt)
        sync_indexes(conn, rt)
    write_version_tag(conn, schema)


def read_version_tag(conn: sqlite3.Connection) -> Optional[VersionId]:
    """Read the stored schema version.

    Returns:
        The tagged version, or None when the file carries no tag table

    Raises:
        ValueError: If the tag table exists but the tag is missing or malformed
    """
    if META_TABLE not in user_tables(conn):
        return None
    row = conn.execute(
        f"SELECT value FROM {META_TABLE} WHERE key = ?", (VERSION_KEY,)
    ).fetchone()
    if row is None:
        raise ValueError(f"{META_TABLE} has no {VERSION_KEY} entry")
    return VersionId.parse(row[0])


def write_version_tag(conn: sqlite3.Connection, schema: SchemaVersion) -> None:
    """Record ``schema`` as the version of the file."""
    conn.executemany(
        f"INSERT OR REPLACE INTO {META_TABLE} (key, value) VALUES (?, ?)",
        [
            (VERSION_KEY, str(schema.version)),
            (FINGERPRINT_KEY, generate_fingerprint(schema)),
        ],
    )


def select_records(
    conn: sqlite3.Connection,
    table: str,
    where: str = "",
    params: Iterable[Any] = (),
    order_by: str = "rowid",
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Select rows as plain dicts, independent of the connection row factory."""
    sql = f"SELECT * FROM {quote(table)}"
    if where:
        sql += f" WHERE {where}"
    sql += f" ORDER BY {order_by}"
    args = list(params)
    if limit is not None:
        sql += " LIMIT ?"
        args.append(limit)
    cursor = conn.execute(sql, args)
    names = [d[0] for d in cursor.description]
    return [dict(zip(names, row)) for row in cursor.fetchall()]


def insert_record(
    conn: sqlite3.Connection,
    rt: RecordTypeDef,
    record: Dict[str, Any],
    table: Optional[str] = None,
) -> Dict[str, Any]:
    """Insert one raw record after applying defaults and validating it.

    Keys that are not columns of ``rt`` are discarded.

    Raises:
        ValueError: If the record has no id or fails validation
    """
    columns = rt.get_field_names()
    values = {k: v for k, v in record.items() if k in columns}
    values = rt.apply_defaults(values)
    ok, errors = rt.validate_record(values)
    if not ok:
        raise ValueError(f"Invalid {rt.name} record: {'; '.join(errors)}")
    record_id = record.get(ID_COLUMN)
    if not isinstance(record_id, str) or not record_id:
        raise ValueError(f"{rt.name} record has no id")

    names = [ID_COLUMN] + columns
    placeholders = ", ".join("?" for _ in names)
    conn.execute(
        f"INSERT INTO {quote(table or rt.table)} ({', '.join(quote(n) for n in names)}) "
        f"VALUES ({placeholders})",
        [record_id] + [values[c] for c in columns],
    )
    values[ID_COLUMN] = record_id
    return values
