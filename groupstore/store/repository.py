"""
Repository: all SQL for collections and items.

A Repository wraps one connection and one schema version. It never opens
or commits a transaction itself; the access managers decide transaction
boundaries and hand a Repository to the caller's body.

Invariants:
    - Records are validated against the schema before insert
    - An item may only reference an existing collection
    - Deleting a collection deletes its items in the same transaction
    - New collections are appended: sort_order = number of collections
"""

from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence

from ..errors import ConstraintViolationError
from ..migrate import ddl
from ..schema.types import ID_COLUMN, RecordTypeDef, SchemaVersion
from .models import (
    DEFAULT_COLOR_HEX,
    DEFAULT_ICON,
    CollectionSnapshot,
    ItemKind,
    ItemSnapshot,
    validate_item_payload,
)

logger = logging.getLogger(__name__)

COLLECTION_TYPE = "Collection"
ITEM_TYPE = "Item"

# Newest first; rowid breaks ties inside one millisecond
ITEM_ORDER = "created_at DESC, rowid DESC"
COLLECTION_ORDER = "sort_order ASC, created_at ASC, rowid ASC"


def now_ms() -> int:
    return int(time.time() * 1000)


class Repository:
    """Typed access to the records of one open store.

    Example:
        >>> def body(repo):
        ...     inbox = repo.create_collection("Inbox")
        ...     return repo.add_item(inbox.id, ItemKind.TEXT, text="hello")
        >>> item = await writer.with_transaction(body)
    """

    def __init__(self, conn: sqlite3.Connection, schema: SchemaVersion) -> None:
        self.conn = conn
        self.schema = schema

    def record_type(self, name: str) -> RecordTypeDef:
        return self.schema.require_record_type(name)

    # ------------------------------------------------------------------
    # Generic records
    # ------------------------------------------------------------------

    def insert(
        self,
        type_name: str,
        values: Dict[str, Any],
        record_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert a record of any registered type.

        Raises:
            ConstraintViolationError: If the record fails validation
        """
        rt = self.record_type(type_name)
        ok, errors = rt.validate_record(rt.apply_defaults(values))
        if not ok:
            raise ConstraintViolationError(f"Invalid {type_name} record", errors)
        record = dict(values)
        record[ID_COLUMN] = record_id or str(uuid.uuid4())
        return ddl.insert_record(self.conn, rt, record)

    def records(self, type_name: str) -> List[Dict[str, Any]]:
        """All records of a type in insertion order."""
        return ddl.select_records(self.conn, self.record_type(type_name).table)

    def count(self, type_name: str) -> int:
        table = ddl.quote(self.record_type(type_name).table)
        return self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def create_collection(
        self,
        name: str,
        icon: Optional[str] = None,
        color_hex: Optional[str] = None,
    ) -> CollectionSnapshot:
        """Append a collection after the existing ones.

        Raises:
            ConstraintViolationError: If the name is blank
        """
        name = (name or "").strip()
        if not name:
            raise ConstraintViolationError("Collection name cannot be blank", ["name is blank"])
        record = self.insert(
            COLLECTION_TYPE,
            {
                "name": name,
                "icon": icon or DEFAULT_ICON,
                "color_hex": color_hex or DEFAULT_COLOR_HEX,
                "sort_order": self.count(COLLECTION_TYPE),
                "created_at": now_ms(),
            },
        )
        return CollectionSnapshot.from_record(record)

    def get_collection(self, collection_id: str) -> Optional[CollectionSnapshot]:
        rows = ddl.select_records(
            self.conn,
            self.record_type(COLLECTION_TYPE).table,
            where="id = ?",
            params=(collection_id,),
        )
        return CollectionSnapshot.from_record(rows[0]) if rows else None

    def list_collections(self) -> List[CollectionSnapshot]:
        rows = ddl.select_records(
            self.conn,
            self.record_type(COLLECTION_TYPE).table,
            order_by=COLLECTION_ORDER,
        )
        return [CollectionSnapshot.from_record(r) for r in rows]

    def reorder_collections(self, ordered_ids: Sequence[str]) -> List[CollectionSnapshot]:
        """Assign sort_order 0..n-1 following ``ordered_ids``.

        Raises:
            ConstraintViolationError: If the ids are not exactly the existing ones
        """
        existing = {c.id for c in self.list_collections()}
        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != existing:
            raise ConstraintViolationError(
                "Reorder must list every collection exactly once",
                [f"expected {len(existing)} distinct ids, got {list(ordered_ids)}"],
            )
        table = ddl.quote(self.record_type(COLLECTION_TYPE).table)
        self.conn.executemany(
            f"UPDATE {table} SET sort_order = ? WHERE id = ?",
            [(position, cid) for position, cid in enumerate(ordered_ids)],
        )
        return self.list_collections()

    def delete_collection(self, collection_id: str) -> int:
        """Delete a collection and every item it owns.

        Returns:
            Number of items deleted, or -1 if the collection did not exist
        """
        items = ddl.quote(self.record_type(ITEM_TYPE).table)
        collections = ddl.quote(self.record_type(COLLECTION_TYPE).table)
        if self.get_collection(collection_id) is None:
            return -1
        cursor = self.conn.execute(
            f"DELETE FROM {items} WHERE collection_id = ?", (collection_id,)
        )
        deleted_items = cursor.rowcount
        self.conn.execute(f"DELETE FROM {collections} WHERE id = ?", (collection_id,))
        logger.debug(
            "Deleted collection",
            extra={"collection_id": collection_id, "items_deleted": deleted_items},
        )
        return deleted_items

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(
        self,
        collection_id: str,
        kind: ItemKind,
        text: Optional[str] = None,
        url: Optional[str] = None,
        title: Optional[str] = None,
        subtitle: Optional[str] = None,
        created_at: Optional[int] = None,
    ) -> ItemSnapshot:
        """Add an item to an existing collection.

        Raises:
            ConstraintViolationError: If the payload does not fit ``kind`` or
                the collection does not exist
        """
        kind = ItemKind(kind)
        problems = validate_item_payload(kind, text=text, url=url, title=title)
        if problems:
            raise ConstraintViolationError(f"Invalid {kind.value} item", problems)

        collection = self.get_collection(collection_id)
        if collection is None:
            raise ConstraintViolationError(
                f"Collection {collection_id} does not exist",
                [f"unknown collection_id {collection_id}"],
            )

        values: Dict[str, Any] = {
            "kind": kind.value,
            "text": text,
            "url": url,
            "title": title,
            "collection_id": collection_id,
            "created_at": created_at if created_at is not None else now_ms(),
        }
        if subtitle is not None:
            values["subtitle"] = subtitle
        record = self.insert(ITEM_TYPE, values)
        return ItemSnapshot.from_record(record, collection_name=collection.name)

    def delete_item(self, item_id: str) -> bool:
        table = ddl.quote(self.record_type(ITEM_TYPE).table)
        cursor = self.conn.execute(f"DELETE FROM {table} WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    def items(
        self,
        collection_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ItemSnapshot]:
        """Items newest first, optionally for one collection."""
        table = self.record_type(ITEM_TYPE).table
        if collection_id is None:
            rows = ddl.select_records(self.conn, table, order_by=ITEM_ORDER, limit=limit)
        else:
            rows = ddl.select_records(
                self.conn,
                table,
                where="collection_id = ?",
                params=(collection_id,),
                order_by=ITEM_ORDER,
                limit=limit,
            )
        names = {c.id: c.name for c in self.list_collections()}
        return [ItemSnapshot.from_record(r, collection_name=names.get(r["collection_id"])) for r in rows]
