"""
Domain entities exposed to collaborators.

Snapshots are immutable copies detached from the store: a caller can hold
them across its own scheduling boundaries without touching the database
again.

Invariants:
    - A collection owns zero or more items; deleting it deletes them
    - Collections are ordered by an explicit sort_order
    - Items are ordered newest first (derived from created_at, not stored)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional

DEFAULT_ICON = "folder.fill"
DEFAULT_COLOR_HEX = "007AFF"


class ItemKind(str, Enum):
    """Discriminator for item payloads."""

    TEXT = "text"
    LINK = "link"
    IMAGE = "image"


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def validate_item_payload(
    kind: ItemKind,
    text: Optional[str] = None,
    url: Optional[str] = None,
    title: Optional[str] = None,
) -> List[str]:
    """Check the kind-specific payload rules.

    Returns:
        List of problems (empty when valid)
    """
    if kind == ItemKind.TEXT and _blank(text):
        return ["text items need non-blank text"]
    if kind == ItemKind.LINK and _blank(url) and _blank(title):
        return ["link items need a url or a title"]
    if kind == ItemKind.IMAGE and _blank(title) and _blank(url):
        return ["image items need a title or a url"]
    return []


@dataclass(frozen=True)
class CollectionSnapshot:
    """Read-only view of a collection.

    Attributes:
        id: Collection identifier (UUID)
        name: Display name
        icon: Symbol name
        color_hex: RGB colour without '#'
        sort_order: Position among collections
        created_at: Creation timestamp (Unix ms)
    """

    id: str
    name: str
    icon: str = DEFAULT_ICON
    color_hex: str = DEFAULT_COLOR_HEX
    sort_order: int = 0
    created_at: int = 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CollectionSnapshot:
        return cls(
            id=record["id"],
            name=record["name"],
            icon=record.get("icon") or DEFAULT_ICON,
            color_hex=record.get("color_hex") or DEFAULT_COLOR_HEX,
            sort_order=record.get("sort_order") or 0,
            created_at=record["created_at"],
        )


@dataclass(frozen=True)
class ItemSnapshot:
    """Read-only view of an item.

    Attributes:
        id: Item identifier (UUID)
        kind: text, link or image
        collection_id: Owning collection
        created_at: Creation timestamp (Unix ms)
        text: Body of a text item
        url: Target of a link item (or image source)
        title: Title of a link or image
        subtitle: Secondary line (schema 1.1.0 and later)
        collection_name: Name of the owning collection, when joined
    """

    id: str
    kind: ItemKind
    collection_id: str
    created_at: int
    text: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    collection_name: Optional[str] = None

    @property
    def display_text(self) -> str:
        """Single line shown for the item."""
        if self.kind == ItemKind.TEXT:
            return self.text or "Note"
        if self.kind == ItemKind.LINK:
            return self.title or self.url or "Link"
        return self.title or "Image"

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        collection_name: Optional[str] = None,
    ) -> ItemSnapshot:
        return cls(
            id=record["id"],
            kind=ItemKind(record["kind"]),
            collection_id=record["collection_id"],
            created_at=record["created_at"],
            text=record.get("text"),
            url=record.get("url"),
            title=record.get("title"),
            subtitle=record.get("subtitle"),
            collection_name=collection_name,
        )
