"""
Ingestion of shared content from the host environment.

The ingestion extension receives already-normalized content (kind plus
text, url, title) from its host and files it into a collection the user
picked. Extraction from the host's share payload happens elsewhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..store.models import CollectionSnapshot, ItemKind, ItemSnapshot
from .write_manager import WriteAccessManager

logger = logging.getLogger(__name__)

FALLBACK_TEXT = "Shared item"
FALLBACK_IMAGE_TITLE = "Shared image"


@dataclass(frozen=True)
class SharedContent:
    """Normalized content handed over by the host.

    Attributes:
        kind: text, link or image
        text: Plain text body
        url: Link target
        title: Link or image title
    """

    kind: ItemKind
    text: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None

    def normalized(self) -> SharedContent:
        """Fill the title of an image that arrived without one."""
        if self.kind == ItemKind.IMAGE and not self.title and not self.url:
            return SharedContent(self.kind, self.text, self.url, FALLBACK_IMAGE_TITLE)
        return self


async def list_destinations(writer: WriteAccessManager) -> List[CollectionSnapshot]:
    """Collections the user can file shared content into, in display order."""
    return await writer.list_collections()


async def save_shared_content(
    writer: WriteAccessManager,
    collection_id: str,
    content: Optional[SharedContent],
) -> ItemSnapshot:
    """File shared content into a collection.

    Content that could not be extracted (None) is saved as the text item
    "Shared item" so the user still sees that something arrived.

    Raises:
        ConstraintViolationError: If the collection does not exist or the
            payload does not fit its kind
        TransactionFailedError: If the write fails
    """
    if content is None:
        content = SharedContent(ItemKind.TEXT, text=FALLBACK_TEXT)
    content = content.normalized()

    item = await writer.add_item(
        collection_id,
        content.kind,
        text=content.text,
        url=content.url,
        title=content.title,
    )
    logger.info(
        "Saved shared content",
        extra={"kind": item.kind.value, "collection_id": collection_id},
    )
    return item
