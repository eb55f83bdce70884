"""
Unit tests for domain snapshots and payload rules.
"""

import pytest

from groupstore.store.models import (
    CollectionSnapshot,
    ItemKind,
    ItemSnapshot,
    validate_item_payload,
)


def _item(kind, **kwargs):
    return ItemSnapshot(id="i1", kind=kind, collection_id="c1", created_at=1, **kwargs)


class TestDisplayText:
    """Tests for ItemSnapshot.display_text."""

    def test_text_item(self):
        assert _item(ItemKind.TEXT, text="Buy milk").display_text == "Buy milk"
        assert _item(ItemKind.TEXT).display_text == "Note"

    def test_link_prefers_title(self):
        assert _item(ItemKind.LINK, url="https://a.example", title="A").display_text == "A"
        assert _item(ItemKind.LINK, url="https://a.example").display_text == "https://a.example"
        assert _item(ItemKind.LINK).display_text == "Link"

    def test_image_item(self):
        assert _item(ItemKind.IMAGE, title="Sunset").display_text == "Sunset"
        assert _item(ItemKind.IMAGE, url="file:///x.png").display_text == "Image"


class TestPayloadRules:
    """Tests for validate_item_payload."""

    @pytest.mark.parametrize(
        "kind,kwargs",
        [
            (ItemKind.TEXT, {"text": "hello"}),
            (ItemKind.LINK, {"url": "https://example.com"}),
            (ItemKind.LINK, {"title": "Example"}),
            (ItemKind.IMAGE, {"title": "Photo"}),
            (ItemKind.IMAGE, {"url": "file:///photo.jpg"}),
        ],
    )
    def test_valid(self, kind, kwargs):
        assert validate_item_payload(kind, **kwargs) == []

    @pytest.mark.parametrize(
        "kind,kwargs",
        [
            (ItemKind.TEXT, {}),
            (ItemKind.TEXT, {"text": "   "}),
            (ItemKind.LINK, {"url": "", "title": " "}),
            (ItemKind.IMAGE, {}),
        ],
    )
    def test_invalid(self, kind, kwargs):
        assert len(validate_item_payload(kind, **kwargs)) == 1


class TestFromRecord:
    """Tests for snapshot construction from raw records."""

    def test_collection_defaults(self):
        snapshot = CollectionSnapshot.from_record(
            {"id": "c1", "name": "Inbox", "icon": None, "color_hex": None, "created_at": 3}
        )
        assert snapshot.icon == "folder.fill"
        assert snapshot.color_hex == "007AFF"
        assert snapshot.sort_order == 0

    def test_item_from_pre_subtitle_record(self):
        snapshot = ItemSnapshot.from_record(
            {"id": "i1", "kind": "link", "collection_id": "c1", "created_at": 2, "url": "u"},
            collection_name="Inbox",
        )
        assert snapshot.kind is ItemKind.LINK
        assert snapshot.subtitle is None
        assert snapshot.collection_name == "Inbox"
