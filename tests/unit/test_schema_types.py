"""
Unit tests for schema type definitions.

Tests cover:
- Field validation and defaults
- Record type validation
- Version identifiers
- Schema version consistency checks
"""

import pytest

from groupstore.schema.types import (
    FieldDef,
    FieldKind,
    RecordTypeDef,
    SchemaVersion,
    VersionId,
    field,
)
from groupstore.schema.versions import COLLECTION_V1, ITEM_V1, ITEM_V1_1, SCHEMA_V1_1_0


class TestFieldDef:
    """Tests for FieldDef."""

    def test_field_helper_parses_kind(self):
        f = field("title", "str")
        assert f.kind == FieldKind.STRING
        assert not f.required

    def test_invalid_name_rejected(self):
        with pytest.raises(ValueError, match="valid identifier"):
            field("not a name", "str")

    def test_reserved_id_rejected(self):
        with pytest.raises(ValueError, match="reserved"):
            field("id", "str")

    def test_enum_requires_values(self):
        with pytest.raises(ValueError, match="enum_values required"):
            field("kind", "enum")

    def test_ref_requires_target(self):
        with pytest.raises(ValueError, match="ref_type required"):
            field("owner", "ref")

    def test_invalid_default_rejected(self):
        with pytest.raises(ValueError, match="Invalid default"):
            field("count", "int", default="three")

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Invalid field kind"):
            FieldKind.from_str("blob")

    def test_validate_value(self):
        f = field("count", "int", required=True)
        assert f.validate_value(3) == (True, None)
        assert f.validate_value(True)[0] is False
        ok, error = f.validate_value(None)
        assert not ok
        assert "required" in error

    def test_enum_value_validation(self):
        f = field("kind", "enum", enum_values=("text", "link"))
        assert f.validate_value("link")[0]
        assert not f.validate_value("video")[0]

    def test_is_additive(self):
        assert field("a", "str").is_additive
        assert field("b", "int", required=True, default=0).is_additive
        assert not field("c", "int", required=True).is_additive

    def test_round_trip_dict(self):
        f = field("kind", "enum", required=True, enum_values=("a", "b"), indexed=True)
        assert FieldDef.from_dict(f.to_dict()) == f


class TestRecordTypeDef:
    """Tests for RecordTypeDef."""

    def test_duplicate_field_rejected(self):
        with pytest.raises(ValueError, match="Duplicate field"):
            RecordTypeDef("T", "t", (field("a", "str"), field("a", "int")))

    def test_apply_defaults(self):
        values = COLLECTION_V1.apply_defaults({"name": "Inbox", "created_at": 1})
        assert values["icon"] == "folder.fill"
        assert values["color_hex"] == "007AFF"
        assert values["sort_order"] == 0

    def test_validate_record_reports_unknown_and_missing(self):
        ok, errors = ITEM_V1.validate_record({"kind": "text", "subtitle": "x"})
        assert not ok
        assert any("Unknown fields" in e for e in errors)
        assert any("collection_id" in e for e in errors)

    def test_validate_record_allows_id(self):
        ok, errors = COLLECTION_V1.validate_record(
            {"id": "c1", "name": "Inbox", "created_at": 5}
        )
        assert ok, errors


class TestVersionId:
    """Tests for VersionId."""

    def test_parse_and_str(self):
        assert VersionId.parse("1.1.0") == VersionId(1, 1, 0)
        assert VersionId.parse("2") == VersionId(2, 0, 0)
        assert str(VersionId(1, 2, 3)) == "1.2.3"

    def test_ordering(self):
        assert VersionId(1, 0, 0) < VersionId(1, 0, 1) < VersionId(1, 1, 0) < VersionId(2)

    @pytest.mark.parametrize("text", ["", "a.b", "1.2.3.4", "1..2"])
    def test_parse_rejects_garbage(self, text):
        with pytest.raises(ValueError):
            VersionId.parse(text)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            VersionId(1, -1, 0)


class TestSchemaVersion:
    """Tests for SchemaVersion."""

    def test_unknown_reference_rejected(self):
        with pytest.raises(ValueError, match="unknown record type"):
            SchemaVersion(VersionId(1), (ITEM_V1,))

    def test_duplicate_table_rejected(self):
        other = RecordTypeDef("Other", "items")
        with pytest.raises(ValueError, match="Duplicate table"):
            SchemaVersion(VersionId(1), (COLLECTION_V1, ITEM_V1, other))

    def test_round_trip_dict(self):
        assert SchemaVersion.from_dict(SCHEMA_V1_1_0.to_dict()) == SCHEMA_V1_1_0

    def test_require_record_type(self):
        assert SCHEMA_V1_1_0.require_record_type("Item") == ITEM_V1_1
        with pytest.raises(KeyError):
            SCHEMA_V1_1_0.require_record_type("Folder")
