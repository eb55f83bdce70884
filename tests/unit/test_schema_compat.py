"""
Unit tests for schema compatibility checking.

Tests cover:
- Additive changes (automatic migration)
- Breaking changes (custom step required)
- Shipped-version checks against a lockfile registry
"""

import pytest

from groupstore.schema.compat import (
    ChangeKind,
    CompatibilityError,
    check_compatibility,
    check_shipped_versions,
    generate_fingerprint,
    validate_breaking_changes,
)
from groupstore.schema.registry import VersionRegistry
from groupstore.schema.types import RecordTypeDef, SchemaVersion, VersionId, field
from groupstore.schema.versions import SCHEMA_V1_0_0, SCHEMA_V1_1_0

from tests.factories import NOTE_SCHEMAS, NOTE_V1, NV1, NV2


def _version(major, *record_types):
    return SchemaVersion(VersionId(major), tuple(record_types))


def _kinds(changes):
    return {c.kind for c in changes}


class TestCheckCompatibility:
    """Tests for check_compatibility."""

    def test_identical_versions(self):
        assert check_compatibility(SCHEMA_V1_1_0, SCHEMA_V1_1_0) == []

    def test_shipped_chain_is_additive(self):
        changes = check_compatibility(SCHEMA_V1_0_0, SCHEMA_V1_1_0)
        assert len(changes) == 1
        assert changes[0].kind == ChangeKind.FIELD_ADDED
        assert changes[0].path == "Item.field:subtitle"
        assert not changes[0].is_breaking

    def test_record_type_added_is_safe(self):
        extra = RecordTypeDef("Tag", "tags", (field("label", "str"),))
        changes = check_compatibility(_version(1, NOTE_V1), _version(2, NOTE_V1, extra))
        assert _kinds(changes) == {ChangeKind.RECORD_TYPE_ADDED}

    def test_record_type_removed_is_breaking(self):
        changes = check_compatibility(NOTE_SCHEMAS[NV1], _version(2))
        assert changes[0].kind == ChangeKind.RECORD_TYPE_REMOVED
        assert changes[0].is_breaking

    def test_required_field_without_default_is_breaking(self):
        new = RecordTypeDef("Note", "notes", NOTE_V1.fields + (field("rank", "int", required=True),))
        changes = check_compatibility(NOTE_SCHEMAS[NV1], _version(2, new))
        assert _kinds(changes) == {ChangeKind.REQUIRED_FIELD_ADDED}

    def test_required_field_with_default_is_safe(self):
        new = RecordTypeDef(
            "Note", "notes", NOTE_V1.fields + (field("rank", "int", required=True, default=1),)
        )
        changes = check_compatibility(NOTE_SCHEMAS[NV1], _version(2, new))
        assert _kinds(changes) == {ChangeKind.FIELD_ADDED}

    def test_field_kind_change_is_breaking(self):
        new = RecordTypeDef("Note", "notes", (field("name", "int", required=True),))
        changes = check_compatibility(NOTE_SCHEMAS[NV1], _version(2, new))
        assert ChangeKind.FIELD_KIND_CHANGED in _kinds(changes)

    def test_field_removed_and_table_renamed(self):
        new = RecordTypeDef("Note", "memos", ())
        kinds = _kinds(check_compatibility(NOTE_SCHEMAS[NV1], _version(2, new)))
        assert {ChangeKind.FIELD_REMOVED, ChangeKind.TABLE_RENAMED} <= kinds

    def test_optional_to_required_is_breaking(self):
        old = RecordTypeDef("Note", "notes", (field("name", "str"),))
        new = RecordTypeDef("Note", "notes", (field("name", "str", required=True),))
        changes = check_compatibility(_version(1, old), _version(2, new))
        assert _kinds(changes) == {ChangeKind.REQUIRED_ADDED}

    def test_enum_changes(self):
        def note(values):
            return RecordTypeDef("Note", "notes", (field("k", "enum", enum_values=values),))

        added = check_compatibility(_version(1, note(("a", "b"))), _version(2, note(("a", "b", "c"))))
        assert _kinds(added) == {ChangeKind.ENUM_VALUE_ADDED}

        removed = check_compatibility(_version(1, note(("a", "b"))), _version(2, note(("a",))))
        assert ChangeKind.ENUM_VALUE_REMOVED in _kinds(removed)

        reordered = check_compatibility(_version(1, note(("a", "b"))), _version(2, note(("b", "a"))))
        assert _kinds(reordered) == {ChangeKind.ENUM_VALUE_REORDERED}

    def test_index_added_is_safe(self):
        new = RecordTypeDef("Note", "notes", (field("name", "str", required=True, indexed=True),))
        changes = check_compatibility(NOTE_SCHEMAS[NV1], _version(2, new))
        assert _kinds(changes) == {ChangeKind.INDEX_ADDED}
        assert not changes[0].is_breaking

    def test_validate_breaking_changes_raises(self):
        with pytest.raises(CompatibilityError) as exc_info:
            validate_breaking_changes(NOTE_SCHEMAS[NV1], _version(2))
        assert len(exc_info.value.changes) == 1

    def test_validate_breaking_changes_passes(self):
        validate_breaking_changes(NOTE_SCHEMAS[NV1], NOTE_SCHEMAS[NV2])


class TestShippedVersions:
    """Tests for check_shipped_versions."""

    def _registry(self, *versions):
        registry = VersionRegistry()
        for v in versions:
            registry.register(v)
        return registry

    def test_appending_is_allowed(self):
        baseline = self._registry(SCHEMA_V1_0_0)
        current = self._registry(SCHEMA_V1_0_0, SCHEMA_V1_1_0)
        changes = check_shipped_versions(baseline, current)
        assert _kinds(changes) == {ChangeKind.VERSION_ADDED}
        assert not any(c.is_breaking for c in changes)

    def test_removed_version_is_breaking(self):
        baseline = self._registry(SCHEMA_V1_0_0, SCHEMA_V1_1_0)
        current = self._registry(SCHEMA_V1_1_0)
        changes = check_shipped_versions(baseline, current)
        assert [c.kind for c in changes] == [ChangeKind.VERSION_REMOVED]
        assert changes[0].is_breaking

    def test_modified_version_is_breaking(self):
        edited = SchemaVersion(SCHEMA_V1_0_0.version, SCHEMA_V1_0_0.record_types, "edited")
        changes = check_shipped_versions(
            self._registry(SCHEMA_V1_0_0), self._registry(edited)
        )
        assert [c.kind for c in changes] == [ChangeKind.VERSION_MODIFIED]

    def test_fingerprint_format(self):
        assert generate_fingerprint(SCHEMA_V1_0_0).startswith("sha256:")
        assert generate_fingerprint(SCHEMA_V1_0_0) != generate_fingerprint(SCHEMA_V1_1_0)
