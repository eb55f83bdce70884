"""
Unit tests for the version registry.

Tests cover:
- Append-only registration
- Freezing and fingerprints
- Lockfile serialization
"""

import pytest

from groupstore.schema.registry import (
    DuplicateRegistrationError,
    RegistryFrozenError,
    RegistryOrderError,
    VersionRegistry,
)
from groupstore.schema.versions import SCHEMA_V1_0_0, SCHEMA_V1_1_0, build_registry

from tests.factories import NOTE_SCHEMAS, NV1, NV2, NV3


class TestVersionRegistry:
    """Tests for VersionRegistry."""

    def test_current_version_is_highest(self):
        registry = VersionRegistry()
        registry.register(SCHEMA_V1_0_0)
        registry.register(SCHEMA_V1_1_0)
        assert registry.current_version() is SCHEMA_V1_1_0
        assert [v.version for v in registry.all_versions()] == [
            SCHEMA_V1_0_0.version,
            SCHEMA_V1_1_0.version,
        ]

    def test_empty_registry_has_no_current(self):
        with pytest.raises(LookupError):
            VersionRegistry().current_version()

    def test_duplicate_rejected(self):
        registry = VersionRegistry()
        registry.register(SCHEMA_V1_0_0)
        with pytest.raises(DuplicateRegistrationError):
            registry.register(SCHEMA_V1_0_0)

    def test_older_version_rejected(self):
        registry = VersionRegistry()
        registry.register(SCHEMA_V1_1_0)
        with pytest.raises(RegistryOrderError):
            registry.register(SCHEMA_V1_0_0)

    def test_frozen_registry_rejects_registration(self):
        registry = VersionRegistry()
        registry.register(NOTE_SCHEMAS[NV1])
        fingerprint = registry.freeze()
        assert fingerprint.startswith("sha256:")
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register(NOTE_SCHEMAS[NV2])
        with pytest.raises(RegistryFrozenError):
            registry.freeze()

    def test_next_after(self):
        registry = VersionRegistry()
        for v in (NV1, NV2, NV3):
            registry.register(NOTE_SCHEMAS[v])
        assert registry.next_after(NV1) == NV2
        assert registry.next_after(NV3) is None
        assert NV2 in registry
        assert len(registry) == 3

    def test_fingerprint_is_deterministic(self):
        assert build_registry().fingerprint == build_registry().fingerprint

    def test_fingerprint_changes_with_content(self):
        one = VersionRegistry()
        one.register(NOTE_SCHEMAS[NV1])
        two = VersionRegistry()
        two.register(NOTE_SCHEMAS[NV1])
        two.register(NOTE_SCHEMAS[NV2])
        assert one.freeze() != two.freeze()

    def test_json_round_trip(self):
        registry = build_registry()
        restored = VersionRegistry.from_json(registry.to_json())
        restored.freeze()
        assert restored.fingerprint == registry.fingerprint
        assert restored.version_ids() == registry.version_ids()
