"""
Schema module for groupstore.

This module provides the versioned record-type system, including:
- Type definitions (RecordTypeDef, FieldDef, VersionId, SchemaVersion)
- The append-only version registry
- Compatibility checking for schema evolution

Invariants:
    - Versions are strictly increasing and registered before first open
    - A shipped version is never modified or removed
    - Field names are stable column names

How to change safely:
    - Register a new SchemaVersion in versions.py
    - Add the matching migration step in the same change
    - Use the schema CLI to verify the lockfile before release
"""

from .compat import (
    ChangeKind,
    CompatibilityError,
    SchemaChange,
    check_compatibility,
    check_shipped_versions,
    generate_fingerprint,
    validate_breaking_changes,
)
from .registry import (
    DuplicateRegistrationError,
    RegistryFrozenError,
    RegistryOrderError,
    VersionRegistry,
)
from .types import (
    FieldDef,
    FieldKind,
    RecordTypeDef,
    SchemaVersion,
    VersionId,
    field,
)

__all__ = [
    # Types
    "FieldDef",
    "FieldKind",
    "RecordTypeDef",
    "SchemaVersion",
    "VersionId",
    "field",
    # Registry
    "VersionRegistry",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
    "RegistryOrderError",
    # Compatibility
    "SchemaChange",
    "ChangeKind",
    "CompatibilityError",
    "check_compatibility",
    "check_shipped_versions",
    "generate_fingerprint",
    "validate_breaking_changes",
]
