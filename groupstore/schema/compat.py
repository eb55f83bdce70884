"""
Schema compatibility checking for groupstore.

This module classifies the differences between two schema versions and
between a lockfile and the running registry:
- Additive changes (new record types, new optional fields) migrate
  automatically: new tables and new columns with defaults
- Everything else is breaking and needs a custom migration step
- Shipped versions may never be removed or modified

Invariants:
    - An automatic migration step may only span non-breaking changes
    - A lockfile version must match the registry byte-for-byte (fingerprint)

Example:
    >>> changes = check_compatibility(v1, v2)
    >>> breaking = [c for c in changes if c.is_breaking]
    >>> if breaking:
    ...     raise CompatibilityError(breaking)
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Dict, Any
import logging

from .registry import VersionRegistry
from .types import SchemaVersion

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Types of schema changes."""
    # Non-breaking changes (automatic)
    RECORD_TYPE_ADDED = auto()
    FIELD_ADDED = auto()
    DESCRIPTION_CHANGED = auto()
    ENUM_VALUE_ADDED = auto()
    INDEX_ADDED = auto()
    INDEX_REMOVED = auto()
    VERSION_ADDED = auto()

    # Breaking changes (custom step required)
    RECORD_TYPE_REMOVED = auto()
    TABLE_RENAMED = auto()
    FIELD_REMOVED = auto()
    FIELD_KIND_CHANGED = auto()
    REQUIRED_FIELD_ADDED = auto()  # New required field without a default
    REQUIRED_ADDED = auto()  # Making optional field required
    ENUM_VALUE_REMOVED = auto()
    ENUM_VALUE_REORDERED = auto()
    REF_TYPE_CHANGED = auto()

    # Shipped-version violations (never allowed)
    VERSION_REMOVED = auto()
    VERSION_MODIFIED = auto()

    @property
    def is_breaking(self) -> bool:
        """Whether this change kind is a breaking change."""
        breaking_kinds = {
            ChangeKind.RECORD_TYPE_REMOVED,
            ChangeKind.TABLE_RENAMED,
            ChangeKind.FIELD_REMOVED,
            ChangeKind.FIELD_KIND_CHANGED,
            ChangeKind.REQUIRED_FIELD_ADDED,
            ChangeKind.REQUIRED_ADDED,
            ChangeKind.ENUM_VALUE_REMOVED,
            ChangeKind.ENUM_VALUE_REORDERED,
            ChangeKind.REF_TYPE_CHANGED,
            ChangeKind.VERSION_REMOVED,
            ChangeKind.VERSION_MODIFIED,
        }
        return self in breaking_kinds


@dataclass
class SchemaChange:
    """Represents a single schema change between versions.

    Attributes:
        kind: The type of change
        path: Path to the changed element (e.g., "Item.field:subtitle")
        old_value: Previous value (if applicable)
        new_value: New value (if applicable)
        message: Human-readable description of the change
    """
    kind: ChangeKind
    path: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    message: str = ""

    @property
    def is_breaking(self) -> bool:
        """Whether this is a breaking change."""
        return self.kind.is_breaking

    @property
    def record_type(self) -> str:
        """Name of the record type this change belongs to."""
        return self.path.split(".", 1)[0]

    def __str__(self) -> str:
        status = "BREAKING" if self.is_breaking else "OK"
        return f"[{status}] {self.kind.name}: {self.path} - {self.message}"


class CompatibilityError(Exception):
    """Raised when breaking schema changes are detected.

    Attributes:
        changes: List of breaking changes detected
    """

    def __init__(self, changes: List[SchemaChange]):
        self.changes = changes
        messages = [str(c) for c in changes]
        super().__init__(
            f"Schema compatibility check failed with {len(changes)} breaking change(s):\n"
            + "\n".join(messages)
        )


def check_compatibility(
    old_version: SchemaVersion,
    new_version: SchemaVersion,
) -> List[SchemaChange]:
    """Check compatibility between two schema versions.

    Args:
        old_version: The version stored on disk
        new_version: The version to migrate to

    Returns:
        List of SchemaChange objects describing all differences
    """
    changes: List[SchemaChange] = []

    old_dict = old_version.to_dict()
    new_dict = new_version.to_dict()

    old_types: Dict[str, dict] = {rt["name"]: rt for rt in old_dict["record_types"]}
    new_types: Dict[str, dict] = {rt["name"]: rt for rt in new_dict["record_types"]}

    for name, old_type in old_types.items():
        if name not in new_types:
            changes.append(SchemaChange(
                kind=ChangeKind.RECORD_TYPE_REMOVED,
                path=name,
                old_value=old_type["table"],
                message=f"Record type '{name}' was removed"
            ))

    for name, new_type in new_types.items():
        if name not in old_types:
            changes.append(SchemaChange(
                kind=ChangeKind.RECORD_TYPE_ADDED,
                path=name,
                new_value=new_type["table"],
                message=f"Record type '{name}' added"
            ))
        else:
            changes.extend(_check_record_type_diff(old_types[name], new_type))

    return changes


def _check_record_type_diff(old_type: dict, new_type: dict) -> List[SchemaChange]:
    """Check differences between two versions of a record type."""
    changes: List[SchemaChange] = []
    path_prefix = old_type["name"]

    if old_type["table"] != new_type["table"]:
        changes.append(SchemaChange(
            kind=ChangeKind.TABLE_RENAMED,
            path=path_prefix,
            old_value=old_type["table"],
            new_value=new_type["table"],
            message=f"Table renamed from '{old_type['table']}' to '{new_type['table']}'"
        ))

    if old_type.get("description", "") != new_type.get("description", ""):
        changes.append(SchemaChange(
            kind=ChangeKind.DESCRIPTION_CHANGED,
            path=path_prefix,
            old_value=old_type.get("description", ""),
            new_value=new_type.get("description", ""),
            message="Description changed"
        ))

    old_fields = {f["name"]: f for f in old_type.get("fields", [])}
    new_fields = {f["name"]: f for f in new_type.get("fields", [])}

    for name, old_field in old_fields.items():
        if name not in new_fields:
            changes.append(SchemaChange(
                kind=ChangeKind.FIELD_REMOVED,
                path=f"{path_prefix}.field:{name}",
                old_value=old_field["kind"],
                message=f"Field '{name}' was removed"
            ))

    for name, new_field in new_fields.items():
        if name not in old_fields:
            if new_field.get("required") and new_field.get("default") is None:
                changes.append(SchemaChange(
                    kind=ChangeKind.REQUIRED_FIELD_ADDED,
                    path=f"{path_prefix}.field:{name}",
                    new_value=new_field["kind"],
                    message=f"Required field '{name}' added without a default"
                ))
            else:
                changes.append(SchemaChange(
                    kind=ChangeKind.FIELD_ADDED,
                    path=f"{path_prefix}.field:{name}",
                    new_value=new_field.get("default"),
                    message=f"Field '{name}' added (default {new_field.get('default')!r})"
                ))
        else:
            changes.extend(_check_field_diff(
                old_fields[name], new_field, f"{path_prefix}.field:{name}"
            ))

    return changes


def _check_field_diff(old_field: dict, new_field: dict, path: str) -> List[SchemaChange]:
    """Check differences between two versions of a field."""
    changes: List[SchemaChange] = []

    if old_field["kind"] != new_field["kind"]:
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_KIND_CHANGED,
            path=path,
            old_value=old_field["kind"],
            new_value=new_field["kind"],
            message=f"Field kind changed from '{old_field['kind']}' to '{new_field['kind']}'"
        ))

    if not old_field.get("required", False) and new_field.get("required", False):
        changes.append(SchemaChange(
            kind=ChangeKind.REQUIRED_ADDED,
            path=path,
            message=f"Field '{old_field['name']}' changed from optional to required"
        ))

    if old_field.get("ref_type") != new_field.get("ref_type"):
        changes.append(SchemaChange(
            kind=ChangeKind.REF_TYPE_CHANGED,
            path=path,
            old_value=old_field.get("ref_type"),
            new_value=new_field.get("ref_type"),
            message="Reference target changed"
        ))

    old_enum = old_field.get("enum_values", [])
    new_enum = new_field.get("enum_values", [])
    if old_enum or new_enum:
        changes.extend(_check_enum_values(old_enum, new_enum, path))

    if old_field.get("indexed", False) != new_field.get("indexed", False):
        kind = ChangeKind.INDEX_ADDED if new_field.get("indexed") else ChangeKind.INDEX_REMOVED
        changes.append(SchemaChange(
            kind=kind,
            path=path,
            message=f"Index {'added to' if new_field.get('indexed') else 'removed from'} "
                    f"field '{old_field['name']}'"
        ))

    if old_field.get("description", "") != new_field.get("description", ""):
        changes.append(SchemaChange(
            kind=ChangeKind.DESCRIPTION_CHANGED,
            path=path,
            message="Description changed"
        ))

    return changes


def _check_enum_values(
    old_values: List[str],
    new_values: List[str],
    path: str,
) -> List[SchemaChange]:
    """Check enum value changes."""
    changes: List[SchemaChange] = []

    old_set = set(old_values)
    new_set = set(new_values)
    removed = old_set - new_set
    for value in sorted(removed):
        changes.append(SchemaChange(
            kind=ChangeKind.ENUM_VALUE_REMOVED,
            path=path,
            old_value=value,
            message=f"Enum value '{value}' was removed"
        ))

    added = new_set - old_set
    for value in sorted(added):
        changes.append(SchemaChange(
            kind=ChangeKind.ENUM_VALUE_ADDED,
            path=path,
            new_value=value,
            message=f"Enum value '{value}' was added"
        ))

    # Existing values must keep their positions
    if not removed and list(new_values[:len(old_values)]) != list(old_values):
        changes.append(SchemaChange(
            kind=ChangeKind.ENUM_VALUE_REORDERED,
            path=path,
            old_value=old_values,
            new_value=new_values,
            message="Enum values were reordered"
        ))

    return changes


def check_shipped_versions(
    baseline: VersionRegistry,
    current: VersionRegistry,
) -> List[SchemaChange]:
    """Compare a lockfile registry with the running registry.

    Every version in the baseline has shipped to users; it must still be
    registered and must be unchanged.

    Args:
        baseline: Registry loaded from the committed lockfile
        current: Registry built by the running code

    Returns:
        List of changes (VERSION_REMOVED / VERSION_MODIFIED are breaking)
    """
    changes: List[SchemaChange] = []

    for shipped in baseline.all_versions():
        label = f"Schema:{shipped.version}"
        now = current.get(shipped.version)
        if now is None:
            changes.append(SchemaChange(
                kind=ChangeKind.VERSION_REMOVED,
                path=label,
                old_value=str(shipped.version),
                message=f"Shipped schema {shipped.version} was removed from the registry"
            ))
        elif generate_fingerprint(now) != generate_fingerprint(shipped):
            changes.append(SchemaChange(
                kind=ChangeKind.VERSION_MODIFIED,
                path=label,
                old_value=generate_fingerprint(shipped),
                new_value=generate_fingerprint(now),
                message=f"Shipped schema {shipped.version} was modified"
            ))

    for version in current.all_versions():
        if version.version not in baseline:
            changes.append(SchemaChange(
                kind=ChangeKind.VERSION_ADDED,
                path=f"Schema:{version.version}",
                new_value=str(version.version),
                message=f"Schema {version.version} added"
            ))

    return changes


def generate_fingerprint(version: SchemaVersion) -> str:
    """Generate a fingerprint for one schema version.

    Args:
        version: The schema version to fingerprint

    Returns:
        Fingerprint string in format 'sha256:<hash>'
    """
    canonical = json.dumps(version.to_dict(), sort_keys=True, separators=(',', ':'))
    hash_bytes = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
    return f"sha256:{hash_bytes}"


def validate_breaking_changes(
    old_version: SchemaVersion,
    new_version: SchemaVersion,
) -> None:
    """Validate that there are no breaking changes between two versions.

    Raises:
        CompatibilityError: If breaking changes are detected
    """
    changes = check_compatibility(old_version, new_version)
    breaking = [c for c in changes if c.is_breaking]
    if breaking:
        raise CompatibilityError(breaking)
    logger.info(
        f"Schema {old_version.version} -> {new_version.version} compatible "
        f"with {len(changes)} non-breaking changes"
    )
