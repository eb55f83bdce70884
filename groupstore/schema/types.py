"""
Core type definitions for the groupstore schema system.

This module defines the building blocks of a versioned schema:
- FieldDef: Individual field within a record type
- RecordTypeDef: Definition of a record type (one SQLite table)
- VersionId: Ordered (major, minor, patch) identifier
- SchemaVersion: The set of record types valid at one version

Invariants:
    - Field names are SQL-safe identifiers; they become column names
    - Every record has an implicit ``id`` text primary key
    - A SchemaVersion is immutable once published
    - enum_values are append-only across versions

How to change safely:
    - Never edit a SchemaVersion that has shipped; register a new one
    - Add fields as optional (or with a non-null default)
    - Anything else needs a custom migration step

Example:
    >>> from groupstore.schema.types import RecordTypeDef, field
    >>> Collection = RecordTypeDef(
    ...     name="Collection",
    ...     table="collections",
    ...     fields=(
    ...         field("name", "str", required=True),
    ...         field("sort_order", "int", default=0),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any

ID_COLUMN = "id"


class FieldKind(Enum):
    """Supported field types in the schema.

    These map to SQLite column affinities and validation rules.
    """

    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    TIMESTAMP = "timestamp"  # Unix milliseconds
    ENUM = "enum"  # Enumerated string values
    REFERENCE = "ref"  # id of a record of another type

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Args:
            value: String name of the field kind

        Returns:
            Corresponding FieldKind enum value

        Raises:
            ValueError: If value is not a valid field kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")

    @property
    def sql_type(self) -> str:
        """SQLite column type for this kind."""
        return {
            FieldKind.STRING: "TEXT",
            FieldKind.INTEGER: "INTEGER",
            FieldKind.FLOAT: "REAL",
            FieldKind.BOOLEAN: "INTEGER",
            FieldKind.TIMESTAMP: "INTEGER",
            FieldKind.ENUM: "TEXT",
            FieldKind.REFERENCE: "TEXT",
        }[self]


@dataclass(frozen=True)
class FieldDef:
    """Definition of a single field within a record type.

    Attributes:
        name: Column name (stable; renaming needs a custom step)
        kind: The data type of the field
        required: Whether the field must be present on insert
        default: Value used when an optional field is omitted
        enum_values: Valid values if kind is ENUM (append-only)
        ref_type: Target record type name if kind is REFERENCE
        indexed: Whether to create an index on this field
        description: Human-readable description
    """

    name: str
    kind: FieldKind
    required: bool = False
    default: Any = None
    enum_values: tuple[str, ...] | None = None
    ref_type: str | None = None
    indexed: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if not self.name.isidentifier():
            raise ValueError(f"Field name '{self.name}' must be a valid identifier")
        if self.name == ID_COLUMN:
            raise ValueError(f"Field name '{ID_COLUMN}' is reserved")
        if self.kind == FieldKind.ENUM and not self.enum_values:
            raise ValueError(f"enum_values required for ENUM field '{self.name}'")
        if self.kind == FieldKind.REFERENCE and not self.ref_type:
            raise ValueError(f"ref_type required for REFERENCE field '{self.name}'")
        if self.default is not None:
            ok, error = self.validate_value(self.default)
            if not ok:
                raise ValueError(f"Invalid default for field '{self.name}': {error}")

    @property
    def is_additive(self) -> bool:
        """Whether adding this field to an existing table needs no transform."""
        return not self.required or self.default is not None

    def validate_value(self, value: Any) -> tuple[bool, str | None]:
        """Validate a value against this field definition.

        Args:
            value: The value to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if self.required:
                return False, f"Field '{self.name}' is required"
            return True, None

        validators = {
            FieldKind.STRING: lambda v: isinstance(v, str),
            FieldKind.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
            FieldKind.FLOAT: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
            FieldKind.BOOLEAN: lambda v: isinstance(v, bool) or v in (0, 1),
            FieldKind.TIMESTAMP: lambda v: isinstance(v, int)
            and not isinstance(v, bool)
            and v >= 0,
            FieldKind.REFERENCE: lambda v: isinstance(v, str) and bool(v),
        }

        if self.kind == FieldKind.ENUM:
            if not isinstance(value, str):
                return False, f"Field '{self.name}' must be a string, got {type(value).__name__}"
            if self.enum_values and value not in self.enum_values:
                return (
                    False,
                    f"Field '{self.name}' must be one of {self.enum_values}, got '{value}'",
                )
            return True, None

        validator = validators.get(self.kind)
        if validator and not validator(value):
            return False, f"Field '{self.name}' has invalid type for kind {self.kind.value}"

        return True, None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
        }
        if self.required:
            result["required"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.enum_values:
            result["enum_values"] = list(self.enum_values)
        if self.ref_type is not None:
            result["ref_type"] = self.ref_type
        if self.indexed:
            result["indexed"] = True
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldDef:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            kind=FieldKind.from_str(data["kind"]),
            required=data.get("required", False),
            default=data.get("default"),
            enum_values=tuple(data["enum_values"]) if data.get("enum_values") else None,
            ref_type=data.get("ref_type"),
            indexed=data.get("indexed", False),
            description=data.get("description", ""),
        )


def field(
    name: str,
    kind: str | FieldKind,
    *,
    required: bool = False,
    default: Any = None,
    enum_values: tuple[str, ...] | None = None,
    ref_type: str | None = None,
    indexed: bool = False,
    description: str = "",
) -> FieldDef:
    """Convenience function to create a FieldDef.

    This is the preferred way to define fields in schema versions.

    Example:
        >>> title = field("title", "str")
        >>> kind = field("kind", "enum", required=True, enum_values=("text", "link"))
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return FieldDef(
        name=name,
        kind=kind,
        required=required,
        default=default,
        enum_values=enum_values,
        ref_type=ref_type,
        indexed=indexed,
        description=description,
    )


@dataclass(frozen=True)
class RecordTypeDef:
    """Definition of a record type.

    Each record type is stored in its own table. Records carry an implicit
    ``id`` primary key in addition to the declared fields.

    Attributes:
        name: Record type name (e.g. "Item")
        table: SQLite table name
        fields: Tuple of field definitions
        description: Human-readable description
    """

    name: str
    table: str
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    description: str = ""

    def __post_init__(self) -> None:
        """Validate record type definition."""
        if not self.name:
            raise ValueError("Record type name cannot be empty")
        if not self.table.isidentifier():
            raise ValueError(f"Table name '{self.table}' must be a valid identifier")

        field_names = [f.name for f in self.fields]
        if len(field_names) != len(set(field_names)):
            raise ValueError(f"Duplicate field name in record type '{self.name}'")

    def get_field(self, name: str) -> FieldDef | None:
        """Get a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_field_names(self) -> list[str]:
        """Get list of all field names, in declaration order."""
        return [f.name for f in self.fields]

    def apply_defaults(self, values: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``values`` with defaults for omitted fields."""
        result = dict(values)
        for f in self.fields:
            if f.name not in result or result[f.name] is None:
                result[f.name] = f.default
        return result

    def validate_record(self, values: dict[str, Any]) -> tuple[bool, list[str]]:
        """Validate a record against this type.

        Args:
            values: Field values (``id`` is allowed and ignored)

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors: list[str] = []

        known_names = {f.name for f in self.fields} | {ID_COLUMN}
        unknown = set(values.keys()) - known_names
        if unknown:
            errors.append(f"Unknown fields for {self.name}: {sorted(unknown)}")

        for f in self.fields:
            value = values.get(f.name, f.default)
            is_valid, error = f.validate_value(value)
            if not is_valid and error:
                errors.append(error)

        return len(errors) == 0, errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "name": self.name,
            "table": self.table,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecordTypeDef:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            table=data["table"],
            fields=tuple(FieldDef.from_dict(f) for f in data.get("fields", [])),
            description=data.get("description", ""),
        )


@dataclass(frozen=True, order=True)
class VersionId:
    """Monotonically ordered schema version identifier."""

    major: int
    minor: int = 0
    patch: int = 0

    def __post_init__(self) -> None:
        if min(self.major, self.minor, self.patch) < 0:
            raise ValueError(f"Version components must be non-negative: {self}")

    @classmethod
    def parse(cls, value: str) -> VersionId:
        """Parse ``"1.2.3"`` (missing components default to 0).

        Raises:
            ValueError: If the string is not a dotted version
        """
        parts = value.strip().split(".")
        if not 1 <= len(parts) <= 3:
            raise ValueError(f"Invalid schema version '{value}'")
        try:
            numbers = [int(p) for p in parts]
        except ValueError:
            raise ValueError(f"Invalid schema version '{value}'") from None
        return cls(*numbers)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class SchemaVersion:
    """A named, ordered point in the record-type evolution of the store.

    Attributes:
        version: Version identifier
        record_types: Record types valid at this version
        description: What changed in this version
    """

    version: VersionId
    record_types: tuple[RecordTypeDef, ...] = dataclass_field(default_factory=tuple)
    description: str = ""

    def __post_init__(self) -> None:
        names = [rt.name for rt in self.record_types]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate record type in schema {self.version}")
        tables = [rt.table for rt in self.record_types]
        if len(tables) != len(set(tables)):
            raise ValueError(f"Duplicate table name in schema {self.version}")

        for rt in self.record_types:
            for f in rt.fields:
                if f.ref_type is not None and f.ref_type not in names:
                    raise ValueError(
                        f"Field '{rt.name}.{f.name}' references unknown record type "
                        f"'{f.ref_type}' in schema {self.version}"
                    )

    def get_record_type(self, name: str) -> RecordTypeDef | None:
        """Get a record type by name."""
        for rt in self.record_types:
            if rt.name == name:
                return rt
        return None

    def require_record_type(self, name: str) -> RecordTypeDef:
        """Get a record type by name or raise KeyError."""
        rt = self.get_record_type(name)
        if rt is None:
            raise KeyError(f"Record type '{name}' is not defined in schema {self.version}")
        return rt

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "version": str(self.version),
            "record_types": [rt.to_dict() for rt in self.record_types],
        }
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaVersion:
        """Create from dictionary representation."""
        return cls(
            version=VersionId.parse(data["version"]),
            record_types=tuple(RecordTypeDef.from_dict(rt) for rt in data.get("record_types", [])),
            description=data.get("description", ""),
        )
