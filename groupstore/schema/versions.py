"""
Schema versions shipped by this build.

Every version listed here has shipped (or is about to) and must never be
edited or removed. Users whose file is still at a removed version would be
stranded: the resolver would report a missing chain link and their data
could not be opened. `groupstore schema check` compares this catalog with
the committed lockfile to catch that mistake before release.

How to change safely:
    - Copy the newest record types, change the copy, register a new version
    - Append the matching step to MIGRATION_TABLE
    - Run `groupstore schema check --baseline schema.lock.json`
"""

from __future__ import annotations

from ..migrate.plan import MigrationPlan
from .registry import VersionRegistry
from .types import RecordTypeDef, SchemaVersion, VersionId, field

V1_0_0 = VersionId(1, 0, 0)
V1_1_0 = VersionId(1, 1, 0)

ITEM_KINDS = ("text", "link", "image")

COLLECTION_V1 = RecordTypeDef(
    name="Collection",
    table="collections",
    fields=(
        field("name", "str", required=True),
        field("icon", "str", default="folder.fill"),
        field("color_hex", "str", default="007AFF"),
        field("sort_order", "int", default=0, indexed=True),
        field("created_at", "timestamp", required=True),
    ),
    description="A named folder that owns items",
)

ITEM_V1 = RecordTypeDef(
    name="Item",
    table="items",
    fields=(
        field("kind", "enum", required=True, enum_values=ITEM_KINDS),
        field("text", "str"),
        field("url", "str"),
        field("title", "str"),
        field("collection_id", "ref", required=True, ref_type="Collection", indexed=True),
        field("created_at", "timestamp", required=True, indexed=True),
    ),
    description="A saved note, link or image reference",
)

ITEM_V1_1 = RecordTypeDef(
    name="Item",
    table="items",
    fields=ITEM_V1.fields + (field("subtitle", "str"),),
    description=ITEM_V1.description,
)

SCHEMA_V1_0_0 = SchemaVersion(
    version=V1_0_0,
    record_types=(COLLECTION_V1, ITEM_V1),
    description="Initial release",
)

SCHEMA_V1_1_0 = SchemaVersion(
    version=V1_1_0,
    record_types=(COLLECTION_V1, ITEM_V1_1),
    description="Items gain an optional subtitle",
)

SHIPPED_VERSIONS = (SCHEMA_V1_0_0, SCHEMA_V1_1_0)

# (from, to, kind, transforms)
MIGRATION_TABLE = (
    (V1_0_0, V1_1_0, "automatic", None),
)


def build_registry(freeze: bool = True) -> VersionRegistry:
    """Build the registry of every shipped schema version."""
    registry = VersionRegistry()
    for version in SHIPPED_VERSIONS:
        registry.register(version)
    if freeze:
        registry.freeze()
    return registry


def build_plan() -> MigrationPlan:
    """Build the migration plan matching build_registry()."""
    return MigrationPlan.from_table(MIGRATION_TABLE)
