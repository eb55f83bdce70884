"""
Store module for groupstore.

This module locates and opens the shared SQLite file:
- GroupContainerLocator: shared directory capability (injectable)
- ContainerResolver: version probe, create, migrate-or-refuse decision
- ContainerHandle: the process-local connection
- Repository and snapshots: typed access to collections and items

Invariants:
    - One file per group container, at <group directory>/<file name>
    - Read-only handles never alter the file
    - No fallback to a private, non-shared location
"""

from .container import ContainerHandle, open_connection
from .locator import DirectoryGroupLocator, GroupContainerLocator, StaticGroupLocator
from .models import CollectionSnapshot, ItemKind, ItemSnapshot, validate_item_payload
from .repository import Repository
from .resolver import ContainerResolver

__all__ = [
    "ContainerHandle",
    "ContainerResolver",
    "DirectoryGroupLocator",
    "GroupContainerLocator",
    "StaticGroupLocator",
    "CollectionSnapshot",
    "ItemKind",
    "ItemSnapshot",
    "Repository",
    "open_connection",
    "validate_item_payload",
]
