"""
Versioned schema registry for groupstore.

The VersionRegistry is the ordered, append-only catalog of every schema
version the running build knows about. It provides:
- Registration of schema versions in strictly increasing order
- Lookup of the current (highest) version and of any registered version
- Fingerprinting for the lockfile consistency check
- Freeze mechanism to prevent runtime modifications

Invariants:
    - Versions are registered at build time and frozen before use
    - A version, once shipped, is never changed or removed
    - Removing a shipped version means data loss for users still on it;
      this cannot be detected at runtime, only by `groupstore schema check`

How to change safely:
    - Append a new SchemaVersion; never edit an existing one
    - Add the matching MigrationStep in the same change
    - Regenerate the lockfile with `groupstore schema snapshot`

Example:
    >>> registry = VersionRegistry()
    >>> registry.register(SchemaVersion(VersionId(1, 0, 0), (Collection, Item)))
    >>> registry.freeze()
    >>> registry.current_version().version
    VersionId(major=1, minor=0, patch=0)
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Dict, Iterator, List, Optional

from .types import SchemaVersion, VersionId

logger = logging.getLogger(__name__)


class RegistryFrozenError(Exception):
    """Raised when attempting to modify a frozen registry."""
    pass


class DuplicateRegistrationError(Exception):
    """Raised when attempting to register a version twice."""
    pass


class RegistryOrderError(Exception):
    """Raised when a version is not newer than every registered version."""
    pass


class VersionRegistry:
    """Ordered catalog of schema versions.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups after freeze are lock-free
        - Freeze is atomic and irreversible

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the catalog (computed on freeze)
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._versions: Dict[VersionId, SchemaVersion] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Registry fingerprint (available after freeze)."""
        return self._fingerprint

    def register(self, version: SchemaVersion) -> SchemaVersion:
        """Append a schema version to the catalog.

        Args:
            version: The schema version to register

        Returns:
            The registered version

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the version id is already registered
            RegistryOrderError: If the version is older than the newest one
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register schema {version.version}: registry is frozen"
                )

            if version.version in self._versions:
                raise DuplicateRegistrationError(
                    f"Schema version {version.version} already registered"
                )

            if self._versions:
                newest = max(self._versions)
                if version.version < newest:
                    raise RegistryOrderError(
                        f"Schema version {version.version} must be newer than {newest}"
                    )

            self._versions[version.version] = version
            logger.debug(
                f"Registered schema version {version.version} "
                f"({len(version.record_types)} record types)"
            )
            return version

    def current_version(self) -> SchemaVersion:
        """Return the highest registered version.

        Raises:
            LookupError: If no version is registered
        """
        if not self._versions:
            raise LookupError("No schema versions registered")
        return self._versions[max(self._versions)]

    def all_versions(self) -> List[SchemaVersion]:
        """Return every registered version in ascending order."""
        return [self._versions[v] for v in sorted(self._versions)]

    def version_ids(self) -> List[VersionId]:
        """Return every registered version id in ascending order."""
        return sorted(self._versions)

    def get(self, version: VersionId) -> Optional[SchemaVersion]:
        """Get a registered version, or None."""
        return self._versions.get(version)

    def next_after(self, version: VersionId) -> Optional[VersionId]:
        """Return the registered version immediately after ``version``."""
        later = [v for v in self._versions if v > version]
        return min(later) if later else None

    def __contains__(self, version: object) -> bool:
        return version in self._versions

    def __len__(self) -> int:
        return len(self._versions)

    def __iter__(self) -> Iterator[SchemaVersion]:
        return iter(self.all_versions())

    def freeze(self) -> str:
        """Freeze the registry and compute fingerprint.

        Returns:
            Registry fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.info(
                f"Schema registry frozen with {len(self._versions)} versions, "
                f"fingerprint={self._fingerprint}"
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint of the whole catalog."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))
        hash_bytes = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation, versions ascending."""
        return {"versions": [v.to_dict() for v in self.all_versions()]}

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert registry to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict) -> VersionRegistry:
        """Create registry from dictionary representation (not frozen)."""
        registry = cls()
        versions = [SchemaVersion.from_dict(v) for v in data.get("versions", [])]
        for version in sorted(versions, key=lambda v: v.version):
            registry.register(version)
        return registry

    @classmethod
    def from_json(cls, json_str: str) -> VersionRegistry:
        """Create registry from JSON string (not frozen)."""
        return cls.from_dict(json.loads(json_str))
