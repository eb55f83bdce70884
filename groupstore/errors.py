"""
Error types for groupstore.

This module defines the exception taxonomy shared by every process that
opens the group container:
- GroupStoreError: Base exception
- ResolveError: The container could not be located or opened
- MigrationError: The on-disk file could not be walked to the target version
- WriteError: A single write transaction failed
- MigrationPlanError: The static migration plan is inconsistent

Invariants:
    - All errors inherit from GroupStoreError
    - Errors carry a stable code for programmatic handling
    - Resolve and migration errors are fatal for the writer path
    - Write errors are recoverable; the manager stays usable

How to change safely:
    - Add new subclasses instead of changing existing codes
    - Keep details JSON-serializable (the CLI prints them)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .migrate.plan import MigrationStep
    from .schema.types import VersionId


class GroupStoreError(Exception):
    """Base exception for all groupstore errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GROUPSTORE_ERROR"
        self.details = details or {}


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolveError(GroupStoreError):
    """The shared container could not be resolved or opened."""


class LocationUnavailableError(ResolveError):
    """The shared directory capability could not be resolved.

    Raised when:
    - The group identifier is not provisioned on this machine
    - The resolved path is not a directory

    There is deliberately no fallback to a private location.
    """

    def __init__(self, group_id: str, reason: str = "not provisioned") -> None:
        super().__init__(
            f"Shared container for group '{group_id}' is unavailable: {reason}",
            code="LOCATION_UNAVAILABLE",
            details={"group_id": group_id, "reason": reason},
        )
        self.group_id = group_id
        self.reason = reason


class UnsupportedFutureVersionError(ResolveError):
    """The file was written by a newer build than this process knows about."""

    def __init__(self, found: VersionId, supported: VersionId) -> None:
        super().__init__(
            f"Store is at schema {found}, newer than the highest supported {supported}",
            code="UNSUPPORTED_FUTURE_VERSION",
            details={"found": str(found), "supported": str(supported)},
        )
        self.found = found
        self.supported = supported


class SchemaMismatchError(ResolveError):
    """A read-only opener found a version other than the one it expects.

    ``found`` is None when the file does not exist yet.
    """

    def __init__(self, found: Optional[VersionId], expected: VersionId) -> None:
        found_label = str(found) if found is not None else "absent"
        super().__init__(
            f"Store schema is {found_label}, expected {expected}; "
            "read-only access never migrates",
            code="SCHEMA_MISMATCH",
            details={"found": None if found is None else str(found), "expected": str(expected)},
        )
        self.found = found
        self.expected = expected


class EngineOpenFailedError(ResolveError):
    """SQLite refused to open the file or the file is not a groupstore."""

    def __init__(self, path: str, cause: Optional[BaseException] = None) -> None:
        reason = str(cause) if cause is not None else "unrecognized store"
        super().__init__(
            f"Failed to open store at {path}: {reason}",
            code="ENGINE_OPEN_FAILED",
            details={"path": path, "reason": reason},
        )
        self.path = path
        self.cause = cause


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


class MigrationError(GroupStoreError):
    """The on-disk store could not be migrated to the target version."""


class MissingChainLinkError(MigrationError):
    """No registered step connects two adjacent versions."""

    def __init__(self, source: VersionId, target: VersionId) -> None:
        super().__init__(
            f"No migration step from {source} to {target}",
            code="MISSING_CHAIN_LINK",
            details={"source": str(source), "target": str(target)},
        )
        self.source = source
        self.target = target


class TransformFailedError(MigrationError):
    """A migration step raised; the whole walk was rolled back."""

    def __init__(self, step: MigrationStep, cause: BaseException) -> None:
        super().__init__(
            f"Migration step {step.source} -> {step.target} ({step.kind.value}) failed: {cause}",
            code="TRANSFORM_FAILED",
            details={
                "source": str(step.source),
                "target": str(step.target),
                "kind": step.kind.value,
                "cause": repr(cause),
            },
        )
        self.step = step
        self.cause = cause


class MigrationPlanError(GroupStoreError):
    """The migration plan does not match the version registry."""

    def __init__(self, problems: List[str]) -> None:
        super().__init__(
            f"Migration plan is invalid ({len(problems)} problem(s)):\n" + "\n".join(problems),
            code="MIGRATION_PLAN_INVALID",
            details={"problems": problems},
        )
        self.problems = problems


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class WriteError(GroupStoreError):
    """A write transaction failed and was rolled back."""


class TransactionFailedError(WriteError):
    """The transaction body or the engine failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(
            message,
            code="TRANSACTION_FAILED",
            details={"cause": repr(cause) if cause is not None else None},
        )
        self.cause = cause


class ConstraintViolationError(WriteError):
    """A record violated the schema or an ownership rule.

    Raised when:
    - A required field is missing or has the wrong type
    - An item references a collection that does not exist
    - SQLite reports an integrity error
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONSTRAINT_VIOLATION",
            details={"errors": errors or []},
        )
        self.errors = errors or []
