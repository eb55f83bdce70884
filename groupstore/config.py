"""
Configuration management for groupstore.

All configuration is done via environment variables; every process that
shares a container reads the same variables. This module provides typed
configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - GROUPSTORE_GROUP_ID and GROUPSTORE_DB_FILE must be identical in every
      process that shares the container, or they will not share data
    - Webhook URLs are never logged with credentials

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Never change the default file name; existing stores would be orphaned
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit

from .schema.types import VersionId

logger = logging.getLogger(__name__)

DEFAULT_GROUP_ID = "group.com.example.swiftdatasharing"
DEFAULT_DB_FILE = "AppData.sqlite"
DEFAULT_CONTAINERS_ROOT = "/var/lib/groupstore/containers"
DEFAULT_MARKER_FILE = ".groupstore-changed"


class NotifyBackend(Enum):
    """Supported change notification channels."""

    NONE = "none"
    MARKER = "marker"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class StorageConfig:
    """Shared store configuration.

    Attributes:
        group_id: Identifier of the shared group container
        containers_root: Directory holding one sub-directory per group
        db_file: Database file name inside the group container
        target_version: Schema version to open at (default: newest registered)
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    group_id: str = DEFAULT_GROUP_ID
    containers_root: str = DEFAULT_CONTAINERS_ROOT
    db_file: str = DEFAULT_DB_FILE
    target_version: str | None = None
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            group_id=os.getenv("GROUPSTORE_GROUP_ID", DEFAULT_GROUP_ID),
            containers_root=os.getenv("GROUPSTORE_CONTAINERS_ROOT", DEFAULT_CONTAINERS_ROOT),
            db_file=os.getenv("GROUPSTORE_DB_FILE", DEFAULT_DB_FILE),
            target_version=os.getenv("GROUPSTORE_TARGET_VERSION") or None,
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class NotifyConfig:
    """Change notification configuration.

    Attributes:
        backend: Which channel signals "data changed"
        url: Webhook endpoint (webhook backend)
        timeout_ms: Best-effort delivery timeout
        marker_file: Marker file name inside the group container (marker backend)
    """

    backend: NotifyBackend = NotifyBackend.MARKER
    url: str | None = None
    timeout_ms: int = 500
    marker_file: str = DEFAULT_MARKER_FILE

    @classmethod
    def from_env(cls) -> NotifyConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("GROUPSTORE_NOTIFY_BACKEND", "marker").lower()
        try:
            backend = NotifyBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid GROUPSTORE_NOTIFY_BACKEND '{backend_str}'. "
                "Must be one of: none, marker, webhook"
            )
        return cls(
            backend=backend,
            url=os.getenv("GROUPSTORE_NOTIFY_URL") or None,
            timeout_ms=int(os.getenv("GROUPSTORE_NOTIFY_TIMEOUT_MS", "500")),
            marker_file=os.getenv("GROUPSTORE_NOTIFY_MARKER", DEFAULT_MARKER_FILE),
        )

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class AppConfig:
    """Complete configuration for one groupstore process.

    Attributes:
        storage: Shared store configuration
        notify: Change notification configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            notify=NotifyConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.group_id:
            raise ValueError("GROUPSTORE_GROUP_ID is required")
        if not self.storage.db_file or os.sep in self.storage.db_file:
            raise ValueError("GROUPSTORE_DB_FILE must be a plain file name")
        if self.storage.busy_timeout_ms < 0:
            raise ValueError("SQLITE_BUSY_TIMEOUT_MS must be non-negative")
        if self.storage.target_version:
            try:
                VersionId.parse(self.storage.target_version)
            except ValueError:
                raise ValueError(
                    "GROUPSTORE_TARGET_VERSION must be a dotted version, "
                    f"got '{self.storage.target_version}'"
                ) from None

        if self.notify.backend == NotifyBackend.WEBHOOK and not self.notify.url:
            raise ValueError("GROUPSTORE_NOTIFY_URL is required when GROUPSTORE_NOTIFY_BACKEND=webhook")
        if self.notify.timeout_ms <= 0:
            raise ValueError("GROUPSTORE_NOTIFY_TIMEOUT_MS must be positive")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")

        if not os.path.isdir(self.storage.containers_root):
            logger.warning(
                f"Containers root does not exist: {self.storage.containers_root}. "
                "Group containers must be provisioned before first open."
            )

    def log_config(self) -> None:
        """Log configuration (redacting credentials)."""
        notify_host = urlsplit(self.notify.url).hostname if self.notify.url else None
        logger.info(
            "Groupstore configuration loaded",
            extra={
                "group_id": self.storage.group_id,
                "containers_root": self.storage.containers_root,
                "db_file": self.storage.db_file,
                "target_version": self.storage.target_version,
                "wal_mode": self.storage.wal_mode,
                "notify_backend": self.notify.backend.value,
                "notify_host": notify_host,
                "log_level": self.observability.log_level,
            },
        )
