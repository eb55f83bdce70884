"""
Application-scoped context.

Each process builds one AppContext at startup and passes it to whatever
needs storage. The context owns the registry, the plan, the resolver and
the locator, and hands out lazily constructed access managers. Tests build
a fresh context per test instead of resetting global state.

Invariants:
    - At most one WriteAccessManager and one ReadOnlyAccessManager per context
    - The migration plan is checked against the registry at construction
    - Managers resolve lazily; constructing a context touches no file
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..config import AppConfig, NotifyBackend
from ..migrate.plan import MigrationPlan
from ..notify.base import ChangeNotifier, create_notifier
from ..notify.marker import ChangeMarkerWatcher
from ..schema.registry import VersionRegistry
from ..schema.types import VersionId
from ..schema.versions import build_plan, build_registry
from ..store.locator import DirectoryGroupLocator, GroupContainerLocator
from ..store.resolver import ContainerResolver
from .feed import RecentItemsFeed
from .readonly_manager import ReadOnlyAccessManager
from .write_manager import WriteAccessManager

logger = logging.getLogger(__name__)


class AppContext:
    """Owns the storage collaborators of one process.

    Example:
        >>> context = AppContext(AppConfig.from_env())
        >>> writer = context.writer()
        >>> inbox = await writer.create_collection("Inbox")
        >>> await context.close()
    """

    def __init__(
        self,
        config: AppConfig,
        locator: Optional[GroupContainerLocator] = None,
        registry: Optional[VersionRegistry] = None,
        plan: Optional[MigrationPlan] = None,
        notifier: Optional[ChangeNotifier] = None,
    ) -> None:
        self.config = config
        self.registry = registry or build_registry()
        self.plan = plan or build_plan()
        self.plan.check(self.registry)
        self.locator = locator or DirectoryGroupLocator(config.storage.containers_root)
        self.resolver = ContainerResolver(
            self.registry,
            self.plan,
            busy_timeout_ms=config.storage.busy_timeout_ms,
            wal_mode=config.storage.wal_mode,
        )
        if config.storage.target_version:
            self.target_version = VersionId.parse(config.storage.target_version)
            if self.registry.get(self.target_version) is None:
                raise ValueError(
                    f"GROUPSTORE_TARGET_VERSION {self.target_version} is not a registered schema version"
                )
        else:
            self.target_version = self.registry.current_version().version
        self._notifier = notifier
        self._writer: Optional[WriteAccessManager] = None
        self._reader: Optional[ReadOnlyAccessManager] = None

    def _make_notifier(self, group_directory: Path) -> ChangeNotifier:
        return create_notifier(self.config.notify, group_directory)

    def writer(self) -> WriteAccessManager:
        """The process's write-access manager (created on first call)."""
        if self._writer is None:
            self._writer = WriteAccessManager(
                self.resolver,
                self.locator,
                self.config.storage.group_id,
                file_name=self.config.storage.db_file,
                target_version=self.target_version,
                notifier=self._notifier,
                notifier_factory=None if self._notifier is not None else self._make_notifier,
                notify_timeout=self.config.notify.timeout_seconds,
            )
        return self._writer

    def reader(self) -> ReadOnlyAccessManager:
        """The process's read-only access manager (created on first call)."""
        if self._reader is None:
            self._reader = ReadOnlyAccessManager(
                self.resolver,
                self.locator,
                self.config.storage.group_id,
                file_name=self.config.storage.db_file,
                target_version=self.target_version,
            )
        return self._reader

    def marker_watcher(self, poll_interval: float = 1.0) -> Optional[ChangeMarkerWatcher]:
        """Watcher for the marker channel, or None if the group is unavailable."""
        if self.config.notify.backend != NotifyBackend.MARKER:
            return None
        directory = self.locator.container_directory(self.config.storage.group_id)
        if directory is None:
            return None
        return ChangeMarkerWatcher(Path(directory) / self.config.notify.marker_file, poll_interval)

    def feed(self, limit: int = 5, collection_id: Optional[str] = None) -> RecentItemsFeed:
        return RecentItemsFeed(
            self.reader(),
            limit=limit,
            collection_id=collection_id,
            watcher=self.marker_watcher(),
        )

    async def close(self) -> None:
        """Close managers and the notifier."""
        if self._writer is not None:
            await self._writer.close()
            if self._writer.notifier is not None:
                await self._writer.notifier.close()
        if self._reader is not None:
            await self._reader.close()
