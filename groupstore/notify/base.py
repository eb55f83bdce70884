"""
Base protocol for the change notification channel.

After a writer commits, it emits one fire-and-forget "data changed"
signal. Observers use the signal only to decide when to re-read; they
never trust a payload and always fetch a fresh snapshot.

Invariants:
    - notify() carries no data beyond "changed"
    - A failed or slow notification never affects the committed write
    - Read-only processes never hold a notifier

How to change safely:
    - Protocol changes require updating all implementations
    - New backends go through create_notifier()
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import NotifyConfig

logger = logging.getLogger(__name__)

CHANGE_EVENT = "data_changed"


class ChangeNotifyError(Exception):
    """Delivery of a change signal failed."""
    pass


@runtime_checkable
class ChangeNotifier(Protocol):
    """Protocol for change notification backends.

    Example:
        >>> notifier = create_notifier(config.notify, group_directory)
        >>> await notifier.notify()
    """

    @abstractmethod
    async def notify(self) -> None:
        """Signal that shared data may have changed.

        Raises:
            ChangeNotifyError: If the signal could not be delivered
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...


class NullChangeNotifier:
    """Backend for GROUPSTORE_NOTIFY_BACKEND=none; observers poll instead."""

    async def notify(self) -> None:
        return None

    async def close(self) -> None:
        return None


def create_notifier(config: "NotifyConfig", group_directory: Path) -> ChangeNotifier:
    """Factory function to create a notifier from configuration.

    Args:
        config: Notification configuration
        group_directory: Resolved shared directory (for the marker file)

    Returns:
        Appropriate ChangeNotifier implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import NotifyBackend
    from .marker import ChangeMarkerNotifier
    from .webhook import WebhookNotifier

    if config.backend == NotifyBackend.NONE:
        return NullChangeNotifier()
    elif config.backend == NotifyBackend.MARKER:
        return ChangeMarkerNotifier(Path(group_directory) / config.marker_file)
    elif config.backend == NotifyBackend.WEBHOOK:
        if not config.url:
            raise ValueError("Webhook notifier requires a URL")
        return WebhookNotifier(config.url, timeout_seconds=config.timeout_seconds)
    else:
        raise ValueError(f"Unsupported notify backend: {config.backend}")
