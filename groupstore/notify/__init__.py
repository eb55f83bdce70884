"""
Change notification module for groupstore.

This module provides the outbound "data changed" signal emitted by writers:
- ChangeNotifier: protocol every backend implements
- InMemoryChangeNotifier: tests and single-process use
- ChangeMarkerNotifier / ChangeMarkerWatcher: marker file next to the store
- WebhookNotifier: HTTP POST via aiohttp

Invariants:
    - Signals carry no data; observers always re-fetch
    - Delivery is best-effort and never retried
"""

from .base import (
    CHANGE_EVENT,
    ChangeNotifier,
    ChangeNotifyError,
    NullChangeNotifier,
    create_notifier,
)
from .marker import ChangeMarkerNotifier, ChangeMarkerWatcher, read_marker_token
from .memory import InMemoryChangeNotifier
from .webhook import WebhookNotifier

__all__ = [
    "CHANGE_EVENT",
    "ChangeNotifier",
    "ChangeNotifyError",
    "NullChangeNotifier",
    "create_notifier",
    "ChangeMarkerNotifier",
    "ChangeMarkerWatcher",
    "read_marker_token",
    "InMemoryChangeNotifier",
    "WebhookNotifier",
]
