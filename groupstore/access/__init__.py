"""
Access module for groupstore.

Entry points used by the three kinds of process sharing a container:
- WriteAccessManager: primary application and ingestion extension
- ReadOnlyAccessManager / RecentItemsFeed: background renderer
- save_shared_content: ingestion of host-provided content
- AppContext: application-scoped owner of all of the above

Invariants:
    - Only writers migrate, create the file, or send change signals
    - Writer resolution failures are fatal; reader failures degrade
"""

from .context import AppContext
from .feed import FeedEntry, RecentItemsFeed
from .ingest import SharedContent, list_destinations, save_shared_content
from .readonly_manager import ReadOnlyAccessManager
from .write_manager import ManagerState, WriteAccessManager

__all__ = [
    "AppContext",
    "FeedEntry",
    "RecentItemsFeed",
    "SharedContent",
    "list_destinations",
    "save_shared_content",
    "ReadOnlyAccessManager",
    "ManagerState",
    "WriteAccessManager",
]
