"""
In-memory change notifier for testing.

Useful for:
- Unit tests that assert how often a writer signals
- Single-process setups where the observer lives in the same event loop

Invariants:
    - All state is lost on process exit
    - Each notify() call is counted exactly once, including failed ones
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .base import ChangeNotifyError

logger = logging.getLogger(__name__)


class InMemoryChangeNotifier:
    """Counts change signals and wakes waiters.

    Attributes:
        count: Number of notify() calls
        fail: When True, notify() raises ChangeNotifyError after counting
        delay: Seconds notify() sleeps before returning (slow channel)

    Example:
        >>> notifier = InMemoryChangeNotifier()
        >>> await writer.add_item(inbox.id, ItemKind.TEXT, text="hi")
        >>> assert notifier.count == 1
    """

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.count = 0
        self.fail = fail
        self.delay = delay
        self._changed = asyncio.Event()

    async def notify(self) -> None:
        self.count += 1
        self._changed.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ChangeNotifyError("In-memory notifier configured to fail")
        logger.debug(f"Change signal #{self.count}")

    async def wait_for_change(self, timeout: Optional[float] = None) -> bool:
        """Wait until the next signal.

        Returns:
            True if a signal arrived, False on timeout
        """
        try:
            await asyncio.wait_for(self._changed.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        self._changed.clear()
        return True

    async def close(self) -> None:
        self._changed.set()
