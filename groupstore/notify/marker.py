"""
Change marker file: a cross-process notification channel.

The writer replaces a small JSON file next to the database after every
commit; the renderer process polls it and re-reads the store when the
marker's token moves.

Marker format:
    {"event": "data_changed", "token": "<uuid4 hex>", "changed_at": <unix ms>}

Invariants:
    - The marker is replaced atomically (write temp file, os.replace)
    - Readers compare tokens only; the payload is never trusted as a delta
    - A missing or unreadable marker reads as "no token"
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Optional, Union

from .base import CHANGE_EVENT, ChangeNotifyError

logger = logging.getLogger(__name__)


def _write_marker(path: Path) -> str:
    token = uuid.uuid4().hex
    payload = {
        "event": CHANGE_EVENT,
        "token": token,
        "changed_at": int(time.time() * 1000),
    }
    fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return token


def read_marker_token(path: Path) -> Optional[str]:
    """Read the current token, or None if there is no usable marker."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict) or data.get("event") != CHANGE_EVENT:
        return None
    token = data.get("token")
    return token if isinstance(token, str) else None


class ChangeMarkerNotifier:
    """Writer side of the marker channel."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    async def notify(self) -> None:
        try:
            token = await asyncio.get_event_loop().run_in_executor(
                None, _write_marker, self.path
            )
        except OSError as e:
            raise ChangeNotifyError(f"Failed to write change marker {self.path}: {e}") from e
        logger.debug(f"Change marker moved to {token}")

    async def close(self) -> None:
        return None


class ChangeMarkerWatcher:
    """Renderer side of the marker channel.

    Example:
        >>> watcher = ChangeMarkerWatcher(group_directory / ".groupstore-changed")
        >>> while await watcher.wait_for_change():
        ...     entry = await feed.current_entry()
    """

    def __init__(self, path: Union[str, Path], poll_interval: float = 1.0) -> None:
        self.path = Path(path)
        self.poll_interval = poll_interval
        self._last_token = read_marker_token(self.path)

    @property
    def last_token(self) -> Optional[str]:
        return self._last_token

    def changed(self) -> bool:
        """Whether the marker moved since the last call (or construction)."""
        token = read_marker_token(self.path)
        if token is not None and token != self._last_token:
            self._last_token = token
            return True
        return False

    async def wait_for_change(self, timeout: Optional[float] = None) -> bool:
        """Poll until the marker moves.

        Returns:
            True if it moved, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if self.changed():
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            await asyncio.sleep(self.poll_interval)
