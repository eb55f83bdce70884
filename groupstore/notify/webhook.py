"""
Webhook change notifier.

POSTs ``{"event": "data_changed"}`` to a configured URL after each commit,
for renderers that are woken by an HTTP endpoint rather than by polling.

Invariants:
    - One request per notify(), no retries
    - The request body never carries record data
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from .base import CHANGE_EVENT, ChangeNotifyError

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Delivers change signals over HTTP with aiohttp.

    Attributes:
        url: Endpoint receiving the POST
        timeout_seconds: Total request timeout
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 0.5,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
            self._owns_session = True
        return self._session

    async def notify(self) -> None:
        session = await self._get_session()
        try:
            async with session.post(self.url, json={"event": CHANGE_EVENT}) as response:
                if response.status >= 400:
                    raise ChangeNotifyError(
                        f"Webhook returned HTTP {response.status}"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChangeNotifyError(f"Webhook delivery failed: {e}") from e
        logger.debug("Webhook change signal delivered")

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
