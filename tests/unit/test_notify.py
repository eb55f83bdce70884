"""
Unit tests for change notification backends.

Tests cover:
- In-memory notifier counting and waiting
- Marker file notifier and watcher
- Webhook notifier against a local aiohttp server
- Backend factory
"""

import json

import pytest
from aiohttp import web
from aiohttp import test_utils

from groupstore.config import NotifyBackend, NotifyConfig
from groupstore.notify.base import (
    CHANGE_EVENT,
    ChangeNotifier,
    ChangeNotifyError,
    NullChangeNotifier,
    create_notifier,
)
from groupstore.notify.marker import ChangeMarkerNotifier, ChangeMarkerWatcher, read_marker_token
from groupstore.notify.memory import InMemoryChangeNotifier
from groupstore.notify.webhook import WebhookNotifier


class TestInMemoryChangeNotifier:
    """Tests for InMemoryChangeNotifier."""

    @pytest.mark.asyncio
    async def test_counts_and_wakes(self):
        notifier = InMemoryChangeNotifier()
        assert not await notifier.wait_for_change(timeout=0.01)

        await notifier.notify()
        assert notifier.count == 1
        assert await notifier.wait_for_change(timeout=0.1)

    @pytest.mark.asyncio
    async def test_failure_is_counted(self):
        notifier = InMemoryChangeNotifier(fail=True)
        with pytest.raises(ChangeNotifyError):
            await notifier.notify()
        assert notifier.count == 1


class TestChangeMarker:
    """Tests for the marker file channel."""

    @pytest.mark.asyncio
    async def test_notify_moves_token(self, tmp_path):
        path = tmp_path / ".groupstore-changed"
        watcher = ChangeMarkerWatcher(path, poll_interval=0.01)
        assert watcher.last_token is None
        assert not watcher.changed()

        notifier = ChangeMarkerNotifier(path)
        await notifier.notify()

        data = json.loads(path.read_text())
        assert data["event"] == CHANGE_EVENT
        assert watcher.changed()
        assert watcher.last_token == data["token"]
        assert not watcher.changed()

        await notifier.notify()
        assert await watcher.wait_for_change(timeout=1.0)

    @pytest.mark.asyncio
    async def test_wait_times_out(self, tmp_path):
        watcher = ChangeMarkerWatcher(tmp_path / "marker", poll_interval=0.01)
        assert not await watcher.wait_for_change(timeout=0.05)

    @pytest.mark.asyncio
    async def test_unwritable_location(self, tmp_path):
        notifier = ChangeMarkerNotifier(tmp_path / "missing" / "marker")
        with pytest.raises(ChangeNotifyError):
            await notifier.notify()

    def test_garbage_marker_reads_as_no_token(self, tmp_path):
        path = tmp_path / "marker"
        path.write_text("not json")
        assert read_marker_token(path) is None
        path.write_text(json.dumps({"event": "other", "token": "x"}))
        assert read_marker_token(path) is None


class TestWebhookNotifier:
    """Tests for WebhookNotifier."""

    async def _server(self, status):
        received = []

        async def handler(request):
            received.append(await request.json())
            return web.Response(status=status)

        app = web.Application()
        app.router.add_post("/hook", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        return server, received

    @pytest.mark.asyncio
    async def test_delivers_event(self):
        server, received = await self._server(204)
        notifier = WebhookNotifier(str(server.make_url("/hook")), timeout_seconds=2.0)
        try:
            await notifier.notify()
        finally:
            await notifier.close()
            await server.close()
        assert received == [{"event": CHANGE_EVENT}]

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        server, _ = await self._server(500)
        notifier = WebhookNotifier(str(server.make_url("/hook")), timeout_seconds=2.0)
        try:
            with pytest.raises(ChangeNotifyError, match="HTTP 500"):
                await notifier.notify()
        finally:
            await notifier.close()
            await server.close()

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_raises(self):
        notifier = WebhookNotifier("http://127.0.0.1:1/hook", timeout_seconds=1.0)
        try:
            with pytest.raises(ChangeNotifyError):
                await notifier.notify()
        finally:
            await notifier.close()


class TestCreateNotifier:
    """Tests for the backend factory."""

    def test_backends(self, tmp_path):
        assert isinstance(create_notifier(NotifyConfig(backend=NotifyBackend.NONE), tmp_path), NullChangeNotifier)

        marker = create_notifier(NotifyConfig(marker_file="m.json"), tmp_path)
        assert isinstance(marker, ChangeMarkerNotifier)
        assert marker.path == tmp_path / "m.json"

        webhook = create_notifier(
            NotifyConfig(backend=NotifyBackend.WEBHOOK, url="http://localhost/x", timeout_ms=250),
            tmp_path,
        )
        assert isinstance(webhook, WebhookNotifier)
        assert webhook.timeout_seconds == 0.25
        assert isinstance(webhook, ChangeNotifier)

    def test_webhook_without_url(self, tmp_path):
        with pytest.raises(ValueError):
            create_notifier(NotifyConfig(backend=NotifyBackend.WEBHOOK), tmp_path)
