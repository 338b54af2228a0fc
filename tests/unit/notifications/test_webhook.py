from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.notifications.webhook import WebhookClient


def client_with(url):
    with patch("app.notifications.webhook.settings") as mock_settings:
        mock_settings.NOTIFY_WEBHOOK_URL = url
        mock_settings.NOTIFY_TIMEOUT_SECONDS = 1.0
        return WebhookClient()


def patched_http(post):
    http = MagicMock()
    http.post = post
    http.__aenter__ = AsyncMock(return_value=http)
    http.__aexit__ = AsyncMock(return_value=False)
    return patch("app.notifications.webhook.httpx.AsyncClient", return_value=http)


@pytest.mark.asyncio
async def test_disabled_without_url():
    client = client_with(None)

    assert client.enabled is False
    assert await client.send({"event": "x"}) is False


@pytest.mark.asyncio
async def test_posts_json():
    client = client_with("https://hooks.example.com/orders")
    post = AsyncMock(return_value=MagicMock(status_code=200, text="ok"))

    with patched_http(post):
        assert await client.send({"event": "order.placed"}) is True

    post.assert_awaited_once_with("https://hooks.example.com/orders", json={"event": "order.placed"}, timeout=1.0)


@pytest.mark.asyncio
async def test_failures_never_raise():
    client = client_with("https://hooks.example.com/orders")

    with patched_http(AsyncMock(return_value=MagicMock(status_code=500, text="boom"))):
        assert await client.send({"event": "x"}) is False

    with patched_http(AsyncMock(side_effect=httpx.ConnectError("refused"))):
        assert await client.send({"event": "x"}) is False
