import asyncio
from decimal import Decimal

import pytest

from app.notifications.manager import NotificationManager


@pytest.mark.asyncio
async def test_push_dispatches_to_webhook(mock_webhook):
    manager = NotificationManager()

    await manager.order_placed(order_id=11, buyer_id=3, total=Decimal("550.00"))
    await asyncio.sleep(0)  # Let the fire-and-forget task run

    mock_webhook.send.assert_awaited_once()
    payload = mock_webhook.send.call_args.args[0]
    assert payload["event"] == "order.placed"
    assert payload["level"] == "SUCCESS"
    assert payload["data"]["total"] == "550.00"


@pytest.mark.asyncio
async def test_consistency_alert_is_critical(mock_webhook):
    manager = NotificationManager()

    await manager.consistency_alert(bulk_order_id=9, reason="db gone")
    await asyncio.sleep(0)

    payload = mock_webhook.send.call_args.args[0]
    assert payload["level"] == "CRITICAL"
    assert payload["event"] == "ledger.unposted"
    assert "BO-9" in payload["text"]
