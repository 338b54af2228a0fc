import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from app.notifications.webhook import webhook_client

logger = logging.getLogger("NotificationManager")

ICONS = {
    "INFO": "ℹ️",
    "SUCCESS": "✅",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🚨",
}


class NotificationManager:
    """
    Central Alert System.
    Decouples the order flows from the delivery channel (webhook today).
    """

    def __init__(self):
        self._pending = set()

    async def push(self, message: str, level: str = "INFO", event: str = "alert", data: Optional[Dict[str, Any]] = None):
        """
        Sends an alert to all configured channels.

        Args:
            message: Human readable text
            level: INFO, SUCCESS, WARNING, ERROR, CRITICAL
            event: Machine readable event name for the receiver
            data: Extra JSON-safe payload
        """
        icon = ICONS.get(level, ICONS["INFO"])

        # 1. Log Locally
        if level in ("ERROR", "CRITICAL"):
            logger.error(f"{icon} {message}")
        else:
            logger.info(f"🔔 Alert: {message}")

        payload = {
            "event": event,
            "level": level,
            "text": f"{icon} [{level}] {message}",
            "data": data or {},
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }

        # 2. Fire & Forget: the caller (an HTTP request) never waits on the webhook
        task = asyncio.create_task(webhook_client.send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def order_placed(self, order_id: int, buyer_id: int, total: Decimal, placed_by: Optional[int] = None):
        msg = f"Order #{order_id} placed for buyer {buyer_id}: ₹{total}"
        if placed_by is not None:
            msg += f" (by admin {placed_by})"
        await self.push(
            msg,
            level="SUCCESS",
            event="order.placed",
            data={"order_id": order_id, "buyer_id": buyer_id, "total": str(total), "placed_by": placed_by},
        )

    async def bulk_order_placed(self, bulk_order_id: int, distributor_user_id: int, total: Decimal, ledger_posted: bool):
        await self.push(
            f"Bulk order BO-{bulk_order_id} from distributor user {distributor_user_id}: ₹{total}",
            level="SUCCESS" if ledger_posted else "WARNING",
            event="bulk_order.placed",
            data={
                "bulk_order_id": bulk_order_id,
                "distributor_user_id": distributor_user_id,
                "total": str(total),
                "ledger_posted": ledger_posted,
            },
        )

    async def consistency_alert(self, bulk_order_id: int, reason: str):
        """A committed bulk order has no ledger entry. Needs scripts/reconcile_ledger.py."""
        await self.push(
            f"Bulk order BO-{bulk_order_id} committed but NOT posted to ledger: {reason}",
            level="CRITICAL",
            event="ledger.unposted",
            data={"bulk_order_id": bulk_order_id, "reason": reason},
        )


# Global Accessor
notification_manager = NotificationManager()
