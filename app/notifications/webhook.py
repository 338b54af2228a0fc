import logging
from typing import Any, Dict

import httpx

from app.core.settings import settings

logger = logging.getLogger("WebhookClient")


class WebhookClient:
    """
    Low-level adapter for the notification webhook (Slack/ops-bot style JSON POST).
    """

    def __init__(self):
        self.url = settings.NOTIFY_WEBHOOK_URL
        self.timeout = settings.NOTIFY_TIMEOUT_SECONDS
        self.enabled = bool(self.url)

        if not self.enabled:
            logger.warning("⚠️ NOTIFY_WEBHOOK_URL missing. Notifications will be log-only.")

    async def send(self, payload: Dict[str, Any]) -> bool:
        """
        Posts a JSON payload. Never raises: a dead webhook must not fail an order.
        """
        if not self.enabled:
            return False

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(self.url, json=payload, timeout=self.timeout)
                if resp.status_code >= 300:
                    logger.error(f"❌ Webhook Send Failed ({resp.status_code}): {resp.text}")
                    return False
                return True

        except httpx.HTTPError as e:
            logger.error(f"⚠️ Webhook Connection Error: {e}")
            return False


webhook_client = WebhookClient()
