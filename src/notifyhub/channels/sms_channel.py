"""
SMS Channel

Sends notifications through an HTTP SMS gateway using httpx.
Without a gateway URL the send is simulated and logged as such.
"""
import logging
from typing import Optional

import httpx

from .base_channel import BaseChannel, DeliveryResult
from ..models.notification import DeliveryChannel
from ..models.queue import QueueItem

logger = logging.getLogger("notifyhub.channels.sms")

SMS_MAX_LENGTH = 320


class SmsChannel(BaseChannel):
    """Send notifications by SMS"""

    channel = DeliveryChannel.SMS

    def __init__(self, gateway_url: str = "", api_token: str = "", sender_id: str = "AutoLab"):
        self.gateway_url = gateway_url
        self.api_token = api_token
        self.sender_id = sender_id
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=15.0)
        return self._client

    @property
    def simulated(self) -> bool:
        return not self.gateway_url

    async def deliver(self, item: QueueItem) -> DeliveryResult:
        if self.simulated:
            logger.warning(
                f"SIMULATED SMS for notification {item.notification_id} "
                f"(SMS gateway not configured, nothing was sent)"
            )
            return DeliveryResult(success=True)

        phone = item.contact.phone if item.contact else None
        if not phone:
            return DeliveryResult(success=False, error="No phone number for recipient")

        message = f"{item.notification.title}: {item.notification.body}"[:SMS_MAX_LENGTH]
        headers = {"Authorization": f"Bearer {self.api_token}"} if self.api_token else {}

        try:
            response = await self._get_client().post(
                self.gateway_url,
                json={"to": phone, "from": self.sender_id, "message": message},
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"SMS send error for notification {item.notification_id}: {e}")
            return DeliveryResult(success=False, error=str(e))

        if response.status_code >= 400:
            err = f"HTTP {response.status_code}: {response.text[:200]}"
            logger.error(f"SMS gateway rejected notification {item.notification_id}: {err}")
            return DeliveryResult(success=False, error=err)

        logger.info(f"SMS for notification {item.notification_id} sent to {phone}")
        return DeliveryResult(success=True)

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
