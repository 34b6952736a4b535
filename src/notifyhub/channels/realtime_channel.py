"""
Real-time Channel

Delivers notifications over the user's live WebSocket connections.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .base_channel import BaseChannel, DeliveryResult, notification_payload
from ..models.notification import DeliveryChannel
from ..models.queue import QueueItem

if TYPE_CHECKING:
    from ..services.connection_manager import ConnectionManager

logger = logging.getLogger("notifyhub.channels.realtime")

NOTIFICATION_CREATED = "notification.created"


class RealtimeChannel(BaseChannel):
    """Send to connected WebSocket clients; defer when the user is offline"""

    channel = DeliveryChannel.WEBSOCKET

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    async def deliver(self, item: QueueItem) -> DeliveryResult:
        if not self.connections.is_connected(item.user_id):
            logger.debug(f"User {item.user_id} offline, deferring notification {item.notification_id}")
            return DeliveryResult(success=False, error="Recipient offline", deferred=True)

        try:
            sent = await self.connections.send_to_user(
                item.user_id, NOTIFICATION_CREATED, notification_payload(item)
            )
        except Exception as e:
            logger.error(f"WebSocket delivery error for notification {item.notification_id}: {e}")
            return DeliveryResult(success=False, error=str(e))

        if sent == 0:
            # Every socket dropped while sending
            return DeliveryResult(success=False, error="Recipient offline", deferred=True)

        logger.info(
            f"Notification {item.notification_id} delivered via WebSocket "
            f"to user {item.user_id} ({sent} socket(s))"
        )
        return DeliveryResult(success=True)
