"""
Base Channel

Abstract interface for notification delivery channels.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..models.notification import DeliveryChannel
from ..models.queue import QueueItem


@dataclass
class DeliveryResult:
    """
    Result of a delivery attempt.

    deferred marks an attempt that could not run because the recipient is
    offline; it is not counted against the retry budget by itself.
    """
    success: bool
    error: Optional[str] = None
    deferred: bool = False


class BaseChannel(ABC):
    """Abstract delivery channel"""

    channel: DeliveryChannel

    @abstractmethod
    async def deliver(self, item: QueueItem) -> DeliveryResult:
        """
        Attempt delivery of a queued notification.

        Implementations catch their transport errors and report them as
        DeliveryResult(success=False, error=...); they never raise.
        """
        ...

    async def close(self):
        """Cleanup resources"""


def notification_payload(item: QueueItem) -> dict:
    """Client-facing payload shared by the real-time and push channels"""
    notification = item.notification
    return {
        "notification_id": notification.id,
        "title": notification.title,
        "body": notification.body,
        "action_url": notification.action_url,
        "priority": item.priority.value,
        "notification_type": notification.notification_type,
        "related_entity_type": notification.related_entity_type,
        "related_entity_id": notification.related_entity_id,
    }
