"""
Delivery Queue Models

QueueItem: unit of work owned by the delivery queue.
DeliveryStatus: per-notification ledger row.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set

from .device import DeviceRegistration, RecipientContact
from .notification import (
    DeliveryChannel,
    DeliveryState,
    Notification,
    NotificationRequest,
    PRIMARY_CHANNELS,
    Priority,
)
from .preferences import NotificationPreferences


@dataclass
class QueueItem:
    """
    A notification waiting for delivery.

    Preferences, devices and contact are snapshots taken at enqueue time.
    scheduled_for is None when the item is ready on the next tick.
    """
    id: str
    request: NotificationRequest
    notification: Notification
    priority: Priority
    channels: List[DeliveryChannel]
    max_retries: int = 3
    retry_count: int = 0
    scheduled_for: Optional[datetime] = None
    preferences: NotificationPreferences = field(default_factory=NotificationPreferences)
    devices: List[DeviceRegistration] = field(default_factory=list)
    contact: Optional[RecipientContact] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def user_id(self) -> int:
        return self.request.recipient_user_id

    @property
    def notification_id(self) -> int:
        return self.notification.id

    def is_ready(self, now: datetime) -> bool:
        return self.scheduled_for is None or self.scheduled_for <= now

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        return {
            "queue_id": self.id,
            "notification_id": self.notification_id,
            "user_id": self.user_id,
            "priority": self.priority.value,
            "channels": [c.value for c in self.channels],
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "scheduled_for": self.scheduled_for.isoformat() if self.scheduled_for else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class DeliveryStatus:
    """
    Delivery ledger row for one notification.

    state is delivered iff a primary channel (websocket / push) succeeded;
    email or SMS alone only make it partial.
    """
    notification_id: int
    user_id: int
    delivered_channels: Set[DeliveryChannel] = field(default_factory=set)
    total_attempts: int = 0
    last_attempt: Optional[datetime] = None
    state: DeliveryState = DeliveryState.PENDING
    finished_at: Optional[datetime] = None

    @property
    def websocket_delivered(self) -> bool:
        return DeliveryChannel.WEBSOCKET in self.delivered_channels

    @property
    def push_delivered(self) -> bool:
        return DeliveryChannel.PUSH in self.delivered_channels

    @property
    def email_delivered(self) -> bool:
        return DeliveryChannel.EMAIL in self.delivered_channels

    @property
    def sms_delivered(self) -> bool:
        return DeliveryChannel.SMS in self.delivered_channels

    @property
    def is_delivered(self) -> bool:
        return bool(self.delivered_channels & PRIMARY_CHANNELS)

    @property
    def is_terminal(self) -> bool:
        return self.finished_at is not None

    def has_delivered(self, channel: DeliveryChannel) -> bool:
        return channel in self.delivered_channels

    def refresh_state(self) -> DeliveryState:
        """Recompute state from the per-channel flags"""
        if self.is_delivered:
            self.state = DeliveryState.DELIVERED
        elif self.delivered_channels:
            self.state = DeliveryState.PARTIAL
        return self.state

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        return {
            "notification_id": self.notification_id,
            "user_id": self.user_id,
            "websocket_delivered": self.websocket_delivered,
            "push_delivered": self.push_delivered,
            "email_delivered": self.email_delivered,
            "sms_delivered": self.sms_delivered,
            "total_attempts": self.total_attempts,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
            "status": self.state.value,
        }
