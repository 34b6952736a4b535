"""
Notification Models

Notification: persisted notification row.
NotificationTemplate: reusable title/body templates keyed by name.
NotificationRequest: an inbound ask to notify one user.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Priority(str, Enum):
    """Notification priority tiers"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort rank, lower is processed first"""
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.URGENT: 1,
    Priority.HIGH: 2,
    Priority.MEDIUM: 3,
    Priority.LOW: 4,
}


class DeliveryChannel(str, Enum):
    """Delivery transports, declared in delivery precedence order"""
    WEBSOCKET = "websocket"   # Live connection (real-time)
    PUSH = "push"             # Web / mobile push
    EMAIL = "email"
    SMS = "sms"


CHANNEL_ORDER: Tuple[DeliveryChannel, ...] = (
    DeliveryChannel.WEBSOCKET,
    DeliveryChannel.PUSH,
    DeliveryChannel.EMAIL,
    DeliveryChannel.SMS,
)

# Success on one of these makes a notification "delivered"
PRIMARY_CHANNELS = frozenset({DeliveryChannel.WEBSOCKET, DeliveryChannel.PUSH})


class DeliveryState(str, Enum):
    """Overall delivery state of a notification"""
    PENDING = "pending"
    PARTIAL = "partial"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class NotificationTemplate:
    """
    Reusable notification template.

    Title, body and action url use {{name}} placeholders that are
    substituted from the request context.
    """
    key: str = ""
    category: str = "system"                             # sales, inventory, customer, financial, system, staff
    notification_type: str = "system"
    priority: Priority = Priority.MEDIUM
    title_template: str = ""
    body_template: str = ""
    action_url_template: Optional[str] = None
    icon_name: Optional[str] = None
    badge_color: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class NotificationRequest:
    """
    Request to notify a single user.

    Either template_key or a literal title/body must be set.
    Immutable once handed to the hub.
    """
    recipient_user_id: int
    template_key: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    priority: Optional[Priority] = None
    channels: Optional[Tuple[DeliveryChannel, ...]] = None
    scheduled_for: Optional[datetime] = None
    category: Optional[str] = None                       # Only used for literal requests
    action_url: Optional[str] = None
    related_entity_type: Optional[str] = None            # vehicle, customer, lead, appointment, job, sale
    related_entity_id: Optional[int] = None
    sender_user_id: Optional[int] = None
    force_delivery: bool = False

    @property
    def is_literal(self) -> bool:
        return self.template_key is None


@dataclass
class Notification:
    """
    Persisted notification record.

    status mirrors the delivery ledger: pending, partial, delivered, failed.
    """
    recipient_user_id: int
    title: str
    body: str
    notification_type: str = "system"
    priority_level: Priority = Priority.MEDIUM
    action_url: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    status: DeliveryState = DeliveryState.PENDING
    delivered_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    action_data: Optional[dict] = None
    id: Optional[int] = None

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        return {
            "id": self.id,
            "recipient_user_id": self.recipient_user_id,
            "notification_type": self.notification_type,
            "priority_level": self.priority_level.value,
            "title": self.title,
            "body": self.body,
            "action_url": self.action_url,
            "related_entity_type": self.related_entity_type,
            "related_entity_id": self.related_entity_id,
            "status": self.status.value,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "failure_reason": self.failure_reason,
            "action_data": self.action_data,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
