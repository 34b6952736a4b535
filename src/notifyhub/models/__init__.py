"""
NotifyHub Data Models

Domain models for the notification delivery hub.
"""
from .notification import (
    Priority,
    DeliveryChannel,
    DeliveryState,
    CHANNEL_ORDER,
    PRIMARY_CHANNELS,
    Notification,
    NotificationTemplate,
    NotificationRequest,
)
from .preferences import NotificationPreferences
from .device import DeviceRegistration, RecipientContact
from .queue import QueueItem, DeliveryStatus

__all__ = [
    'Priority',
    'DeliveryChannel',
    'DeliveryState',
    'CHANNEL_ORDER',
    'PRIMARY_CHANNELS',
    'Notification',
    'NotificationTemplate',
    'NotificationRequest',
    'NotificationPreferences',
    'DeviceRegistration',
    'RecipientContact',
    'QueueItem',
    'DeliveryStatus',
]
