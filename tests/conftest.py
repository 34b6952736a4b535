"""
Shared fixtures: in-memory stand-ins for the PostgreSQL storages and
scriptable delivery channels.
"""
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from notifyhub.channels.base_channel import BaseChannel, DeliveryResult
from notifyhub.models import (
    CHANNEL_ORDER,
    DeliveryChannel,
    DeviceRegistration,
    Notification,
    NotificationPreferences,
    RecipientContact,
)
from notifyhub.services.notification_hub import NotificationHub
from notifyhub.services.template_registry import TemplateRegistry


class InMemoryNotificationStorage:
    def __init__(self):
        self.rows: Dict[int, Notification] = {}
        self.updates: List[tuple] = []
        self._next_id = 1

    async def create(self, notification: Notification) -> Notification:
        notification.id = self._next_id
        self._next_id += 1
        self.rows[notification.id] = notification
        return notification

    async def update_delivery(self, notification_id, status, delivered_at=None, failure_reason=None):
        self.updates.append((notification_id, status, failure_reason))
        row = self.rows.get(notification_id)
        if row is None:
            return None
        row.status = status
        if delivered_at is not None:
            row.delivered_at = delivered_at
        if failure_reason is not None:
            row.failure_reason = failure_reason
        row.updated_at = datetime.utcnow()
        return row

    async def get_by_id(self, notification_id):
        return self.rows.get(notification_id)

    async def list_by_user(self, user_id, limit=50, status=None):
        rows = [n for n in self.rows.values() if n.recipient_user_id == user_id]
        if status is not None:
            rows = [n for n in rows if n.status == status]
        return rows[:limit]


class InMemoryPreferencesStorage:
    def __init__(self):
        self.rows: Dict[int, NotificationPreferences] = {}

    async def get_for_user(self, user_id):
        return self.rows.get(user_id) or NotificationPreferences(user_id=user_id)

    async def upsert(self, preferences):
        self.rows[preferences.user_id] = preferences
        return preferences


class InMemoryDeviceStorage:
    def __init__(self):
        self.devices: List[DeviceRegistration] = []
        self.deactivated: List[int] = []

    async def list_active_by_user(self, user_id):
        return [d for d in self.devices if d.user_id == user_id and d.is_active]

    async def deactivate(self, device_id):
        self.deactivated.append(device_id)
        return True


class InMemoryUserStorage:
    def __init__(self):
        self.contacts: Dict[int, RecipientContact] = {}
        # user id -> role, only active users
        self.roles: Dict[int, str] = {}

    async def get_contact(self, user_id) -> Optional[RecipientContact]:
        return self.contacts.get(user_id)

    async def list_active_ids_by_roles(self, roles):
        return sorted(uid for uid, role in self.roles.items() if role in roles)


class ScriptedChannel(BaseChannel):
    """Channel whose outcome is set by the test; records the notifications it saw"""

    def __init__(self, channel: DeliveryChannel, result: Optional[DeliveryResult] = None):
        self.channel = channel
        self.result = result or DeliveryResult(success=False, error=f"{channel.value} down")
        self.queued_results: List[DeliveryResult] = []
        self.calls: List[int] = []
        self.closed = False

    async def deliver(self, item):
        self.calls.append(item.notification_id)
        if self.queued_results:
            return self.queued_results.pop(0)
        return self.result

    async def close(self):
        self.closed = True


DELIVERED = DeliveryResult(success=True)
OFFLINE = DeliveryResult(success=False, error="Recipient offline", deferred=True)


@pytest.fixture
def notification_storage():
    return InMemoryNotificationStorage()


@pytest.fixture
def preferences_storage():
    return InMemoryPreferencesStorage()


@pytest.fixture
def device_storage():
    return InMemoryDeviceStorage()


@pytest.fixture
def user_storage():
    return InMemoryUserStorage()


@pytest.fixture
def channels():
    return {channel: ScriptedChannel(channel) for channel in CHANNEL_ORDER}


@pytest.fixture
def hub(notification_storage, preferences_storage, device_storage, user_storage, channels):
    return NotificationHub(
        notification_storage=notification_storage,
        preferences_storage=preferences_storage,
        templates=TemplateRegistry(),
        channels=channels,
        device_storage=device_storage,
        user_storage=user_storage,
        max_retries=3,
        channel_timeout=1.0,
    )


def make_ready(hub: NotificationHub):
    """Clear backoff so every queued item is picked up on the next tick"""
    for item in hub.queued_items():
        item.scheduled_for = None


