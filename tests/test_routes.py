"""
Unit Tests for the HTTP API
Routes run against a mocked engine service
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from notifyhub.app import app
from notifyhub.errors import (
    InvalidNotificationError,
    NotificationBlockedError,
    NotificationsDisabledError,
    TemplateNotFoundError,
    UnknownEventError,
    UnknownRecipientError,
)
from notifyhub.models import (
    DeliveryChannel,
    DeliveryStatus,
    DeviceRegistration,
    NotificationPreferences,
    Priority,
)
from notifyhub.services.notification_hub import BroadcastResult, IntakeResult

# Test client
client = TestClient(app)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def engine():
    engine = MagicMock()
    engine.notification_hub.send_notification = AsyncMock(
        return_value=IntakeResult(notification_id=11, queue_id="queue_1_abc")
    )
    engine.notification_hub.broadcast_notification = AsyncMock(
        return_value=BroadcastResult(notification_ids=[11], queue_ids=["queue_1_abc"], failures={2: "disabled"})
    )
    engine.event_service.emit = AsyncMock(return_value=BroadcastResult())
    engine.preferences_storage.get_for_user = AsyncMock(
        side_effect=lambda uid: NotificationPreferences(user_id=uid)
    )
    engine.preferences_storage.upsert = AsyncMock(side_effect=lambda prefs: prefs)
    engine.device_storage.register = AsyncMock(side_effect=lambda device: device)
    engine.device_storage.unregister = AsyncMock(return_value=True)
    engine.notification_storage.list_by_user = AsyncMock(return_value=[])

    with patch("notifyhub.routes.notifications.get_engine_service", return_value=engine):
        yield engine


# ============================================================================
# INTAKE
# ============================================================================

class TestSendRoutes:

    def test_send_notification(self, engine):
        response = client.post("/api/v1/notifications/send", json={
            "recipient_user_id": 7,
            "template_key": "vehicle.sold",
            "context": {"username": "dave"},
            "priority": "urgent",
            "channels": ["websocket", "push"],
        })

        assert response.status_code == 200
        assert response.json() == {"notification_id": 11, "queue_id": "queue_1_abc"}
        request = engine.notification_hub.send_notification.await_args.args[0]
        assert request.recipient_user_id == 7
        assert request.priority == Priority.URGENT
        assert request.channels == (DeliveryChannel.WEBSOCKET, DeliveryChannel.PUSH)

    @pytest.mark.parametrize("error, status_code", [
        (InvalidNotificationError("missing body"), 400),
        (NotificationsDisabledError(7), 403),
        (NotificationBlockedError(7, "sales"), 403),
        (TemplateNotFoundError("nope"), 404),
        (UnknownRecipientError(7), 404),
    ])
    def test_intake_errors_map_to_status_codes(self, engine, error, status_code):
        engine.notification_hub.send_notification.side_effect = error

        response = client.post("/api/v1/notifications/send", json={"recipient_user_id": 7})

        assert response.status_code == status_code
        assert response.json()["detail"] == str(error)

    def test_invalid_priority_is_rejected(self, engine):
        response = client.post("/api/v1/notifications/send", json={
            "recipient_user_id": 7, "title": "t", "body": "b", "priority": "whenever",
        })
        assert response.status_code == 422

    def test_broadcast(self, engine):
        response = client.post("/api/v1/notifications/broadcast", json={
            "user_ids": [1, 2], "template_key": "lead.created", "context": {"lead_name": "J"},
        })

        assert response.status_code == 200
        assert response.json()["failures"] == {"2": "disabled"}
        args = engine.notification_hub.broadcast_notification.await_args
        assert args.args[0] == [1, 2]
        assert args.kwargs["template_key"] == "lead.created"

    def test_broadcast_requires_users(self, engine):
        response = client.post("/api/v1/notifications/broadcast", json={
            "user_ids": [], "template_key": "lead.created",
        })
        assert response.status_code == 400

    def test_emit_event(self, engine):
        response = client.post("/api/v1/notifications/events/lead.created", json={
            "payload": {"username": "sam", "lead_name": "J"}, "exclude_user_id": 3,
        })

        assert response.status_code == 200
        engine.event_service.emit.assert_awaited_once_with(
            "lead.created", {"username": "sam", "lead_name": "J"}, exclude_user_id=3
        )

    def test_emit_unknown_event(self, engine):
        engine.event_service.emit.side_effect = UnknownEventError("vehicle.crashed")

        response = client.post("/api/v1/notifications/events/vehicle.crashed", json={"payload": {}})

        assert response.status_code == 404


# ============================================================================
# STATUS / STATS
# ============================================================================

class TestStatusRoutes:

    def test_delivery_status(self, engine):
        status = DeliveryStatus(notification_id=11, user_id=7)
        engine.notification_hub.get_delivery_status.return_value = status

        response = client.get("/api/v1/notifications/status/11")

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["websocket_delivered"] is False

    def test_unknown_delivery_status(self, engine):
        engine.notification_hub.get_delivery_status.return_value = None

        response = client.get("/api/v1/notifications/status/404")

        assert response.status_code == 404

    def test_queue_stats(self, engine):
        engine.notification_hub.get_queue_stats.return_value = {"total_queued": 3}

        response = client.get("/api/v1/notifications/stats/queue")

        assert response.json() == {"total_queued": 3}

    def test_delivery_stats(self, engine):
        engine.notification_hub.get_delivery_stats.return_value = {"success_rate": 75.0}

        response = client.get("/api/v1/notifications/stats/delivery")

        assert response.json() == {"success_rate": 75.0}


# ============================================================================
# PREFERENCES / DEVICES
# ============================================================================

class TestPreferenceRoutes:

    def test_get_preferences(self, engine):
        response = client.get("/api/v1/notifications/preferences/7")

        assert response.status_code == 200
        assert response.json()["user_id"] == 7
        assert response.json()["notifications_enabled"] is True

    def test_partial_update_keeps_other_flags(self, engine):
        response = client.put("/api/v1/notifications/preferences/7", json={
            "sales_notifications": False, "quiet_hours_start": "21:30",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["sales_notifications"] is False
        assert data["quiet_hours_start"] == "21:30"
        assert data["inventory_notifications"] is True


class TestDeviceRoutes:

    def test_register_device(self, engine):
        response = client.post("/api/v1/notifications/devices", json={
            "user_id": 7, "device_token": "fcm-token", "platform": "android",
        })

        assert response.status_code == 200
        device = engine.device_storage.register.await_args.args[0]
        assert isinstance(device, DeviceRegistration)
        assert device.platform == "android"

    def test_register_unknown_platform(self, engine):
        response = client.post("/api/v1/notifications/devices", json={
            "user_id": 7, "device_token": "x", "platform": "pager",
        })
        assert response.status_code == 400

    def test_unregister_missing_device(self, engine):
        engine.device_storage.unregister.return_value = False

        response = client.delete("/api/v1/notifications/devices/unknown-token")

        assert response.status_code == 404


class TestHealthRoutes:

    def test_health(self):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
