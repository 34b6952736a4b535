"""
Unit Tests for the delivery ledger, offline buffer, templates and preferences
"""
from datetime import datetime, time, timedelta
from unittest.mock import AsyncMock

import pytest

from notifyhub.models import (
    DeliveryChannel,
    DeliveryState,
    Notification,
    NotificationPreferences,
    NotificationRequest,
    NotificationTemplate,
    Priority,
    QueueItem,
)
from notifyhub.services.delivery_ledger import DeliveryLedger
from notifyhub.services.event_registry import EVENT_REGISTRY
from notifyhub.services.offline_buffer import OfflineBuffer
from notifyhub.services.template_registry import TemplateRegistry, render_template


def queued(queue_id, user_id, created_at=None):
    item = QueueItem(
        id=queue_id,
        request=NotificationRequest(recipient_user_id=user_id, title="t", body="b"),
        notification=Notification(recipient_user_id=user_id, title="t", body="b", id=1),
        priority=Priority.MEDIUM,
        channels=[DeliveryChannel.WEBSOCKET],
    )
    if created_at is not None:
        item.created_at = created_at
    return item


# ============================================================================
# DELIVERY LEDGER
# ============================================================================

class TestDeliveryLedger:

    def test_secondary_channel_alone_is_partial(self):
        ledger = DeliveryLedger()
        ledger.create(1, user_id=7)

        assert ledger.mark_delivered(1, DeliveryChannel.EMAIL) == DeliveryState.PARTIAL
        assert ledger.mark_delivered(1, DeliveryChannel.PUSH) == DeliveryState.DELIVERED

        status = ledger.get(1)
        assert status.email_delivered and status.push_delivered
        assert not status.websocket_delivered
        assert status.to_dict()["status"] == "delivered"

    def test_record_attempt(self):
        ledger = DeliveryLedger()
        ledger.create(1, user_id=7)
        now = datetime.utcnow()

        ledger.record_attempt(1, now)
        ledger.record_attempt(1, now)

        assert ledger.get(1).total_attempts == 2
        assert ledger.get(1).last_attempt == now

    def test_stats(self):
        ledger = DeliveryLedger()
        for nid in range(1, 5):
            ledger.create(nid, user_id=7)
        ledger.mark_delivered(1, DeliveryChannel.WEBSOCKET)
        ledger.mark_delivered(2, DeliveryChannel.PUSH)
        ledger.mark_delivered(2, DeliveryChannel.EMAIL)
        ledger.mark_delivered(3, DeliveryChannel.SMS)
        ledger.finish(4, DeliveryState.FAILED, datetime.utcnow())

        stats = ledger.stats()

        assert stats["total_processed"] == 4
        assert stats["success_rate"] == 50.0
        assert stats["by_method"] == {"websocket": 1, "push": 1, "email": 1, "sms": 1}
        assert stats["by_status"] == {"pending": 0, "partial": 1, "delivered": 2, "failed": 1}

    def test_empty_stats(self):
        assert DeliveryLedger().stats()["success_rate"] == 0.0

    def test_only_finished_rows_are_evicted(self):
        ledger = DeliveryLedger()
        ledger.create(1, user_id=7)
        ledger.create(2, user_id=7)
        ledger.finish(1, DeliveryState.DELIVERED, datetime.utcnow() - timedelta(days=2))

        assert ledger.evict_finished_before(datetime.utcnow() - timedelta(days=1)) == 1
        assert 1 not in ledger
        assert 2 in ledger


# ============================================================================
# OFFLINE BUFFER
# ============================================================================

class TestOfflineBuffer:

    def test_drain_returns_items_in_arrival_order(self):
        buffer = OfflineBuffer()
        buffer.add(queued("q1", 7))
        buffer.add(queued("q2", 8))
        buffer.add(queued("q3", 7))

        assert [item.id for item in buffer.drain(7)] == ["q1", "q3"]
        assert buffer.drain(7) == []
        assert buffer.counts() == {8: 1}
        assert len(buffer) == 1

    def test_evict_created_before(self):
        buffer = OfflineBuffer()
        old = datetime.utcnow() - timedelta(days=2)
        buffer.add(queued("q1", 7, created_at=old))
        buffer.add(queued("q2", 7))

        evicted = buffer.evict_created_before(datetime.utcnow() - timedelta(days=1))

        assert [item.id for item in evicted] == ["q1"]
        assert not buffer.contains("q1")
        assert buffer.contains("q2")


# ============================================================================
# TEMPLATES
# ============================================================================

class TestTemplates:

    def test_render_substitutes_known_placeholders(self):
        rendered = render_template("{{username}} sold {{ registration }} for £{{price}}", {
            "username": "dave", "registration": "AB12 CDE",
        })
        assert rendered == "dave sold AB12 CDE for £{{price}}"

    def test_render_stringifies_values(self):
        assert render_template("{{count}} leads", {"count": 3}) == "3 leads"

    @pytest.mark.asyncio
    async def test_event_templates_are_builtin(self):
        registry = TemplateRegistry()

        template = await registry.get_by_key("lead.created")

        assert template.category == "customer"
        assert template.priority == Priority.HIGH
        assert template.action_url_template == "/leads"

    @pytest.mark.asyncio
    async def test_falls_back_to_storage(self):
        stored = NotificationTemplate(key="finance.approved", category="financial", title_template="Approved")
        storage = AsyncMock()
        storage.get_by_key.return_value = stored
        registry = TemplateRegistry(storage)

        assert await registry.get_by_key("finance.approved") is stored
        storage.get_by_key.assert_awaited_once_with("finance.approved")

    @pytest.mark.asyncio
    async def test_unknown_key_without_storage(self):
        assert await TemplateRegistry().get_by_key("nope") is None

    @pytest.mark.asyncio
    async def test_registered_template_overrides_builtin(self):
        registry = TemplateRegistry()
        registry.register(NotificationTemplate(key="job.booked", title_template="Workshop job"))

        assert (await registry.get_by_key("job.booked")).title_template == "Workshop job"

    def test_every_event_has_a_template_for_its_fields(self):
        for event in EVENT_REGISTRY.values():
            template = event.to_template()
            assert template.key == event.event_type
            assert "{{username}}" in template.body_template


# ============================================================================
# PREFERENCES
# ============================================================================

class TestPreferences:

    def test_category_flags(self):
        prefs = NotificationPreferences(sales_notifications=False)

        assert not prefs.allows_category("sales")
        assert prefs.allows_category("inventory")
        assert prefs.allows_category("unheard-of")
        assert prefs.allows_category(None)

    def test_event_flags(self):
        prefs = NotificationPreferences(vehicle_sold_enabled=False)

        assert not prefs.allows_event("vehicle.sold")
        assert prefs.allows_event("lead.created")

    def test_to_dict_formats_quiet_hours(self):
        data = NotificationPreferences(user_id=7, quiet_hours_start=time(21, 30)).to_dict()

        assert data["quiet_hours_start"] == "21:30"
        assert data["quiet_hours_end"] == "06:00"
        assert data["user_id"] == 7
