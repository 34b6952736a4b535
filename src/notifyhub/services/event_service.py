"""
Notification Event Service

Turns dealership business events (vehicle sold, lead created, ...) into
notifications for every user whose role should hear about them.
"""
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from .event_registry import EVENT_REGISTRY, EventDefinition
from .notification_hub import BroadcastResult, NotificationHub
from ..errors import InvalidNotificationError, UnknownEventError
from ..storage.preferences_storage import PreferencesStorage
from ..storage.user_storage import UserStorage

logger = logging.getLogger("notifyhub.services.events")


class NotificationEventService:
    """Dispatches registered business events through the hub"""

    def __init__(
        self,
        hub: NotificationHub,
        user_storage: UserStorage,
        preferences_storage: PreferencesStorage,
    ):
        self.hub = hub
        self.user_storage = user_storage
        self.preferences_storage = preferences_storage

    @staticmethod
    def get_event(event_type: str) -> EventDefinition:
        event = EVENT_REGISTRY.get(event_type)
        if event is None:
            raise UnknownEventError(event_type)
        return event

    @staticmethod
    def list_events() -> List[EventDefinition]:
        return list(EVENT_REGISTRY.values())

    def validate_payload(self, event_type: str, payload: Mapping[str, Any]) -> List[str]:
        """Return the names of required fields missing from the payload"""
        event = self.get_event(event_type)
        return [
            name for name in event.required_fields
            if payload.get(name) is None or payload.get(name) == ""
        ]

    async def emit(
        self,
        event_type: str,
        payload: Dict[str, Any],
        exclude_user_id: Optional[int] = None,
    ) -> BroadcastResult:
        """
        Notify every interested user about an event.

        Recipients are active users in the event's roles, minus the user
        who triggered it and users who switched the event off.
        """
        event = self.get_event(event_type)
        missing = self.validate_payload(event_type, payload)
        if missing:
            raise InvalidNotificationError(
                f"Event {event_type} is missing required fields: {', '.join(missing)}"
            )

        recipients = await self._resolve_recipients(event, exclude_user_id)
        if not recipients:
            logger.info(f"Event {event_type}: no recipients")
            return BroadcastResult()

        entity_id = payload.get("entity_id")
        result = await self.hub.broadcast_notification(
            recipients,
            template_key=event.event_type,
            context=dict(payload),
            priority=event.priority,
            related_entity_type=event.entity_type,
            related_entity_id=entity_id if isinstance(entity_id, int) else None,
            sender_user_id=exclude_user_id,
        )
        logger.info(
            f"Event {event_type}: {len(result.notification_ids)} notification(s) queued, "
            f"{len(result.failures)} skipped"
        )
        return result

    async def _resolve_recipients(
        self, event: EventDefinition, exclude_user_id: Optional[int]
    ) -> List[int]:
        user_ids = await self.user_storage.list_active_ids_by_roles(event.roles)
        candidates = [uid for uid in user_ids if uid != exclude_user_id]

        preferences = await asyncio.gather(
            *(self.preferences_storage.get_for_user(uid) for uid in candidates)
        )
        return [
            uid for uid, prefs in zip(candidates, preferences)
            if prefs.allows_event(event.event_type)
        ]
