"""
Notification Storage

PostgreSQL storage for persisted notification rows.
"""
import json
import logging
from datetime import datetime
from typing import Optional, List

import asyncpg

from .base import BaseStorage
from ..errors import UnknownRecipientError
from ..models.notification import DeliveryState, Notification, Priority

logger = logging.getLogger("notifyhub.storage.notification")


class NotificationStorage(BaseStorage):
    """Storage for Notification entities"""

    async def create(self, notification: Notification) -> Notification:
        """Insert a notification and return it with its id"""
        query = """
            INSERT INTO notifications (
                recipient_user_id, notification_type, priority_level,
                title, body, action_url,
                related_entity_type, related_entity_id,
                status, action_data, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            RETURNING *
        """
        try:
            row = await self.fetchrow(
                query,
                notification.recipient_user_id, notification.notification_type,
                notification.priority_level.value,
                notification.title, notification.body, notification.action_url,
                notification.related_entity_type, notification.related_entity_id,
                notification.status.value,
                json.dumps(notification.action_data) if notification.action_data else None,
                notification.created_at, notification.updated_at
            )
        except asyncpg.ForeignKeyViolationError as e:
            raise UnknownRecipientError(notification.recipient_user_id) from e
        return self._row_to_notification(row)

    async def update_delivery(
        self,
        notification_id: int,
        status: DeliveryState,
        delivered_at: Optional[datetime] = None,
        failure_reason: Optional[str] = None,
    ) -> Optional[Notification]:
        """Mirror the delivery ledger into the stored row"""
        query = """
            UPDATE notifications
            SET status = $2,
                delivered_at = COALESCE($3, delivered_at),
                failure_reason = $4,
                updated_at = $5
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(
            query, notification_id, status.value, delivered_at,
            failure_reason, datetime.utcnow()
        )
        return self._row_to_notification(row) if row else None

    async def get_by_id(self, notification_id: int) -> Optional[Notification]:
        """Get notification by ID"""
        row = await self.fetchrow("SELECT * FROM notifications WHERE id = $1", notification_id)
        return self._row_to_notification(row) if row else None

    async def list_by_user(
        self, user_id: int, limit: int = 50, status: Optional[DeliveryState] = None
    ) -> List[Notification]:
        """List a user's notifications, newest first"""
        if status is not None:
            query = """
                SELECT * FROM notifications
                WHERE recipient_user_id = $1 AND status = $3
                ORDER BY created_at DESC
                LIMIT $2
            """
            rows = await self.fetch(query, user_id, limit, status.value)
        else:
            query = """
                SELECT * FROM notifications
                WHERE recipient_user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
            """
            rows = await self.fetch(query, user_id, limit)
        return [self._row_to_notification(row) for row in rows]

    def _row_to_notification(self, row) -> Notification:
        """Convert database row to Notification"""
        action_data = row["action_data"]
        if isinstance(action_data, str):
            action_data = json.loads(action_data)

        return Notification(
            id=row["id"],
            recipient_user_id=row["recipient_user_id"],
            notification_type=row["notification_type"],
            priority_level=Priority(row["priority_level"]),
            title=row["title"],
            body=row["body"],
            action_url=row["action_url"],
            related_entity_type=row["related_entity_type"],
            related_entity_id=row["related_entity_id"],
            status=DeliveryState(row["status"]),
            delivered_at=row["delivered_at"],
            failure_reason=row["failure_reason"],
            action_data=action_data,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
