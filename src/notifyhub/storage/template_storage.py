"""
Template Storage

PostgreSQL storage for notification templates.
"""
import logging
from typing import Optional, List

from .base import BaseStorage
from ..models.notification import NotificationTemplate, Priority

logger = logging.getLogger("notifyhub.storage.template")


class TemplateStorage(BaseStorage):
    """Storage for NotificationTemplate entities"""

    async def get_by_key(self, key: str) -> Optional[NotificationTemplate]:
        """Get an active template by key"""
        query = """
            SELECT * FROM notification_templates
            WHERE template_key = $1 AND is_active = true
        """
        row = await self.fetchrow(query, key)
        return self._row_to_template(row) if row else None

    async def list_active(self) -> List[NotificationTemplate]:
        """List active templates"""
        query = """
            SELECT * FROM notification_templates
            WHERE is_active = true
            ORDER BY template_key
        """
        rows = await self.fetch(query)
        return [self._row_to_template(row) for row in rows]

    def _row_to_template(self, row) -> NotificationTemplate:
        """Convert database row to NotificationTemplate"""
        return NotificationTemplate(
            id=row["id"],
            key=row["template_key"],
            category=row["template_category"],
            notification_type=row["notification_type"],
            priority=Priority(row["priority_level"]),
            title_template=row["title_template"],
            body_template=row["body_template"],
            action_url_template=row["action_url_template"],
            icon_name=row["icon_name"],
            badge_color=row["badge_color"],
        )
