"""
Preferences Storage

PostgreSQL storage for per-user notification preferences.
"""
import logging
from dataclasses import fields
from datetime import datetime

from .base import BaseStorage
from ..models.preferences import NotificationPreferences

logger = logging.getLogger("notifyhub.storage.preferences")

# Every dataclass field except user_id maps 1:1 to a column
_COLUMNS = [f.name for f in fields(NotificationPreferences) if f.name != "user_id"]


class PreferencesStorage(BaseStorage):
    """Storage for NotificationPreferences"""

    async def get_for_user(self, user_id: int) -> NotificationPreferences:
        """Get preferences for a user, falling back to defaults"""
        row = await self.fetchrow(
            "SELECT * FROM notification_preferences WHERE user_id = $1", user_id
        )
        if not row:
            logger.debug(f"No preferences stored for user {user_id}, using defaults")
            return NotificationPreferences(user_id=user_id)
        return self._row_to_preferences(row)

    async def upsert(self, preferences: NotificationPreferences) -> NotificationPreferences:
        """Create or replace a user's preferences"""
        columns = ", ".join(_COLUMNS)
        placeholders = ", ".join(f"${i}" for i in range(2, len(_COLUMNS) + 2))
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in _COLUMNS)
        ts = len(_COLUMNS) + 2
        query = f"""
            INSERT INTO notification_preferences (user_id, {columns}, created_at, updated_at)
            VALUES ($1, {placeholders}, ${ts}, ${ts})
            ON CONFLICT (user_id) DO UPDATE
            SET {updates}, updated_at = EXCLUDED.updated_at
            RETURNING *
        """
        values = [getattr(preferences, c) for c in _COLUMNS]
        row = await self.fetchrow(query, preferences.user_id, *values, datetime.utcnow())
        return self._row_to_preferences(row)

    def _row_to_preferences(self, row) -> NotificationPreferences:
        """Convert database row to NotificationPreferences; NULL columns keep defaults"""
        values = {c: row[c] for c in _COLUMNS if row[c] is not None}
        return NotificationPreferences(user_id=row["user_id"], **values)
