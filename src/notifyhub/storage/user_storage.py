"""
User Storage

Read-only access to dealership users: contact details for email/SMS
delivery and role lookups for event recipients.
"""
import logging
from typing import Optional, List, Sequence

from .base import BaseStorage
from ..models.device import RecipientContact

logger = logging.getLogger("notifyhub.storage.user")


class UserStorage(BaseStorage):
    """Storage for user lookups"""

    async def get_contact(self, user_id: int) -> Optional[RecipientContact]:
        """Get a user's email and phone"""
        row = await self.fetchrow(
            "SELECT id, email, phone FROM users WHERE id = $1", user_id
        )
        if not row:
            return None
        return RecipientContact(user_id=row["id"], email=row["email"], phone=row["phone"])

    async def list_active_ids_by_roles(self, roles: Sequence[str]) -> List[int]:
        """List ids of active users holding any of the given roles"""
        query = """
            SELECT id FROM users
            WHERE is_active = true AND role = ANY($1::text[])
            ORDER BY id
        """
        rows = await self.fetch(query, list(roles))
        return [row["id"] for row in rows]
