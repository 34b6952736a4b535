"""
Device Storage

PostgreSQL storage for push device registrations.
"""
import logging
from datetime import datetime
from typing import Optional, List

from .base import BaseStorage
from ..models.device import DeviceRegistration

logger = logging.getLogger("notifyhub.storage.device")


class DeviceStorage(BaseStorage):
    """Storage for DeviceRegistration entities"""

    async def register(self, device: DeviceRegistration) -> DeviceRegistration:
        """Register a device; re-registering a token moves it to the given user"""
        query = """
            INSERT INTO device_registrations (
                user_id, device_token, platform, device_name,
                push_enabled, is_active, created_at, last_active
            )
            VALUES ($1, $2, $3, $4, $5, true, $6, $6)
            ON CONFLICT (device_token) DO UPDATE
            SET user_id = EXCLUDED.user_id,
                platform = EXCLUDED.platform,
                device_name = EXCLUDED.device_name,
                push_enabled = EXCLUDED.push_enabled,
                is_active = true,
                last_active = EXCLUDED.last_active
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            device.user_id, device.device_token, device.platform,
            device.device_name, device.push_enabled, datetime.utcnow()
        )
        logger.info(f"Device registered for user {device.user_id} (platform={device.platform})")
        return self._row_to_device(row)

    async def list_active_by_user(self, user_id: int) -> List[DeviceRegistration]:
        """List active devices for a user"""
        query = """
            SELECT * FROM device_registrations
            WHERE user_id = $1 AND is_active = true
            ORDER BY last_active DESC
        """
        rows = await self.fetch(query, user_id)
        return [self._row_to_device(row) for row in rows]

    async def get_by_id(self, device_id: int) -> Optional[DeviceRegistration]:
        """Get device by ID"""
        row = await self.fetchrow("SELECT * FROM device_registrations WHERE id = $1", device_id)
        return self._row_to_device(row) if row else None

    async def deactivate(self, device_id: int) -> bool:
        """Mark a device inactive (e.g. the push service reported it expired)"""
        result = await self.execute(
            "UPDATE device_registrations SET is_active = false WHERE id = $1", device_id
        )
        return result == "UPDATE 1"

    async def unregister(self, device_token: str) -> bool:
        """Delete a device by token"""
        result = await self.execute(
            "DELETE FROM device_registrations WHERE device_token = $1", device_token
        )
        return result == "DELETE 1"

    def _row_to_device(self, row) -> DeviceRegistration:
        """Convert database row to DeviceRegistration"""
        return DeviceRegistration(
            id=row["id"],
            user_id=row["user_id"],
            device_token=row["device_token"],
            platform=row["platform"],
            device_name=row["device_name"],
            push_enabled=row["push_enabled"],
            is_active=row["is_active"],
            created_at=row["created_at"],
            last_active=row["last_active"],
        )
