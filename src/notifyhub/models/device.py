"""
Device Models

DeviceRegistration: a push-capable device (web subscription or mobile token).
RecipientContact: email / phone used by the email and SMS channels.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class DeviceRegistration:
    """
    A device registered for push notifications.

    For platform 'web' the device_token holds the JSON push subscription
    ({"endpoint": ..., "keys": {...}}); for 'android' / 'ios' it is the FCM token.
    """
    user_id: int
    device_token: str
    platform: str = "web"                                # web, android, ios
    device_name: Optional[str] = None
    push_enabled: bool = True
    is_active: bool = True
    id: Optional[int] = None

    created_at: datetime = field(default_factory=datetime.utcnow)
    last_active: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "platform": self.platform,
            "device_name": self.device_name,
            "push_enabled": self.push_enabled,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat(),
        }


@dataclass
class RecipientContact:
    """Where to reach a user outside the app"""
    user_id: int
    email: Optional[str] = None
    phone: Optional[str] = None
