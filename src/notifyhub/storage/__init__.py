"""
NotifyHub Storage Layer

PostgreSQL storage implementations for notification entities.
"""
from .base import BaseStorage
from .notification_storage import NotificationStorage
from .template_storage import TemplateStorage
from .preferences_storage import PreferencesStorage
from .device_storage import DeviceStorage
from .user_storage import UserStorage

__all__ = [
    'BaseStorage',
    'NotificationStorage',
    'TemplateStorage',
    'PreferencesStorage',
    'DeviceStorage',
    'UserStorage',
]
