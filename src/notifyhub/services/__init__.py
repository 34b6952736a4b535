"""
NotifyHub Services

Delivery queue, ledger, presence tracking and event dispatch.
"""
from .engine_service import EngineService
from .connection_manager import ConnectionManager
from .delivery_ledger import DeliveryLedger
from .offline_buffer import OfflineBuffer
from .template_registry import TemplateRegistry, render_template
from .notification_hub import NotificationHub, IntakeResult, BroadcastResult
from .event_service import NotificationEventService

__all__ = [
    'EngineService',
    'ConnectionManager',
    'DeliveryLedger',
    'OfflineBuffer',
    'TemplateRegistry',
    'render_template',
    'NotificationHub',
    'IntakeResult',
    'BroadcastResult',
    'NotificationEventService',
]
