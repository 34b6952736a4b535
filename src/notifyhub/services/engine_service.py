"""
Engine Service

Main composite service that manages all storages and services.
Singleton pattern - one instance per process.
"""
import logging
from typing import Dict, Optional

from ..config import Config
from ..channels.base_channel import BaseChannel
from ..channels.email_channel import EmailChannel
from ..channels.push_channel import PushChannel
from ..channels.push_transports import MobilePushTransport, WebPushTransport
from ..channels.realtime_channel import RealtimeChannel
from ..channels.sms_channel import SmsChannel
from ..models.notification import DeliveryChannel
from ..storage.device_storage import DeviceStorage
from ..storage.notification_storage import NotificationStorage
from ..storage.preferences_storage import PreferencesStorage
from ..storage.template_storage import TemplateStorage
from ..storage.user_storage import UserStorage
from .connection_manager import ConnectionManager
from .event_service import NotificationEventService
from .notification_hub import NotificationHub
from .template_registry import TemplateRegistry

logger = logging.getLogger("notifyhub.services.engine")

# Singleton instance
_engine_service: Optional["EngineService"] = None


class EngineService:
    """
    Composite engine service.

    Manages:
    - All storage connections (PostgreSQL)
    - Delivery channels and the notification hub
    - Graceful shutdown
    """

    def __init__(self):
        """Initialize engine service with all storages"""
        self.postgres_dsn = Config.get_postgres_dsn()

        # Initialize storages
        self.notification_storage = NotificationStorage(self.postgres_dsn)
        self.template_storage = TemplateStorage(self.postgres_dsn)
        self.preferences_storage = PreferencesStorage(self.postgres_dsn)
        self.device_storage = DeviceStorage(self.postgres_dsn)
        self.user_storage = UserStorage(self.postgres_dsn)

        self.connection_manager = ConnectionManager()
        self.template_registry = TemplateRegistry(self.template_storage)

        self.notification_hub = NotificationHub(
            notification_storage=self.notification_storage,
            preferences_storage=self.preferences_storage,
            templates=self.template_registry,
            channels=self._build_channels(),
            device_storage=self.device_storage,
            user_storage=self.user_storage,
            max_retries=Config.NOTIFICATION_MAX_RETRIES,
            tick_interval=Config.QUEUE_TICK_INTERVAL,
            cleanup_interval=Config.QUEUE_CLEANUP_INTERVAL,
            max_item_age=Config.QUEUE_ITEM_MAX_AGE,
            channel_timeout=Config.CHANNEL_TIMEOUT,
            enabled=Config.QUEUE_ENABLED,
        )
        self.connection_manager.add_presence_listener(
            self.notification_hub.update_user_connection_status
        )

        self.event_service = NotificationEventService(
            hub=self.notification_hub,
            user_storage=self.user_storage,
            preferences_storage=self.preferences_storage,
        )

        self._initialized = False
        logger.info("EngineService created")

    def _build_channels(self) -> Dict[DeliveryChannel, BaseChannel]:
        """Create the delivery channels switched on in Config"""
        channels: Dict[DeliveryChannel, BaseChannel] = {}

        if Config.ENABLE_WEBSOCKET:
            channels[DeliveryChannel.WEBSOCKET] = RealtimeChannel(self.connection_manager)
        else:
            logger.info("WebSocket channel disabled (ENABLE_WEBSOCKET=false)")

        if Config.ENABLE_PUSH:
            web = WebPushTransport(
                vapid_private_key=Config.VAPID_PRIVATE_KEY,
                vapid_public_key=Config.VAPID_PUBLIC_KEY,
                vapid_email=Config.VAPID_EMAIL,
            )
            mobile = MobilePushTransport(
                server_key=Config.FCM_SERVER_KEY,
                send_url=Config.FCM_SEND_URL,
            )
            if not web.configured:
                logger.info("Web push not configured (no VAPID keys)")
            if not Config.FCM_SERVER_KEY:
                logger.info("Mobile push not configured (no FCM_SERVER_KEY)")
            channels[DeliveryChannel.PUSH] = PushChannel(
                transports={"web": web, "ios": mobile, "android": mobile},
                device_storage=self.device_storage,
            )
        else:
            logger.info("Push channel disabled (ENABLE_PUSH=false)")

        if Config.ENABLE_EMAIL:
            channels[DeliveryChannel.EMAIL] = EmailChannel(
                smtp_host=Config.SMTP_HOST,
                smtp_port=Config.SMTP_PORT,
                smtp_user=Config.SMTP_USER,
                smtp_password=Config.SMTP_PASSWORD,
                from_name=Config.SMTP_FROM_NAME,
            )
        else:
            logger.info("Email channel disabled (ENABLE_EMAIL=false)")

        if Config.ENABLE_SMS:
            channels[DeliveryChannel.SMS] = SmsChannel(
                gateway_url=Config.SMS_GATEWAY_URL,
                api_token=Config.SMS_GATEWAY_TOKEN,
                sender_id=Config.SMS_SENDER_ID,
            )
        else:
            logger.info("SMS channel disabled (ENABLE_SMS=false)")

        return channels

    async def initialize(self):
        """Initialize all storages"""
        if self._initialized:
            logger.info("EngineService already initialized")
            return

        logger.info("Initializing EngineService...")

        # Initialize all storages
        await self.notification_storage.init()
        await self.template_storage.init()
        await self.preferences_storage.init()
        await self.device_storage.init()
        await self.user_storage.init()

        # Start delivery queue
        await self.notification_hub.start()

        self._initialized = True
        logger.info("EngineService initialized successfully")

    async def close(self):
        """Close all connections"""
        logger.info("Closing EngineService...")

        await self.notification_hub.close()

        await self.notification_storage.close()
        await self.template_storage.close()
        await self.preferences_storage.close()
        await self.device_storage.close()
        await self.user_storage.close()

        self._initialized = False
        logger.info("EngineService closed")

    @property
    def is_initialized(self) -> bool:
        """Check if service is initialized"""
        return self._initialized

    @classmethod
    def get_instance(cls) -> "EngineService":
        """Get singleton instance"""
        return get_engine_service()


def get_engine_service() -> EngineService:
    """Get or create engine service singleton"""
    global _engine_service
    if _engine_service is None:
        _engine_service = EngineService()
    return _engine_service


async def init_engine_service() -> EngineService:
    """Initialize and return engine service"""
    service = get_engine_service()
    await service.initialize()
    return service
