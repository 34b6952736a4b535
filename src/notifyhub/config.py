"""
NotifyHub Configuration

Configuration class for the dealership notification delivery hub.
"""
import os
from pathlib import Path
from urllib.parse import quote_plus
from dotenv import load_dotenv

# Load .env file from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


class Config:
    """Configuration class for NotifyHub API"""

    # Base paths
    BASE_DIR = Path(__file__).parent.parent.parent

    # Database settings
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "autolab")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")

    # PostgreSQL DSN (use get_postgres_dsn() method for proper password escaping)
    _db_password_escaped = quote_plus(DB_PASSWORD) if DB_PASSWORD else ""
    POSTGRES_DSN = os.getenv(
        "POSTGRES_DSN",
        f"postgresql://{DB_USER}:{_db_password_escaped}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        if DB_PASSWORD else f"postgresql://{DB_USER}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    )

    # API settings
    API_HOST = os.getenv("API_HOST", "127.0.0.1")
    API_PORT = int(os.getenv("API_PORT", "8200"))

    # Delivery queue
    QUEUE_TICK_INTERVAL = float(os.getenv("QUEUE_TICK_INTERVAL", "1"))
    QUEUE_CLEANUP_INTERVAL = float(os.getenv("QUEUE_CLEANUP_INTERVAL", "3600"))
    QUEUE_ITEM_MAX_AGE = int(os.getenv("QUEUE_ITEM_MAX_AGE", "86400"))
    NOTIFICATION_MAX_RETRIES = int(os.getenv("NOTIFICATION_MAX_RETRIES", "3"))
    CHANNEL_TIMEOUT = float(os.getenv("CHANNEL_TIMEOUT", "10"))
    QUEUE_ENABLED = os.getenv("QUEUE_ENABLED", "true").lower() == "true"

    # Channel switches
    ENABLE_WEBSOCKET = os.getenv("ENABLE_WEBSOCKET", "true").lower() == "true"
    ENABLE_PUSH = os.getenv("ENABLE_PUSH", "true").lower() == "true"
    ENABLE_EMAIL = os.getenv("ENABLE_EMAIL", "true").lower() == "true"
    ENABLE_SMS = os.getenv("ENABLE_SMS", "false").lower() == "true"

    # Web push (VAPID)
    VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY", "")
    VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY", "")  # PEM encoded EC P-256 key
    VAPID_EMAIL = os.getenv("VAPID_EMAIL", "mailto:admin@autolab.com")

    # Mobile push (FCM)
    FCM_SERVER_KEY = os.getenv("FCM_SERVER_KEY", "")
    FCM_SEND_URL = os.getenv("FCM_SEND_URL", "https://fcm.googleapis.com/fcm/send")

    # SMTP (Email notifications)
    SMTP_HOST = os.getenv("SMTP_HOST", "")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
    SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "AutoLab")

    # SMS gateway
    SMS_GATEWAY_URL = os.getenv("SMS_GATEWAY_URL", "")
    SMS_GATEWAY_TOKEN = os.getenv("SMS_GATEWAY_TOKEN", "")
    SMS_SENDER_ID = os.getenv("SMS_SENDER_ID", "AutoLab")

    @staticmethod
    def get_postgres_dsn() -> str:
        """Get PostgreSQL DSN with password handling"""
        if Config.DB_PASSWORD:
            password = quote_plus(Config.DB_PASSWORD)
            return f"postgresql://{Config.DB_USER}:{password}@{Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}"
        return f"postgresql://{Config.DB_USER}@{Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}"
