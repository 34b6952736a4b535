"""
NotifyHub API Routes

FastAPI route handlers for the notification hub.
"""
from .health import router as health_router
from .notifications import router as notifications_router
from .websocket import router as websocket_router

__all__ = [
    'health_router',
    'notifications_router',
    'websocket_router',
]
