"""
Health Check Routes

Endpoints for service health monitoring.
"""
from fastapi import APIRouter
from datetime import datetime

from ..services.engine_service import get_engine_service

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
@router.get("/")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "notifyhub",
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - storages connected and the delivery queue running.
    Used by Kubernetes/orchestrators for readiness probes.
    """
    engine = get_engine_service()
    hub = engine.notification_hub
    return {
        "ready": engine.is_initialized,
        "queue_running": hub.is_running,
        "queued": len(hub),
        "connected_users": len(engine.connection_manager.connected_users()),
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/live")
async def liveness_check():
    """
    Liveness check - indicates if service is running.
    Used by Kubernetes/orchestrators for liveness probes.
    """
    return {
        "alive": True,
        "timestamp": datetime.utcnow().isoformat()
    }
