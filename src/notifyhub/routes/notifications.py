"""
Notification Routes

Endpoints for sending notifications, business events, delivery status,
queue statistics, user preferences and push device registration.
"""
import logging
from dataclasses import replace
from datetime import datetime, time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..errors import (
    NotificationBlockedError,
    NotificationError,
    NotificationsDisabledError,
    TemplateNotFoundError,
    UnknownEventError,
    UnknownRecipientError,
)
from ..models.device import DeviceRegistration
from ..models.notification import DeliveryChannel, DeliveryState, NotificationRequest, Priority
from ..services.engine_service import get_engine_service

logger = logging.getLogger("notifyhub.routes.notifications")
router = APIRouter(prefix="/notifications", tags=["notifications"])


def notification_http_error(error: NotificationError) -> HTTPException:
    """Map intake errors to HTTP status codes"""
    if isinstance(error, (TemplateNotFoundError, UnknownEventError, UnknownRecipientError)):
        status_code = 404
    elif isinstance(error, (NotificationsDisabledError, NotificationBlockedError)):
        status_code = 403
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=str(error))


# ============================================
# Request/Response Models
# ============================================

class SendNotificationRequest(BaseModel):
    """Notify a single user, by template or with a literal title/body"""
    recipient_user_id: int
    template_key: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[Priority] = None
    channels: Optional[List[DeliveryChannel]] = None
    scheduled_for: Optional[datetime] = None
    category: Optional[str] = None
    action_url: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    sender_user_id: Optional[int] = None
    force_delivery: bool = False


class BroadcastRequest(BaseModel):
    """Send one template to several users"""
    user_ids: List[int]
    template_key: str
    context: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[Priority] = None
    channels: Optional[List[DeliveryChannel]] = None
    scheduled_for: Optional[datetime] = None


class EmitEventRequest(BaseModel):
    """Business event payload"""
    payload: Dict[str, Any] = Field(default_factory=dict)
    exclude_user_id: Optional[int] = None


class IntakeResponse(BaseModel):
    notification_id: int
    queue_id: str


class BroadcastResponse(BaseModel):
    notification_ids: List[int]
    queue_ids: List[str]
    failures: Dict[int, str]


class PreferencesUpdateRequest(BaseModel):
    """Partial preferences update; omitted fields keep their value"""
    notifications_enabled: Optional[bool] = None
    push_notifications_enabled: Optional[bool] = None
    email_notifications_enabled: Optional[bool] = None
    sms_notifications_enabled: Optional[bool] = None
    in_app_notifications_enabled: Optional[bool] = None
    sales_notifications: Optional[bool] = None
    inventory_notifications: Optional[bool] = None
    customer_notifications: Optional[bool] = None
    financial_notifications: Optional[bool] = None
    system_notifications: Optional[bool] = None
    staff_notifications: Optional[bool] = None
    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[time] = None
    quiet_hours_end: Optional[time] = None
    quiet_hours_timezone: Optional[str] = None
    vehicle_updated_enabled: Optional[bool] = None
    vehicle_added_enabled: Optional[bool] = None
    vehicle_sold_enabled: Optional[bool] = None
    vehicle_bought_enabled: Optional[bool] = None
    lead_created_enabled: Optional[bool] = None
    appointment_booked_enabled: Optional[bool] = None
    job_booked_enabled: Optional[bool] = None


class RegisterDeviceRequest(BaseModel):
    """Register a push device"""
    user_id: int
    device_token: str                    # FCM token or JSON web push subscription
    platform: str = "web"                # web, android, ios
    device_name: Optional[str] = None
    push_enabled: bool = True


# ============================================
# Intake Routes
# ============================================

@router.post("/send", response_model=IntakeResponse)
async def send_notification(request: SendNotificationRequest):
    """Queue a notification for one user"""
    engine = get_engine_service()
    data = request.model_dump()
    if data["channels"] is not None:
        data["channels"] = tuple(data["channels"])

    try:
        result = await engine.notification_hub.send_notification(NotificationRequest(**data))
    except NotificationError as e:
        raise notification_http_error(e) from e
    return IntakeResponse(notification_id=result.notification_id, queue_id=result.queue_id)


@router.post("/broadcast", response_model=BroadcastResponse)
async def broadcast_notification(request: BroadcastRequest):
    """Queue the same templated notification for several users"""
    engine = get_engine_service()
    if not request.user_ids:
        raise HTTPException(status_code=400, detail="user_ids must not be empty")

    result = await engine.notification_hub.broadcast_notification(
        request.user_ids,
        template_key=request.template_key,
        context=request.context,
        priority=request.priority,
        channels=tuple(request.channels) if request.channels else None,
        scheduled_for=request.scheduled_for,
    )
    return BroadcastResponse(
        notification_ids=result.notification_ids,
        queue_ids=result.queue_ids,
        failures=result.failures,
    )


# ============================================
# Event Routes
# ============================================

@router.get("/events")
async def list_events():
    """List registered business events"""
    engine = get_engine_service()
    return [
        {
            "event_type": event.event_type,
            "category": event.category,
            "priority": event.priority.value,
            "roles": list(event.roles),
            "required_fields": list(event.required_fields),
            "preference_key": event.preference_key,
        }
        for event in engine.event_service.list_events()
    ]


@router.post("/events/{event_type}", response_model=BroadcastResponse)
async def emit_event(event_type: str, request: EmitEventRequest):
    """Emit a business event to every interested user"""
    engine = get_engine_service()
    try:
        result = await engine.event_service.emit(
            event_type, request.payload, exclude_user_id=request.exclude_user_id
        )
    except NotificationError as e:
        raise notification_http_error(e) from e
    return BroadcastResponse(
        notification_ids=result.notification_ids,
        queue_ids=result.queue_ids,
        failures=result.failures,
    )


# ============================================
# Status & Stats Routes
# ============================================

@router.get("/status/{notification_id}")
async def get_delivery_status(notification_id: int):
    """Delivery ledger row for a notification"""
    engine = get_engine_service()
    status = engine.notification_hub.get_delivery_status(notification_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Delivery status not found")
    return status.to_dict()


@router.get("/stats/queue")
async def get_queue_stats():
    """Queue depth by priority and user"""
    engine = get_engine_service()
    return engine.notification_hub.get_queue_stats()


@router.get("/stats/delivery")
async def get_delivery_stats():
    """Delivery success rate and per-channel counts"""
    engine = get_engine_service()
    return engine.notification_hub.get_delivery_stats()


@router.get("/users/{user_id}")
async def list_user_notifications(user_id: int, limit: int = 50, status: Optional[DeliveryState] = None):
    """Recent notifications for a user"""
    engine = get_engine_service()
    notifications = await engine.notification_storage.list_by_user(user_id, limit=limit, status=status)
    return [n.to_dict() for n in notifications]


# ============================================
# Preferences Routes
# ============================================

@router.get("/preferences/{user_id}")
async def get_preferences(user_id: int):
    """Notification preferences for a user (defaults when never saved)"""
    engine = get_engine_service()
    preferences = await engine.preferences_storage.get_for_user(user_id)
    return preferences.to_dict()


@router.put("/preferences/{user_id}")
async def update_preferences(user_id: int, request: PreferencesUpdateRequest):
    """Update some or all preference flags"""
    engine = get_engine_service()
    current = await engine.preferences_storage.get_for_user(user_id)
    changes = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
    saved = await engine.preferences_storage.upsert(replace(current, user_id=user_id, **changes))
    logger.info(f"Preferences updated for user {user_id}: {sorted(changes)}")
    return saved.to_dict()


# ============================================
# Device Routes
# ============================================

@router.post("/devices")
async def register_device(request: RegisterDeviceRequest):
    """Register (or re-register) a push device"""
    engine = get_engine_service()
    if request.platform not in ("web", "android", "ios"):
        raise HTTPException(
            status_code=400,
            detail="platform must be 'web', 'android' or 'ios'"
        )

    device = await engine.device_storage.register(DeviceRegistration(**request.model_dump()))
    return device.to_dict()


@router.delete("/devices/{device_token:path}")
async def unregister_device(device_token: str):
    """Remove a push device by token"""
    engine = get_engine_service()
    removed = await engine.device_storage.unregister(device_token)
    if not removed:
        raise HTTPException(status_code=404, detail="Device not found")
    return {"success": True, "message": "Device unregistered"}
