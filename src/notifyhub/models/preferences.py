"""
Notification Preferences Model

Per-user delivery preferences. Users without a stored row get the defaults.
"""
from dataclasses import dataclass, fields
from datetime import time
from typing import Optional


CATEGORY_FLAGS = {
    "sales": "sales_notifications",
    "inventory": "inventory_notifications",
    "customer": "customer_notifications",
    "financial": "financial_notifications",
    "system": "system_notifications",
    "staff": "staff_notifications",
}


@dataclass
class NotificationPreferences:
    """User notification preferences"""
    user_id: Optional[int] = None

    # Global settings
    notifications_enabled: bool = True
    push_notifications_enabled: bool = True

    # Channel preferences
    email_notifications_enabled: bool = True
    sms_notifications_enabled: bool = True
    in_app_notifications_enabled: bool = True

    # Category preferences
    sales_notifications: bool = True
    inventory_notifications: bool = True
    customer_notifications: bool = True
    financial_notifications: bool = True
    system_notifications: bool = True
    staff_notifications: bool = True

    # Quiet hours
    quiet_hours_enabled: bool = False
    quiet_hours_start: time = time(22, 0)
    quiet_hours_end: time = time(6, 0)
    quiet_hours_timezone: str = "UTC"

    # Event-specific preferences
    vehicle_updated_enabled: bool = True
    vehicle_added_enabled: bool = True
    vehicle_sold_enabled: bool = True
    vehicle_bought_enabled: bool = True
    lead_created_enabled: bool = True
    appointment_booked_enabled: bool = True
    job_booked_enabled: bool = True

    def allows_category(self, category: Optional[str]) -> bool:
        """Unknown or missing categories are always allowed"""
        flag = CATEGORY_FLAGS.get(category or "")
        if flag is None:
            return True
        return bool(getattr(self, flag))

    def allows_event(self, event_type: str) -> bool:
        """Check the per-event flag, e.g. vehicle.sold -> vehicle_sold_enabled"""
        flag = f"{event_type.replace('.', '_')}_enabled"
        return bool(getattr(self, flag, True))

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = value.strftime("%H:%M") if isinstance(value, time) else value
        return result
