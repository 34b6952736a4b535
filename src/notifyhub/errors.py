"""
NotifyHub Errors

Intake rejections. Raised synchronously to the caller; nothing is enqueued.
"""


class NotificationError(Exception):
    """Base class for notification intake errors"""


class InvalidNotificationError(NotificationError):
    """Request is missing content or carries an invalid payload"""


class NotificationsDisabledError(NotificationError):
    """Recipient has notifications disabled globally"""

    def __init__(self, user_id: int):
        super().__init__(f"Notifications disabled for user {user_id}")
        self.user_id = user_id


class NotificationBlockedError(NotificationError):
    """Recipient has the notification category disabled"""

    def __init__(self, user_id: int, category: str):
        super().__init__(f"Notification blocked by user preferences ({category})")
        self.user_id = user_id
        self.category = category


class TemplateNotFoundError(NotificationError):
    """Named template does not resolve"""

    def __init__(self, template_key: str):
        super().__init__(f"Template not found: {template_key}")
        self.template_key = template_key


class UnknownEventError(NotificationError):
    """Business event type is not in the registry"""

    def __init__(self, event_type: str):
        super().__init__(f"Unknown event type: {event_type}")
        self.event_type = event_type


class UnknownRecipientError(NotificationError):
    """Recipient user does not exist"""

    def __init__(self, user_id: int):
        super().__init__(f"Recipient user not found: {user_id}")
        self.user_id = user_id
