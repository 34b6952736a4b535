"""
NotifyHub Delivery Channels

Delivery channels: WebSocket (real-time), Push, Email, SMS.
"""
from .base_channel import BaseChannel, DeliveryResult
from .realtime_channel import RealtimeChannel
from .push_channel import PushChannel, PushBatchResult
from .push_transports import PushTransport, WebPushTransport, MobilePushTransport, DeviceSendResult
from .email_channel import EmailChannel
from .sms_channel import SmsChannel

__all__ = [
    'BaseChannel',
    'DeliveryResult',
    'RealtimeChannel',
    'PushChannel',
    'PushBatchResult',
    'PushTransport',
    'WebPushTransport',
    'MobilePushTransport',
    'DeviceSendResult',
    'EmailChannel',
    'SmsChannel',
]
