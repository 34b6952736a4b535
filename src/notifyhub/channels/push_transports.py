"""
Push Transports

Platform-specific push senders used by the push channel.

- WebPushTransport: Web Push (RFC 8030) with an aes128gcm encrypted payload
  (RFC 8291, via pywebpush) and VAPID auth (RFC 8292).
- MobilePushTransport: Firebase Cloud Messaging HTTP send for android / ios tokens.
"""
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

import httpx
import jwt
from pywebpush import WebPushException, WebPusher

from ..models.device import DeviceRegistration
from ..models.notification import Priority

logger = logging.getLogger("notifyhub.channels.push")

WEB_PUSH_URGENCY = {
    Priority.LOW: "low",
    Priority.MEDIUM: "normal",
    Priority.HIGH: "normal",
    Priority.URGENT: "high",
    Priority.CRITICAL: "high",
}

# FCM errors meaning the token will never work again
FCM_EXPIRED_ERRORS = {"NotRegistered", "InvalidRegistration", "MismatchSenderId"}

VAPID_TOKEN_TTL = 12 * 3600


@dataclass
class DeviceSendResult:
    """Outcome of a send to one device"""
    success: bool
    error: Optional[str] = None
    expired: bool = False


class PushTransport(ABC):
    """Abstract push transport for one device platform family"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @abstractmethod
    async def send(self, device: DeviceRegistration, payload: dict, priority: Priority) -> DeviceSendResult:
        ...

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


class WebPushTransport(PushTransport):
    """Web Push to browser subscriptions"""

    def __init__(
        self,
        vapid_private_key: str,
        vapid_public_key: str,
        vapid_email: str,
        ttl: int = 86400,
        timeout: float = 10.0,
    ):
        super().__init__(timeout)
        # Keys from env files often carry escaped newlines
        self.vapid_private_key = vapid_private_key.replace("\\n", "\n")
        self.vapid_public_key = vapid_public_key
        self.vapid_email = vapid_email
        self.ttl = ttl

    @property
    def configured(self) -> bool:
        return bool(self.vapid_private_key and self.vapid_public_key)

    def vapid_headers(self, endpoint: str) -> dict:
        """Build the VAPID Authorization header for a push service endpoint"""
        parts = urlsplit(endpoint)
        claims = {
            "aud": f"{parts.scheme}://{parts.netloc}",
            "exp": int(time.time()) + VAPID_TOKEN_TTL,
            "sub": self.vapid_email,
        }
        token = jwt.encode(claims, self.vapid_private_key, algorithm="ES256")
        return {"Authorization": f"vapid t={token}, k={self.vapid_public_key}"}

    async def send(self, device: DeviceRegistration, payload: dict, priority: Priority) -> DeviceSendResult:
        if not self.configured:
            return DeviceSendResult(success=False, error="VAPID keys not configured")

        try:
            subscription = json.loads(device.device_token)
            endpoint = subscription["endpoint"]
            encoded = WebPusher(subscription).encode(
                json.dumps(payload, default=str), content_encoding="aes128gcm"
            )
        except (WebPushException, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed push subscription on device {device.id}: {e}")
            return DeviceSendResult(success=False, error="Malformed push subscription", expired=True)

        headers = {
            "TTL": str(self.ttl),
            "Urgency": WEB_PUSH_URGENCY[priority],
            "Content-Encoding": "aes128gcm",
            "Content-Type": "application/octet-stream",
            **self.vapid_headers(endpoint),
        }
        try:
            response = await self._get_client().post(endpoint, headers=headers, content=encoded["body"])
        except httpx.HTTPError as e:
            return DeviceSendResult(success=False, error=f"Web push request failed: {e}")

        if response.status_code in (200, 201, 202):
            return DeviceSendResult(success=True)
        if response.status_code in (404, 410):
            return DeviceSendResult(success=False, error="Subscription expired", expired=True)
        return DeviceSendResult(
            success=False, error=f"HTTP {response.status_code}: {response.text[:200]}"
        )


class MobilePushTransport(PushTransport):
    """FCM send for android / ios device tokens"""

    def __init__(
        self,
        server_key: str,
        send_url: str = "https://fcm.googleapis.com/fcm/send",
        timeout: float = 10.0,
    ):
        super().__init__(timeout)
        self.server_key = server_key
        self.send_url = send_url

    async def send(self, device: DeviceRegistration, payload: dict, priority: Priority) -> DeviceSendResult:
        if not self.server_key:
            return DeviceSendResult(success=False, error="FCM not configured")

        body = {
            "to": device.device_token,
            "priority": "high" if priority.rank <= Priority.HIGH.rank else "normal",
            "notification": {
                "title": payload["title"],
                "body": payload["body"],
                "sound": "default",
                "tag": payload.get("notification_type") or "dealership",
            },
            "data": {k: str(v) for k, v in payload.items() if v is not None},
        }
        try:
            response = await self._get_client().post(
                self.send_url,
                json=body,
                headers={"Authorization": f"key={self.server_key}"},
            )
        except httpx.HTTPError as e:
            return DeviceSendResult(success=False, error=f"FCM request failed: {e}")

        if response.status_code != 200:
            return DeviceSendResult(
                success=False, error=f"HTTP {response.status_code}: {response.text[:200]}"
            )

        data = response.json()
        if data.get("success"):
            return DeviceSendResult(success=True)

        results = data.get("results") or [{}]
        error = results[0].get("error", "Unknown FCM error")
        return DeviceSendResult(success=False, error=error, expired=error in FCM_EXPIRED_ERRORS)
