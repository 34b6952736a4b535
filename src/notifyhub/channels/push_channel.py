"""
Push Channel

Fans a notification out to every registered device of the recipient,
choosing a transport by device platform.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .base_channel import BaseChannel, DeliveryResult, notification_payload
from .push_transports import DeviceSendResult, PushTransport
from ..models.device import DeviceRegistration
from ..models.notification import DeliveryChannel
from ..models.queue import QueueItem
from ..storage.device_storage import DeviceStorage

logger = logging.getLogger("notifyhub.channels.push")


@dataclass
class PushBatchResult:
    """Per-device outcome of one push attempt"""
    device_count: int = 0
    successful_devices: int = 0
    failed_devices: int = 0
    errors: List[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.successful_devices > 0


class PushChannel(BaseChannel):
    """
    Push delivery to web and mobile devices.

    The attempt succeeds when at least one device accepts the payload.
    Devices the push service reports as expired are deactivated.
    """

    channel = DeliveryChannel.PUSH

    def __init__(
        self,
        transports: Dict[str, PushTransport],
        device_storage: Optional[DeviceStorage] = None,
    ):
        # platform -> transport
        self._transports = transports
        self.device_storage = device_storage

    async def deliver(self, item: QueueItem) -> DeliveryResult:
        devices = [d for d in item.devices if d.is_active]
        if not devices:
            logger.debug(f"No devices registered for user {item.user_id}")
            return DeliveryResult(success=False, error="No devices registered")

        batch = await self.send_to_devices(devices, item)

        logger.info(
            f"Push batch for notification {item.notification_id}: "
            f"{batch.successful_devices}/{batch.device_count} device(s) accepted"
        )
        if batch.success:
            return DeliveryResult(success=True)
        return DeliveryResult(
            success=False,
            error="; ".join(e["error"] for e in batch.errors) or "Push failed",
        )

    async def send_to_devices(self, devices: List[DeviceRegistration], item: QueueItem) -> PushBatchResult:
        payload = notification_payload(item)
        outcomes = await asyncio.gather(
            *(self._send_to_device(device, payload, item) for device in devices),
            return_exceptions=True,
        )

        batch = PushBatchResult(device_count=len(devices))
        for device, outcome in zip(devices, outcomes):
            if isinstance(outcome, BaseException):
                outcome = DeviceSendResult(success=False, error=str(outcome) or type(outcome).__name__)

            if outcome.success:
                batch.successful_devices += 1
                continue

            batch.failed_devices += 1
            batch.errors.append({
                "device_id": device.id,
                "platform": device.platform,
                "error": outcome.error or "Send failed",
            })
            if outcome.expired:
                await self._deactivate(device)

        return batch

    async def _send_to_device(self, device: DeviceRegistration, payload: dict, item: QueueItem) -> DeviceSendResult:
        if not device.push_enabled:
            return DeviceSendResult(success=False, error="Push disabled on device")

        transport = self._transports.get(device.platform)
        if transport is None:
            logger.warning(f"Unsupported push platform: {device.platform}")
            return DeviceSendResult(success=False, error=f"Unsupported platform: {device.platform}")

        return await transport.send(device, payload, item.priority)

    async def _deactivate(self, device: DeviceRegistration):
        # Keep later retries of the same item off this device
        device.is_active = False
        if self.device_storage is None or device.id is None:
            return
        try:
            await self.device_storage.deactivate(device.id)
            logger.info(f"Deactivated expired device {device.id} ({device.platform})")
        except Exception as e:
            logger.error(f"Failed to deactivate device {device.id}: {e}")

    async def close(self):
        for transport in set(self._transports.values()):
            await transport.close()
