"""
Delivery Ledger

In-memory delivery status per notification, plus point-in-time
success-rate reporting.
"""
import logging
from datetime import datetime
from typing import Dict, Optional

from ..models.notification import CHANNEL_ORDER, DeliveryChannel, DeliveryState
from ..models.queue import DeliveryStatus

logger = logging.getLogger("notifyhub.services.ledger")


class DeliveryLedger:
    """Ledger rows keyed by notification id"""

    def __init__(self):
        self._rows: Dict[int, DeliveryStatus] = {}

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, notification_id: int) -> bool:
        return notification_id in self._rows

    def create(self, notification_id: int, user_id: int) -> DeliveryStatus:
        status = DeliveryStatus(notification_id=notification_id, user_id=user_id)
        self._rows[notification_id] = status
        return status

    def get(self, notification_id: int) -> Optional[DeliveryStatus]:
        return self._rows.get(notification_id)

    def record_attempt(self, notification_id: int, now: datetime) -> DeliveryStatus:
        status = self._rows[notification_id]
        status.total_attempts += 1
        status.last_attempt = now
        return status

    def mark_delivered(self, notification_id: int, channel: DeliveryChannel) -> DeliveryState:
        status = self._rows[notification_id]
        status.delivered_channels.add(channel)
        return status.refresh_state()

    def finish(self, notification_id: int, state: DeliveryState, now: datetime):
        """Record a terminal state; the row stays readable until evicted"""
        status = self._rows[notification_id]
        status.state = state
        status.finished_at = now

    def evict_finished_before(self, cutoff: datetime) -> int:
        """Drop terminal rows finished before cutoff"""
        stale = [
            nid for nid, status in self._rows.items()
            if status.finished_at is not None and status.finished_at < cutoff
        ]
        for nid in stale:
            del self._rows[nid]
        return len(stale)

    def stats(self) -> dict:
        """Delivered counts by channel, counts by state and overall success rate"""
        by_method = {channel.value: 0 for channel in CHANNEL_ORDER}
        by_state = {state.value: 0 for state in DeliveryState}

        for status in self._rows.values():
            by_state[status.state.value] += 1
            for channel in status.delivered_channels:
                by_method[channel.value] += 1

        total = len(self._rows)
        delivered = by_state[DeliveryState.DELIVERED.value]
        return {
            "total_processed": total,
            "success_rate": (delivered / total) * 100 if total else 0.0,
            "by_method": by_method,
            "by_status": by_state,
        }
