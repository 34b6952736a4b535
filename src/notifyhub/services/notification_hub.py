"""
Notification Hub

Accepts notification requests, queues them and delivers them over the
user's channels with retries.

Flow:
1. Intake checks preferences, renders the template, persists the row,
   snapshots devices/contact and enqueues a QueueItem.
2. A background tick (every tick_interval seconds, never overlapping)
   takes ready items in priority order and tries their channels in the
   order websocket -> push -> email -> sms.
3. Delivered items leave the queue; failed items are retried with
   exponential backoff (2, 4, 8 s ...) until max_retries, then marked failed.
4. Items waiting only on the real-time channel of an offline user are
   parked in the offline buffer and revived when the user reconnects.
5. An hourly sweep evicts items older than max_item_age.
"""
import asyncio
import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .delivery_ledger import DeliveryLedger
from .offline_buffer import OfflineBuffer
from .template_registry import TemplateRegistry, render_template
from ..channels.base_channel import BaseChannel, DeliveryResult
from ..errors import (
    InvalidNotificationError,
    NotificationBlockedError,
    NotificationError,
    NotificationsDisabledError,
    TemplateNotFoundError,
)
from ..models.device import DeviceRegistration, RecipientContact
from ..models.notification import (
    CHANNEL_ORDER,
    DeliveryChannel,
    DeliveryState,
    Notification,
    NotificationRequest,
    NotificationTemplate,
    Priority,
)
from ..models.preferences import NotificationPreferences
from ..models.queue import DeliveryStatus, QueueItem
from ..storage.device_storage import DeviceStorage
from ..storage.notification_storage import NotificationStorage
from ..storage.preferences_storage import PreferencesStorage
from ..storage.user_storage import UserStorage

logger = logging.getLogger("notifyhub.services.hub")

MAX_RETRIES_EXCEEDED = "Max retries exceeded"
EXPIRED_IN_QUEUE = "Expired in delivery queue"

DEFAULT_CHANNELS = [DeliveryChannel.WEBSOCKET, DeliveryChannel.PUSH]

# Never held back by quiet hours
QUIET_HOURS_EXEMPT = frozenset({Priority.URGENT, Priority.CRITICAL})


@dataclass
class IntakeResult:
    """Ids handed back to the caller of send_notification"""
    notification_id: int
    queue_id: str


@dataclass
class BroadcastResult:
    """Outcome of a broadcast; failures maps user id -> reason"""
    notification_ids: List[int] = field(default_factory=list)
    queue_ids: List[str] = field(default_factory=list)
    failures: Dict[int, str] = field(default_factory=dict)


def generate_queue_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"queue_{int(time.time() * 1000)}_{suffix}"


def to_utc_naive(value: datetime) -> datetime:
    """Normalise to the naive-UTC datetimes used throughout the queue"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def quiet_hours_release(preferences: NotificationPreferences, now: datetime) -> Optional[datetime]:
    """
    End of the user's current quiet window (naive UTC), or None when
    quiet hours are off or `now` is outside the window.
    """
    if not preferences.quiet_hours_enabled:
        return None
    start, end = preferences.quiet_hours_start, preferences.quiet_hours_end
    if start == end:
        return None

    try:
        tz = ZoneInfo(preferences.quiet_hours_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown quiet hours timezone '{preferences.quiet_hours_timezone}', using UTC")
        tz = timezone.utc

    local = now.replace(tzinfo=timezone.utc).astimezone(tz)
    current = local.time()
    if start < end:
        inside = start <= current < end
    else:
        # Window wraps past midnight, e.g. 22:00 -> 06:00
        inside = current >= start or current < end
    if not inside:
        return None

    release = local.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)
    if release <= local:
        release += timedelta(days=1)
    return to_utc_naive(release)


class NotificationHub:
    """
    Multi-channel notification delivery queue.

    Owns the in-memory queue, the delivery ledger and the offline buffer.
    Queue mutation from the tick, the cleanup sweep and reconnect handling
    is serialised by one asyncio.Lock.
    """

    def __init__(
        self,
        notification_storage: NotificationStorage,
        preferences_storage: PreferencesStorage,
        templates: TemplateRegistry,
        channels: Dict[DeliveryChannel, BaseChannel],
        device_storage: Optional[DeviceStorage] = None,
        user_storage: Optional[UserStorage] = None,
        ledger: Optional[DeliveryLedger] = None,
        offline_buffer: Optional[OfflineBuffer] = None,
        max_retries: int = 3,
        tick_interval: float = 1.0,
        cleanup_interval: float = 3600.0,
        max_item_age: int = 86400,
        channel_timeout: Optional[float] = 10.0,
        enabled: bool = True,
    ):
        self.notification_storage = notification_storage
        self.preferences_storage = preferences_storage
        self.templates = templates
        self.device_storage = device_storage
        self.user_storage = user_storage
        # channel -> adapter
        self._channels = dict(channels)
        self.ledger = ledger if ledger is not None else DeliveryLedger()
        self.offline_buffer = offline_buffer if offline_buffer is not None else OfflineBuffer()

        self.max_retries = max_retries
        self.tick_interval = tick_interval
        self.cleanup_interval = cleanup_interval
        self.max_item_age = max_item_age
        self.channel_timeout = channel_timeout
        self.enabled = enabled

        self._queue: Dict[str, QueueItem] = {}
        self._lock = asyncio.Lock()
        self._processing = False
        self._running = False
        self._tick_task: Optional[asyncio.Task] = None
        self._cleanup_task: Optional[asyncio.Task] = None

        logger.info(
            f"NotificationHub created (channels={[c.value for c in self._channels]}, "
            f"max_retries={max_retries})"
        )

    # ============================================
    # Intake
    # ============================================

    async def send_notification(self, request: NotificationRequest) -> IntakeResult:
        """
        Validate a request against the recipient's preferences and queue it.

        Raises NotificationError subclasses when the request is rejected;
        nothing is persisted or queued in that case.
        """
        user_id = request.recipient_user_id
        preferences = await self.preferences_storage.get_for_user(user_id)

        if not preferences.notifications_enabled and not request.force_delivery:
            raise NotificationsDisabledError(user_id)

        template: Optional[NotificationTemplate] = None
        if request.template_key is not None:
            template = await self.templates.get_by_key(request.template_key)
            if template is None:
                raise TemplateNotFoundError(request.template_key)
            category = template.category
        elif request.title and request.body:
            category = request.category
        else:
            raise InvalidNotificationError("Either template_key or title and body are required")

        if not request.force_delivery and not preferences.allows_category(category):
            raise NotificationBlockedError(user_id, category)

        priority = request.priority or (template.priority if template else Priority.MEDIUM)
        channels = self.resolve_channels(preferences, request.channels, available=self._channels)
        scheduled_for = self._initial_schedule(request, preferences, priority)

        notification = await self.notification_storage.create(
            self._build_notification(request, template, priority)
        )
        devices = await self._load_devices(user_id)
        contact = await self._load_contact(user_id)

        self.ledger.create(notification.id, user_id)
        item = QueueItem(
            id=generate_queue_id(),
            request=request,
            notification=notification,
            priority=priority,
            channels=channels,
            max_retries=self.max_retries,
            scheduled_for=scheduled_for,
            preferences=preferences,
            devices=devices,
            contact=contact,
        )
        self._queue[item.id] = item

        logger.info(
            f"Notification {notification.id} queued as {item.id} for user {user_id} "
            f"(template={request.template_key}, priority={priority.value}, "
            f"channels={[c.value for c in channels]})"
        )
        return IntakeResult(notification_id=notification.id, queue_id=item.id)

    async def broadcast_notification(
        self, user_ids: Sequence[int], template_key: Optional[str] = None, **fields
    ) -> BroadcastResult:
        """
        Send the same notification to several users.

        Each recipient goes through send_notification on its own; a rejected
        or failed recipient is reported in `failures` and does not affect the rest.
        """
        requests = [
            NotificationRequest(recipient_user_id=uid, template_key=template_key, **fields)
            for uid in user_ids
        ]
        outcomes = await asyncio.gather(
            *(self.send_notification(request) for request in requests),
            return_exceptions=True,
        )

        result = BroadcastResult()
        for uid, outcome in zip(user_ids, outcomes):
            if isinstance(outcome, IntakeResult):
                result.notification_ids.append(outcome.notification_id)
                result.queue_ids.append(outcome.queue_id)
            elif isinstance(outcome, NotificationError):
                result.failures[uid] = str(outcome)
            else:
                logger.error(f"Broadcast to user {uid} failed: {outcome!r}")
                result.failures[uid] = str(outcome) or type(outcome).__name__

        if result.failures:
            logger.warning(
                f"Broadcast {template_key}: {len(result.notification_ids)} queued, "
                f"{len(result.failures)} failed"
            )
        return result

    @staticmethod
    def resolve_channels(
        preferences: NotificationPreferences,
        requested: Optional[Sequence[DeliveryChannel]] = None,
        available: Optional[Iterable[DeliveryChannel]] = None,
    ) -> List[DeliveryChannel]:
        """
        Explicit channels win; otherwise derive them from the user's channel
        flags, keeping only channels in `available` when it is given.
        """
        if requested:
            return list(dict.fromkeys(DeliveryChannel(c) for c in requested))

        channels = []
        if preferences.in_app_notifications_enabled or preferences.notifications_enabled:
            channels.append(DeliveryChannel.WEBSOCKET)
        if preferences.push_notifications_enabled:
            channels.append(DeliveryChannel.PUSH)
        if preferences.email_notifications_enabled:
            channels.append(DeliveryChannel.EMAIL)
        if preferences.sms_notifications_enabled:
            channels.append(DeliveryChannel.SMS)
        if available is not None:
            # derived channels without an adapter are never attempted
            channels = [c for c in channels if c in available]
        return channels or list(DEFAULT_CHANNELS)

    def _initial_schedule(
        self, request: NotificationRequest, preferences: NotificationPreferences, priority: Priority
    ) -> Optional[datetime]:
        if request.scheduled_for is not None:
            return to_utc_naive(request.scheduled_for)
        if request.force_delivery or priority in QUIET_HOURS_EXEMPT:
            return None
        release = quiet_hours_release(preferences, datetime.utcnow())
        if release is not None:
            logger.info(f"User {request.recipient_user_id} in quiet hours, holding until {release.isoformat()}")
        return release

    def _build_notification(
        self,
        request: NotificationRequest,
        template: Optional[NotificationTemplate],
        priority: Priority,
    ) -> Notification:
        context = request.context
        if template is not None:
            title = render_template(template.title_template, context)
            body = render_template(template.body_template, context)
            action_url = request.action_url or (
                render_template(template.action_url_template, context)
                if template.action_url_template else None
            )
            notification_type = template.notification_type
        else:
            title, body = request.title, request.body
            action_url = request.action_url
            notification_type = request.category or "system"

        action_data = context.get("action_data")
        return Notification(
            recipient_user_id=request.recipient_user_id,
            title=title,
            body=body,
            notification_type=notification_type,
            priority_level=priority,
            action_url=action_url,
            related_entity_type=request.related_entity_type,
            related_entity_id=request.related_entity_id,
            action_data=action_data if isinstance(action_data, dict) else None,
        )

    async def _load_devices(self, user_id: int) -> List[DeviceRegistration]:
        if self.device_storage is None:
            return []
        try:
            return await self.device_storage.list_active_by_user(user_id)
        except Exception as e:
            logger.error(f"Failed to load devices for user {user_id}: {e}")
            return []

    async def _load_contact(self, user_id: int) -> Optional[RecipientContact]:
        if self.user_storage is None:
            return None
        try:
            return await self.user_storage.get_contact(user_id)
        except Exception as e:
            logger.error(f"Failed to load contact for user {user_id}: {e}")
            return None

    # ============================================
    # Queue processing
    # ============================================

    async def process_queue(self):
        """
        Run one queue tick.

        Skipped while a previous tick is still in flight.
        """
        if self._processing or not self._queue:
            return

        self._processing = True
        try:
            async with self._lock:
                await self._process_ready_items()
        except Exception as e:
            logger.error(f"Queue processing failed: {e}")
        finally:
            self._processing = False

    async def _process_ready_items(self):
        now = datetime.utcnow()
        ready = [item for item in self._queue.values() if item.is_ready(now)]
        # sort() is stable: equal priorities keep insertion order
        ready.sort(key=lambda item: item.priority.rank)

        for item in ready:
            try:
                await self._process_item(item)
            except Exception as e:
                logger.error(
                    f"Failed to process queue item {item.id} "
                    f"(notification {item.notification_id}): {e}"
                )

    async def _process_item(self, item: QueueItem):
        status = self.ledger.get(item.notification_id)
        if status is None:
            logger.error(f"Delivery status not found for notification {item.notification_id}, dropping {item.id}")
            self._queue.pop(item.id, None)
            return

        now = datetime.utcnow()
        self.ledger.record_attempt(item.notification_id, now)

        deferred = False
        newly_delivered = False
        for channel in CHANNEL_ORDER:
            if status.is_delivered:
                break
            if channel not in item.channels or status.has_delivered(channel):
                continue

            result = await self._attempt(channel, item)
            if result.success:
                self.ledger.mark_delivered(item.notification_id, channel)
                newly_delivered = True
            elif result.deferred:
                deferred = True

        state = status.refresh_state()
        delivered_at = now if newly_delivered else None

        if state == DeliveryState.DELIVERED:
            self._queue.pop(item.id, None)
            self.ledger.finish(item.notification_id, state, now)
            logger.info(
                f"Notification {item.notification_id} delivered via "
                f"{sorted(c.value for c in status.delivered_channels)} "
                f"after {status.total_attempts} attempt(s)"
            )
            await self._persist(item, state, delivered_at=delivered_at)
            return

        outstanding = [c for c in item.channels if not status.has_delivered(c)]
        if deferred and outstanding == [DeliveryChannel.WEBSOCKET]:
            self._park(item)
            await self._persist(item, state, delivered_at=delivered_at)
            return

        if item.retry_count < item.max_retries:
            item.retry_count += 1
            item.scheduled_for = now + timedelta(seconds=2 ** item.retry_count)
            logger.info(
                f"Retrying notification {item.notification_id} "
                f"({item.retry_count}/{item.max_retries}) at {item.scheduled_for.isoformat()}"
            )
            await self._persist(item, state, delivered_at=delivered_at)
            return

        self._queue.pop(item.id, None)
        final_state = DeliveryState.PARTIAL if state == DeliveryState.PARTIAL else DeliveryState.FAILED
        self.ledger.finish(item.notification_id, final_state, now)
        logger.error(
            f"Notification {item.notification_id} {final_state.value} after "
            f"{status.total_attempts} attempt(s): {MAX_RETRIES_EXCEEDED}"
        )
        await self._persist(item, final_state, delivered_at=delivered_at, failure_reason=MAX_RETRIES_EXCEEDED)

    async def _attempt(self, channel: DeliveryChannel, item: QueueItem) -> DeliveryResult:
        adapter = self._channels.get(channel)
        if adapter is None:
            return DeliveryResult(success=False, error=f"{channel.value} channel not available")

        try:
            if self.channel_timeout:
                result = await asyncio.wait_for(adapter.deliver(item), timeout=self.channel_timeout)
            else:
                result = await adapter.deliver(item)
        except asyncio.TimeoutError:
            result = DeliveryResult(success=False, error=f"Timed out after {self.channel_timeout}s")
        except Exception as e:
            result = DeliveryResult(success=False, error=str(e) or type(e).__name__)

        if not result.success and not result.deferred:
            logger.warning(
                f"{channel.value} delivery failed for notification {item.notification_id}: {result.error}"
            )
        return result

    def _park(self, item: QueueItem):
        self._queue.pop(item.id, None)
        item.scheduled_for = None
        self.offline_buffer.add(item)
        logger.info(f"User {item.user_id} offline, notification {item.notification_id} parked until reconnect")

    async def _persist(
        self,
        item: QueueItem,
        state: DeliveryState,
        delivered_at: Optional[datetime] = None,
        failure_reason: Optional[str] = None,
    ):
        try:
            await self.notification_storage.update_delivery(
                item.notification_id, state, delivered_at=delivered_at, failure_reason=failure_reason
            )
        except Exception as e:
            logger.error(f"Failed to update notification {item.notification_id}: {e}")

    # ============================================
    # Presence
    # ============================================

    async def update_user_connection_status(self, user_id: int, is_online: bool):
        """
        Presence signal from the real-time transport.

        On reconnect, parked items go back into the queue and items still
        waiting on the real-time channel skip the rest of their backoff.
        """
        if not is_online:
            return

        async with self._lock:
            revived = self.offline_buffer.drain(user_id)
            for item in revived:
                self._queue[item.id] = item

            expedited = 0
            for item in self._queue.values():
                if item.user_id != user_id or item.retry_count == 0 or item.scheduled_for is None:
                    continue
                status = self.ledger.get(item.notification_id)
                if DeliveryChannel.WEBSOCKET in item.channels and status and not status.websocket_delivered:
                    item.scheduled_for = None
                    expedited += 1

        if revived or expedited:
            logger.info(
                f"User {user_id} reconnected: {len(revived)} buffered item(s) requeued, "
                f"{expedited} retry(ies) expedited"
            )

    # ============================================
    # Cleanup
    # ============================================

    async def cleanup(self) -> int:
        """Evict queue items older than max_item_age; returns the number evicted"""
        cutoff = datetime.utcnow() - timedelta(seconds=self.max_item_age)

        async with self._lock:
            stale = [item for item in self._queue.values() if item.created_at < cutoff]
            for item in stale:
                del self._queue[item.id]
            parked = self.offline_buffer.evict_created_before(cutoff)
            for item in stale + parked:
                await self._expire(item)
            forgotten = self.ledger.evict_finished_before(cutoff)

        if stale or parked or forgotten:
            logger.info(
                f"Cleanup evicted {len(stale)} queued item(s), {len(parked)} parked item(s), "
                f"{forgotten} ledger row(s)"
            )
        return len(stale)

    async def _expire(self, item: QueueItem):
        status = self.ledger.get(item.notification_id)
        if status is None:
            return
        state = DeliveryState.PARTIAL if status.state == DeliveryState.PARTIAL else DeliveryState.FAILED
        self.ledger.finish(item.notification_id, state, datetime.utcnow())
        await self._persist(item, state, failure_reason=EXPIRED_IN_QUEUE)

    # ============================================
    # Introspection
    # ============================================

    def get_queue_item(self, queue_id: str) -> Optional[QueueItem]:
        return self._queue.get(queue_id)

    def queued_items(self) -> List[QueueItem]:
        return list(self._queue.values())

    def get_delivery_status(self, notification_id: int) -> Optional[DeliveryStatus]:
        return self.ledger.get(notification_id)

    def get_queue_stats(self) -> dict:
        """Queue depth by priority and by user"""
        by_priority = {p.value: 0 for p in sorted(Priority, key=lambda p: p.rank)}
        by_user: Dict[int, int] = {}
        for item in self._queue.values():
            by_priority[item.priority.value] += 1
            by_user[item.user_id] = by_user.get(item.user_id, 0) + 1

        return {
            "total_queued": len(self._queue),
            "by_priority": by_priority,
            "by_user": by_user,
            "processing": self._processing,
            "offline_buffered": len(self.offline_buffer),
            "offline_by_user": self.offline_buffer.counts(),
        }

    def get_delivery_stats(self) -> dict:
        return self.ledger.stats()

    # ============================================
    # Background loops
    # ============================================

    async def start(self):
        """Start the queue and cleanup background tasks"""
        if not self.enabled:
            logger.info("Notification queue is disabled (QUEUE_ENABLED=false)")
            return

        if self._running:
            logger.warning("Notification queue is already running")
            return

        self._running = True
        self._tick_task = asyncio.create_task(self._tick_loop())
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            f"Notification queue started (tick={self.tick_interval}s, cleanup={self.cleanup_interval}s)"
        )

    async def stop(self):
        """Stop the background tasks"""
        self._running = False
        for task in (self._tick_task, self._cleanup_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._tick_task = None
        self._cleanup_task = None
        logger.info("Notification queue stopped")

    async def _tick_loop(self):
        while self._running:
            await self.process_queue()
            try:
                await asyncio.sleep(self.tick_interval)
            except asyncio.CancelledError:
                break

    async def _cleanup_loop(self):
        while self._running:
            try:
                await asyncio.sleep(self.cleanup_interval)
            except asyncio.CancelledError:
                break
            try:
                await self.cleanup()
            except Exception as e:
                logger.error(f"Queue cleanup error: {e}")

    async def close(self):
        """Stop loops and release channel resources"""
        await self.stop()
        for adapter in self._channels.values():
            await adapter.close()

    @property
    def is_running(self) -> bool:
        return self._running

    def __len__(self) -> int:
        return len(self._queue)
