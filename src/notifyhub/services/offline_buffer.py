"""
Offline Buffer

Per-user FIFO of queue items parked while the user has no live connection.
"""
from collections import deque
from typing import Deque, Dict, List

from ..models.queue import QueueItem


class OfflineBuffer:
    """Holding area for items waiting on a user's reconnect"""

    def __init__(self):
        self._buffers: Dict[int, Deque[QueueItem]] = {}

    def add(self, item: QueueItem):
        self._buffers.setdefault(item.user_id, deque()).append(item)

    def drain(self, user_id: int) -> List[QueueItem]:
        """Remove and return everything buffered for a user, oldest first"""
        buffer = self._buffers.pop(user_id, None)
        return list(buffer) if buffer else []

    def items_for(self, user_id: int) -> List[QueueItem]:
        return list(self._buffers.get(user_id, ()))

    def contains(self, queue_id: str) -> bool:
        return any(item.id == queue_id for buffer in self._buffers.values() for item in buffer)

    def evict_created_before(self, cutoff) -> List[QueueItem]:
        """Remove and return parked items older than cutoff"""
        evicted = []
        for user_id in list(self._buffers):
            buffer = self._buffers[user_id]
            kept = deque(item for item in buffer if item.created_at >= cutoff)
            evicted.extend(item for item in buffer if item.created_at < cutoff)
            if kept:
                self._buffers[user_id] = kept
            else:
                del self._buffers[user_id]
        return evicted

    def counts(self) -> Dict[int, int]:
        return {user_id: len(buffer) for user_id, buffer in self._buffers.items()}

    def __len__(self) -> int:
        return sum(len(buffer) for buffer in self._buffers.values())
