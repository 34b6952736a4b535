"""
Connection Manager

Tracks live WebSocket connections per user and reports presence changes.
A user may hold several sockets (tabs, devices); they are online while at
least one is open.
"""
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Set

from fastapi import WebSocket

logger = logging.getLogger("notifyhub.services.connections")

PresenceListener = Callable[[int, bool], Awaitable[None]]


class ConnectionManager:
    """Registry of live WebSockets keyed by user id"""

    def __init__(self):
        self._connections: Dict[int, Set[WebSocket]] = {}
        self._listeners: List[PresenceListener] = []

    def add_presence_listener(self, listener: PresenceListener):
        """Register a coroutine called with (user_id, is_online) on presence changes"""
        self._listeners.append(listener)

    async def connect(self, user_id: int, websocket: WebSocket):
        """Accept a socket and register it for the user"""
        await websocket.accept()
        sockets = self._connections.setdefault(user_id, set())
        first = not sockets
        sockets.add(websocket)
        logger.info(f"user_id={user_id} event=connect sockets={len(sockets)}")
        if first:
            await self._notify(user_id, True)

    async def disconnect(self, user_id: int, websocket: WebSocket):
        """Forget a socket; the user goes offline with their last socket"""
        sockets = self._connections.get(user_id)
        if not sockets or websocket not in sockets:
            return
        sockets.discard(websocket)
        logger.info(f"user_id={user_id} event=disconnect sockets={len(sockets)}")
        if not sockets:
            del self._connections[user_id]
            await self._notify(user_id, False)

    def is_connected(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    def connected_users(self) -> List[int]:
        return list(self._connections)

    async def send_to_user(self, user_id: int, event: str, data: dict) -> int:
        """
        Send an event to every socket of a user.

        Returns the number of sockets that accepted the message. Sockets that
        fail to send are dropped.
        """
        message = {
            "event": event,
            "data": data,
            "user_id": user_id,
            "timestamp": datetime.utcnow().isoformat(),
        }
        sent = 0
        stale = []
        for websocket in list(self._connections.get(user_id, ())):
            try:
                await websocket.send_json(message)
                sent += 1
            except Exception as e:
                logger.warning(f"user_id={user_id} event=send_error reason='{e}'")
                stale.append(websocket)

        for websocket in stale:
            await self.disconnect(user_id, websocket)
        return sent

    async def _notify(self, user_id: int, is_online: bool):
        for listener in self._listeners:
            try:
                await listener(user_id, is_online)
            except Exception as e:
                logger.error(f"Presence listener failed for user {user_id}: {e}")
