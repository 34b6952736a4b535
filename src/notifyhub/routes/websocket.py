"""
WebSocket Routes

Live notification stream for a user. Connecting marks the user online,
which releases any notifications buffered while they were away.
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.engine_service import get_engine_service

logger = logging.getLogger("notifyhub.routes.websocket")
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/notifications/{user_id}")
async def notifications_socket(websocket: WebSocket, user_id: int):
    """Push notifications to a connected client; answers 'ping' with 'pong'"""
    manager = get_engine_service().connection_manager
    await manager.connect(user_id, websocket)

    try:
        while True:
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_json({"event": "pong", "user_id": user_id})
            else:
                logger.debug(f"WS client {user_id} sent: {text}")
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(user_id, websocket)
