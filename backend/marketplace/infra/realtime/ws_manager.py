"""WebSocket manager for per-user channels: inbox pushes and monitor alerts.

A user may hold several sockets at once (tabs, devices); every push goes to all
of them. With Redis connected the push is published on ``user:events`` and each
instance delivers to the sockets it holds.
"""
import logging
from typing import Dict, Set

from fastapi import WebSocket

from marketplace.infra.messaging.redis_bus import redis_bus

logger = logging.getLogger(__name__)


USER_EVENTS_CHANNEL = "user:events"


class UserChannelWsManager:
    """user_id -> live sockets on this instance."""

    def __init__(self) -> None:
        self.channels: Dict[str, Set[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket, already_accepted: bool = False) -> None:
        if not already_accepted:
            await websocket.accept()
        self.channels.setdefault(user_id, set()).add(websocket)

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        sockets = self.channels.get(user_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.channels[user_id]

    def is_online(self, user_id: str) -> bool:
        return bool(self.channels.get(user_id))

    async def send_local(self, user_id: str, message: dict) -> None:
        """Deliver to this instance's sockets for the user; dead sockets are dropped."""
        sockets = self.channels.get(user_id)
        if not sockets:
            logger.debug("User %s not connected here, dropping %s", user_id, message.get("type", "unknown"))
            return
        for websocket in sockets.copy():
            try:
                await websocket.send_json(message)
            except (RuntimeError, ConnectionError) as e:
                logger.warning("User WS closed for %s: %s", user_id, e)
                self.disconnect(user_id, websocket)
            except Exception as e:
                logger.exception("User WS send failed for %s: %s", user_id, e)
                self.disconnect(user_id, websocket)

    async def send_to_user(self, user_id: str, message: dict) -> None:
        """Offline users reconcile through the inbox endpoints."""
        if redis_bus.is_connected:
            try:
                await redis_bus.publish(USER_EVENTS_CHANNEL, {"user_id": user_id, "message": message})
                return
            except Exception as e:
                logger.warning("User WS Redis publish failed, delivering locally: %s", e)
        await self.send_local(user_id, message)


ws_manager = UserChannelWsManager()
