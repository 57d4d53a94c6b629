"""WebSocket manager for booking chat rooms: room -> set of (websocket, user_id)."""
import logging
from typing import Dict, Set

from fastapi import WebSocket

from marketplace.infra.messaging.redis_bus import redis_bus

logger = logging.getLogger(__name__)


BOOKING_EVENTS_CHANNEL = "booking:events"


class BookingRoomWsManager:
    """Room-scoped WebSocket manager. Rooms are named ``booking_{id}``."""

    def __init__(self) -> None:
        self.rooms: Dict[str, Set[tuple[WebSocket, str]]] = {}

    async def connect(
        self, room: str, user_id: str, websocket: WebSocket, already_accepted: bool = False
    ) -> None:
        """Add a connection to a room. Call websocket.accept() if not already accepted."""
        if not already_accepted:
            await websocket.accept()
        self.rooms.setdefault(room, set()).add((websocket, user_id))

    async def disconnect(self, room: str, user_id: str, websocket: WebSocket) -> None:
        """Remove a connection from a room."""
        if room in self.rooms:
            self.rooms[room].discard((websocket, user_id))
            if not self.rooms[room]:
                del self.rooms[room]

    def members(self, room: str) -> set[str]:
        """User ids with a live connection in the room on this instance."""
        return {uid for _, uid in self.rooms.get(room, set())}

    async def broadcast_local(self, room: str, message: dict) -> None:
        """Send message to all connections in this instance only. Used by broadcast and by the Redis subscriber."""
        if room not in self.rooms:
            return
        disconnected = []
        for websocket, uid in self.rooms[room].copy():
            try:
                await websocket.send_json(message)
            except (RuntimeError, ConnectionError) as e:
                logger.warning("Booking WS connection closed for room %s user %s: %s", room, uid, e)
                disconnected.append((room, uid, websocket))
            except Exception as e:
                logger.exception("Booking WS send failed for room %s user %s: %s", room, uid, e)
                disconnected.append((room, uid, websocket))
        for rid, uid, ws in disconnected:
            await self.disconnect(rid, uid, ws)

    async def broadcast(self, room: str, message: dict) -> None:
        """Publish to Redis when connected (every instance forwards locally); otherwise broadcast locally."""
        if redis_bus.is_connected:
            try:
                await redis_bus.publish(BOOKING_EVENTS_CHANNEL, {"room": room, "message": message})
                return
            except Exception as e:
                logger.warning("Booking WS Redis publish failed, broadcasting locally: %s", e)
        await self.broadcast_local(room, message)


booking_ws_manager = BookingRoomWsManager()
