"""Booking chat WebSocket: room membership, live messages and typing indicators."""
import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import build_chat_service, get_db, user_from_token
from marketplace.domain.booking.state_machine import require_access
from marketplace.domain.common.errors import DomainError, NotFoundError
from marketplace.infra.realtime.booking_ws_manager import booking_ws_manager
from marketplace.services.realtime_events import booking_room, emit_to_booking

logger = logging.getLogger(__name__)

router = APIRouter()

TYPING_EVENTS = {"typing_start": "user_typing", "typing_stop": "user_stopped_typing"}


@router.websocket("/ws/{booking_id}")
async def booking_chat_ws(
    websocket: WebSocket,
    booking_id: str,
    token: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Join room ``booking_{id}``. Authenticate with ``?token=<access token>``.

    Client frames: ``"ping"``, or JSON ``{"type": "send_message", "content", "mediaUrl", "tempId"}``,
    ``{"type": "typing_start"}``, ``{"type": "typing_stop"}``.
    """
    await websocket.accept()
    user = await user_from_token(token, db) if token else None
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return
    chat = build_chat_service(db)
    booking = await chat.booking_repo.get(booking_id)
    try:
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        require_access(booking, user)
    except DomainError as e:
        logger.warning("Chat WS for booking %s rejected for %s: %s", booking_id, user.id, e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return
    # Nothing to write yet; end the read transaction while the socket idles
    await db.rollback()

    room = booking_room(booking_id)
    await booking_ws_manager.connect(room, user.id, websocket, already_accepted=True)
    logger.info("Chat WS: user %s joined %s", user.id, room)
    try:
        await websocket.send_json({"type": "connection.established", "booking_id": booking_id, "user_id": user.id})
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
                continue
            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "code": "VALIDATION", "message": "Invalid JSON"})
                continue
            frame_type = frame.get("type") if isinstance(frame, dict) else None
            if frame_type in TYPING_EVENTS:
                emit_to_booking(booking_id, TYPING_EVENTS[frame_type], {"userId": user.id})
            elif frame_type == "send_message":
                try:
                    message = await chat.send_message(
                        booking_id, user, frame.get("content"), media_url=frame.get("mediaUrl")
                    )
                except DomainError as e:
                    await websocket.send_json({"type": "error", "code": e.code, "message": e.message})
                    continue
                await websocket.send_json({
                    "type": "message_sent",
                    "id": message.id,
                    "tempId": frame.get("tempId"),
                    "createdAt": message.created_at.isoformat(),
                })
            else:
                await websocket.send_json(
                    {"type": "error", "code": "VALIDATION", "message": f"Unknown frame type: {frame_type}"}
                )
    except WebSocketDisconnect:
        pass
    except (RuntimeError, ConnectionError) as e:
        logger.warning("Chat WS connection error for user %s in %s: %s", user.id, room, e)
    finally:
        await booking_ws_manager.disconnect(room, user.id, websocket)
