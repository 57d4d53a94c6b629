"""Per-user WebSocket: inbox pushes and, for monitors, flagged-message alerts."""
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db, user_from_token
from marketplace.infra.realtime.ws_manager import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_notifications(
    websocket: WebSocket,
    token: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate with ``?token=<access token>``. Text ``ping`` is answered with ``pong``."""
    await websocket.accept()
    user = await user_from_token(token, db) if token else None
    if user is None:
        logger.warning("Notification WS rejected: missing or invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    await ws_manager.connect(user.id, websocket, already_accepted=True)
    logger.info("Notification WS connected for user %s", user.id)
    try:
        await websocket.send_json({"type": "connection.established", "userId": user.id})
        while True:
            if await websocket.receive_text() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    except (RuntimeError, ConnectionError) as e:
        logger.warning("Notification WS error for user %s: %s", user.id, e)
    finally:
        ws_manager.disconnect(user.id, websocket)
