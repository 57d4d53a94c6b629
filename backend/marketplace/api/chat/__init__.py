"""Chat API."""
from fastapi import APIRouter

from marketplace.api.chat import routes_chat, routes_ws

router = APIRouter()

router.include_router(routes_chat.router, prefix="/chat", tags=["chat"])
router.include_router(routes_ws.router, prefix="/chat", tags=["chat"])
