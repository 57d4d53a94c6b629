"""Booking chat routes."""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import build_chat_service, get_current_admin, get_current_user, get_db
from marketplace.api.schemas import CamelModel, Pagination
from marketplace.domain.admin.models import User
from marketplace.domain.chat.services import message_payload

router = APIRouter()


class SendMessageRequest(CamelModel):
    content: Optional[str] = None
    media_url: Optional[str] = Field(default=None, max_length=2048)


class SystemMessageRequest(CamelModel):
    content: str


class FlagRequest(CamelModel):
    is_flagged: bool
    reason: Optional[str] = None


@router.get("/conversations")
async def list_conversations(
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's bookings with their last message and message count."""
    conversations = await build_chat_service(db).list_conversations(current_user, limit=limit)
    return {
        "success": True,
        "conversations": [
            {
                "bookingId": c.booking_id,
                "status": c.status,
                "seekerId": c.seeker_id,
                "providerId": c.provider_id,
                "serviceType": c.service_type,
                "messageCount": c.message_count,
                "lastMessage": message_payload(c.last_message) if c.last_message else None,
            }
            for c in conversations
        ],
    }


@router.get("/admin/flagged-messages")
async def list_flagged_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Review queue, newest first."""
    items, total = await build_chat_service(db).list_flagged(current_user, page=page, limit=limit)
    return {
        "success": True,
        "messages": [message_payload(m) for m in items],
        "pagination": Pagination.of(page, limit, total),
    }


@router.put("/messages/{message_id}/flag")
async def flag_message(
    message_id: str,
    request: FlagRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    message = await build_chat_service(db).flag_message(
        message_id, current_user, request.is_flagged, request.reason
    )
    return {"success": True, "message": message_payload(message)}


@router.get("/{booking_id}/messages")
async def get_messages(
    booking_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Chat history, oldest first. Readable in every booking state."""
    items, total = await build_chat_service(db).get_history(booking_id, current_user, page=page, limit=limit)
    return {
        "success": True,
        "messages": [message_payload(m) for m in items],
        "pagination": Pagination.of(page, limit, total),
    }


@router.post("/{booking_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    booking_id: str,
    request: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Post to the booking chat. Filtered content is delivered but flagged for review."""
    message = await build_chat_service(db).send_message(
        booking_id, current_user, request.content, media_url=request.media_url
    )
    return {"success": True, "message": message_payload(message)}


@router.post("/{booking_id}/system-message", status_code=status.HTTP_201_CREATED)
async def send_system_message(
    booking_id: str,
    request: SystemMessageRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    message = await build_chat_service(db).send_system_message(booking_id, current_user, request.content)
    return {"success": True, "message": message_payload(message)}
