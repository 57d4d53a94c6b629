"""Inbox routes."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_user, get_db
from marketplace.api.schemas import Pagination
from marketplace.domain.admin.models import User
from marketplace.domain.common.errors import NotFoundError
from marketplace.infra.db.repositories.notification_repo import NotificationRepository
from marketplace.services.notification_service import notification_payload

router = APIRouter()


@router.get("")
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    type: Optional[str] = None,
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's inbox, newest first."""
    items, total = await NotificationRepository(db).page(
        current_user.id, limit=limit, offset=(page - 1) * limit, type=type, unread_only=unread_only
    )
    return {
        "success": True,
        "notifications": [notification_payload(n) for n in items],
        "pagination": Pagination.of(page, limit, total),
    }


@router.get("/unread-count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationRepository(db).count_unread(current_user.id)
    return {"success": True, "unread": count}


@router.put("/read-all")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await NotificationRepository(db).mark_all_read(current_user.id)
    return {"success": True, "updated": updated}


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Entries belonging to someone else look missing."""
    if not await NotificationRepository(db).mark_read(notification_id, current_user.id):
        raise NotFoundError("Notification", notification_id)
    return {"success": True}
