"""Notification repository."""
from datetime import datetime
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from marketplace.infra.db.models.notification import NotificationModel
from marketplace.domain.common.types import generate_id


class NotificationRepository:
    """Inbox storage. Entries are written after the business transaction and commit on their own."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, user_id: str, type: str, title: str, message: str, booking_id: Optional[str] = None
    ) -> NotificationModel:
        model = NotificationModel(
            id=generate_id(),
            user_id=user_id,
            booking_id=booking_id,
            type=type,
            title=title,
            message=message,
            read=False,
            created_at=datetime.utcnow(),
        )
        self.session.add(model)
        await self.session.commit()
        return model

    def _inbox(self, user_id: str, type: Optional[str], unread_only: bool):
        q = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if type is not None:
            q = q.where(NotificationModel.type == type)
        if unread_only:
            q = q.where(NotificationModel.read.is_(False))
        return q

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        type: Optional[str] = None,
        unread_only: bool = False,
    ) -> List[NotificationModel]:
        """Newest first."""
        q = (
            self._inbox(user_id, type, unread_only)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def page(
        self, user_id: str, limit: int, offset: int, type: Optional[str] = None, unread_only: bool = False
    ) -> Tuple[List[NotificationModel], int]:
        items = await self.list_by_user(user_id, limit=limit, offset=offset, type=type, unread_only=unread_only)
        total = await self.session.execute(
            select(func.count()).select_from(self._inbox(user_id, type, unread_only).subquery())
        )
        return items, total.scalar() or 0

    async def count_unread(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(NotificationModel).where(
                NotificationModel.user_id == user_id,
                NotificationModel.read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        """Only the owner can mark an entry. False when no such entry belongs to the user."""
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.id == notification_id, NotificationModel.user_id == user_id)
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id, NotificationModel.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0
