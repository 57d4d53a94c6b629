"""Chat message repository implementation."""
from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from marketplace.domain.chat.models import Message
from marketplace.infra.db.models.chat import MessageModel


class MessageRepository:
    """Message repository interface. Content is immutable; only flag state can change."""

    async def create(self, message: Message) -> Message:
        raise NotImplementedError

    async def get(self, message_id: str) -> Optional[Message]:
        raise NotImplementedError

    async def list_for_booking(self, booking_id: str, limit: int = 50, offset: int = 0) -> List[Message]:
        """Oldest first."""
        raise NotImplementedError

    async def count_for_booking(self, booking_id: str) -> int:
        raise NotImplementedError

    async def set_flag(self, message_id: str, is_flagged: bool, reason: Optional[str]) -> bool:
        raise NotImplementedError

    async def list_flagged(self, limit: int = 50, offset: int = 0) -> List[Message]:
        """Newest first."""
        raise NotImplementedError

    async def count_flagged(self) -> int:
        raise NotImplementedError

    async def summaries(self, booking_ids: List[str]) -> Dict[str, tuple[int, Optional[Message]]]:
        """booking_id -> (message count, last message)."""
        raise NotImplementedError


class MessageRepositoryImpl(MessageRepository):
    """Message repository implementation. Writes flush; services commit."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, message: Message) -> Message:
        model = MessageModel.from_entity(message)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get(self, message_id: str) -> Optional[Message]:
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.id == message_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_for_booking(self, booking_id: str, limit: int = 50, offset: int = 0) -> List[Message]:
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.booking_id == booking_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .limit(limit)
            .offset(offset)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def count_for_booking(self, booking_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(MessageModel).where(MessageModel.booking_id == booking_id)
        )
        return result.scalar() or 0

    async def set_flag(self, message_id: str, is_flagged: bool, reason: Optional[str]) -> bool:
        result = await self.session.execute(
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(is_flagged=is_flagged, flagged_reason=reason if is_flagged else None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_flagged(self, limit: int = 50, offset: int = 0) -> List[Message]:
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.is_flagged.is_(True))
            .order_by(MessageModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def count_flagged(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(MessageModel).where(MessageModel.is_flagged.is_(True))
        )
        return result.scalar() or 0

    async def summaries(self, booking_ids: List[str]) -> Dict[str, tuple[int, Optional[Message]]]:
        if not booking_ids:
            return {}
        counts_result = await self.session.execute(
            select(MessageModel.booking_id, func.count())
            .where(MessageModel.booking_id.in_(booking_ids))
            .group_by(MessageModel.booking_id)
        )
        counts = {booking_id: count for booking_id, count in counts_result.all()}

        latest = (
            select(MessageModel.booking_id, func.max(MessageModel.created_at).label("latest"))
            .where(MessageModel.booking_id.in_(booking_ids))
            .group_by(MessageModel.booking_id)
            .subquery()
        )
        last_result = await self.session.execute(
            select(MessageModel).join(
                latest,
                (MessageModel.booking_id == latest.c.booking_id) & (MessageModel.created_at == latest.c.latest),
            )
        )
        last: Dict[str, Message] = {}
        for model in last_result.scalars().all():
            last[model.booking_id] = model.to_entity()
        return {bid: (counts.get(bid, 0), last.get(bid)) for bid in booking_ids}
