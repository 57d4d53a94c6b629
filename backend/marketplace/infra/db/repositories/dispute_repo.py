"""Dispute repository implementation."""
from enum import Enum
from typing import Optional, List, Iterable
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_

from marketplace.domain.dispute.models import Dispute, DisputeStatus, DisputeType, OPEN_DISPUTE_STATUSES
from marketplace.infra.db.models.dispute import DisputeModel


class DisputeRepository:
    """Dispute repository interface."""

    async def create(self, dispute: Dispute) -> Dispute:
        raise NotImplementedError

    async def get(self, dispute_id: str) -> Optional[Dispute]:
        raise NotImplementedError

    async def get_open_for_booking(self, booking_id: str) -> Optional[Dispute]:
        """The booking's dispute in OPEN, INVESTIGATING or ESCALATED, if any."""
        raise NotImplementedError

    async def update_if_status(
        self, dispute_id: str, expected: Iterable[DisputeStatus], **values
    ) -> bool:
        """Conditional update. False when the dispute is no longer in one of ``expected``."""
        raise NotImplementedError

    async def list_for_user(
        self, user_id: str, status: Optional[DisputeStatus] = None, limit: int = 20, offset: int = 0
    ) -> List[Dispute]:
        raise NotImplementedError

    async def count_for_user(self, user_id: str, status: Optional[DisputeStatus] = None) -> int:
        raise NotImplementedError

    async def list_all(
        self,
        status: Optional[DisputeStatus] = None,
        dispute_type: Optional[DisputeType] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Dispute]:
        raise NotImplementedError

    async def count_all(
        self, status: Optional[DisputeStatus] = None, dispute_type: Optional[DisputeType] = None
    ) -> int:
        raise NotImplementedError

    async def count_by(self, column: str) -> dict[str, int]:
        """Counts grouped by ``status`` or ``dispute_type``."""
        raise NotImplementedError


class DisputeRepositoryImpl(DisputeRepository):
    """Dispute repository implementation. Writes flush; services commit."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, dispute: Dispute) -> Dispute:
        model = DisputeModel.from_entity(dispute)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get(self, dispute_id: str) -> Optional[Dispute]:
        result = await self.session.execute(
            select(DisputeModel)
            .where(DisputeModel.id == dispute_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_open_for_booking(self, booking_id: str) -> Optional[Dispute]:
        result = await self.session.execute(
            select(DisputeModel)
            .where(
                DisputeModel.booking_id == booking_id,
                DisputeModel.status.in_([s.value for s in OPEN_DISPUTE_STATUSES]),
            )
            .order_by(DisputeModel.created_at.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def update_if_status(
        self, dispute_id: str, expected: Iterable[DisputeStatus], **values
    ) -> bool:
        values = {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}
        values["updated_at"] = datetime.utcnow()
        result = await self.session.execute(
            update(DisputeModel)
            .where(
                DisputeModel.id == dispute_id,
                DisputeModel.status.in_([s.value for s in expected]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _user_clause(self, user_id: str):
        return or_(DisputeModel.reported_by == user_id, DisputeModel.reported_against == user_id)

    async def list_for_user(
        self, user_id: str, status: Optional[DisputeStatus] = None, limit: int = 20, offset: int = 0
    ) -> List[Dispute]:
        q = select(DisputeModel).where(self._user_clause(user_id))
        if status is not None:
            q = q.where(DisputeModel.status == status.value)
        q = q.order_by(DisputeModel.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(q)
        return [m.to_entity() for m in result.scalars().all()]

    async def count_for_user(self, user_id: str, status: Optional[DisputeStatus] = None) -> int:
        q = select(func.count()).select_from(DisputeModel).where(self._user_clause(user_id))
        if status is not None:
            q = q.where(DisputeModel.status == status.value)
        result = await self.session.execute(q)
        return result.scalar() or 0

    def _filtered(self, q, status: Optional[DisputeStatus], dispute_type: Optional[DisputeType]):
        if status is not None:
            q = q.where(DisputeModel.status == status.value)
        if dispute_type is not None:
            q = q.where(DisputeModel.dispute_type == dispute_type.value)
        return q

    async def list_all(
        self,
        status: Optional[DisputeStatus] = None,
        dispute_type: Optional[DisputeType] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Dispute]:
        q = self._filtered(select(DisputeModel), status, dispute_type)
        q = q.order_by(DisputeModel.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(q)
        return [m.to_entity() for m in result.scalars().all()]

    async def count_all(
        self, status: Optional[DisputeStatus] = None, dispute_type: Optional[DisputeType] = None
    ) -> int:
        q = self._filtered(select(func.count()).select_from(DisputeModel), status, dispute_type)
        result = await self.session.execute(q)
        return result.scalar() or 0

    async def count_by(self, column: str) -> dict[str, int]:
        if column not in ("status", "dispute_type"):
            raise ValueError(f"Cannot group disputes by {column}")
        col = getattr(DisputeModel, column)
        result = await self.session.execute(select(col, func.count()).group_by(col))
        return {key: count for key, count in result.all()}
