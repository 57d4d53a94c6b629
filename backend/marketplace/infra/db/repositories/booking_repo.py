"""Booking repository implementation."""
from typing import Optional, List
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_

from marketplace.domain.booking.models import Booking, BookingStatus, MonitorAssignment
from marketplace.domain.common.types import generate_id
from marketplace.infra.db.models.booking import BookingModel, MonitorAssignmentModel, RoundRobinCounterModel


class BookingRepository:
    """Booking repository interface."""

    async def create(self, booking: Booking) -> Booking:
        """Create a booking."""
        raise NotImplementedError

    async def get(self, booking_id: str) -> Optional[Booking]:
        """Get a booking by ID (fresh from the database)."""
        raise NotImplementedError

    async def transition_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        target: BookingStatus,
        completed_at: Optional[datetime] = None,
        cancelled_at: Optional[datetime] = None,
    ) -> bool:
        """Compare-and-set the status. False when the row is no longer in ``expected``."""
        raise NotImplementedError

    async def list_for_user(
        self,
        user_id: str,
        status: Optional[BookingStatus] = None,
        as_role: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Booking]:
        """Bookings where the user is seeker or provider, newest first."""
        raise NotImplementedError

    async def list_provider_open_before(self, provider_id: str, before: datetime) -> List[Booking]:
        """Provider's non-terminal bookings that start before ``before``."""
        raise NotImplementedError


class BookingRepositoryImpl(BookingRepository):
    """Booking repository implementation. Writes flush; services commit."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: Booking) -> Booking:
        """Create a booking."""
        model = BookingModel.from_entity(booking)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get(self, booking_id: str) -> Optional[Booking]:
        """Get a booking by ID (fresh from the database)."""
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def transition_status(
        self,
        booking_id: str,
        expected: BookingStatus,
        target: BookingStatus,
        completed_at: Optional[datetime] = None,
        cancelled_at: Optional[datetime] = None,
    ) -> bool:
        """Compare-and-set the status. False when the row is no longer in ``expected``."""
        values = {"status": target.value, "updated_at": datetime.utcnow()}
        if completed_at is not None:
            values["completed_at"] = completed_at
        if cancelled_at is not None:
            values["cancelled_at"] = cancelled_at
        result = await self.session.execute(
            update(BookingModel)
            .where(BookingModel.id == booking_id, BookingModel.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_for_user(
        self,
        user_id: str,
        status: Optional[BookingStatus] = None,
        as_role: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Booking]:
        """Bookings where the user is seeker or provider, newest first."""
        if as_role == "seeker":
            q = select(BookingModel).where(BookingModel.seeker_id == user_id)
        elif as_role == "provider":
            q = select(BookingModel).where(BookingModel.provider_id == user_id)
        else:
            q = select(BookingModel).where(
                or_(BookingModel.seeker_id == user_id, BookingModel.provider_id == user_id)
            )
        if status is not None:
            q = q.where(BookingModel.status == status.value)
        q = q.order_by(BookingModel.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(q)
        return [m.to_entity() for m in result.scalars().all()]

    async def list_provider_open_before(self, provider_id: str, before: datetime) -> List[Booking]:
        """Provider's non-terminal bookings that start before ``before``."""
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.provider_id == provider_id,
                BookingModel.status.in_([
                    BookingStatus.PENDING.value,
                    BookingStatus.CONFIRMED.value,
                    BookingStatus.IN_PROGRESS.value,
                ]),
                BookingModel.scheduled_at < before,
            )
        )
        return [m.to_entity() for m in result.scalars().all()]


class MonitorAssignmentRepository:
    """Monitor assignments and the round-robin cursor behind them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_booking(self, booking_id: str) -> Optional[MonitorAssignment]:
        """Current monitor for a booking."""
        result = await self.session.execute(
            select(MonitorAssignmentModel).where(MonitorAssignmentModel.booking_id == booking_id)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def create(self, booking_id: str, assigned_to: str) -> MonitorAssignment:
        """Assign a monitor."""
        model = MonitorAssignmentModel(
            id=generate_id(),
            booking_id=booking_id,
            assigned_to=assigned_to,
            created_at=datetime.utcnow(),
        )
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def next_position(self, name: str) -> int:
        """Return the counter's current position and advance it (row locked for the transaction)."""
        result = await self.session.execute(
            select(RoundRobinCounterModel)
            .where(RoundRobinCounterModel.name == name)
            .with_for_update()
        )
        counter = result.scalar_one_or_none()
        if counter is None:
            counter = RoundRobinCounterModel(name=name, position=0, updated_at=datetime.utcnow())
            self.session.add(counter)
        position = counter.position
        counter.position = position + 1
        counter.updated_at = datetime.utcnow()
        await self.session.flush()
        return position

