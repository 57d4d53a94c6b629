"""Booking database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, CheckConstraint, Index, Text

from marketplace.infra.db.base import Base
from marketplace.domain.booking.models import Booking, BookingStatus, MonitorAssignment


class BookingModel(Base):
    """Booking between a seeker and a provider; tokens held in the seeker's escrow while active."""

    __tablename__ = "bookings"

    id = Column(String, primary_key=True)
    seeker_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    provider_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    service_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.PENDING.value)
    token_amount = Column(Integer, nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("token_amount > 0", name="ck_booking_token_amount_positive"),
        CheckConstraint("duration > 0", name="ck_booking_duration_positive"),
        CheckConstraint("seeker_id <> provider_id", name="ck_booking_distinct_parties"),
        Index("ix_bookings_seeker_id", "seeker_id"),
        Index("ix_bookings_provider_id_scheduled_at", "provider_id", "scheduled_at"),
        Index("ix_bookings_status", "status"),
    )

    def to_entity(self) -> Booking:
        """Convert to domain entity."""
        return Booking(
            id=self.id,
            seeker_id=self.seeker_id,
            provider_id=self.provider_id,
            service_type=self.service_type,
            status=BookingStatus(self.status),
            token_amount=self.token_amount,
            scheduled_at=self.scheduled_at,
            duration=self.duration,
            notes=self.notes,
            created_at=self.created_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
        )

    @classmethod
    def from_entity(cls, entity: Booking) -> "BookingModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            seeker_id=entity.seeker_id,
            provider_id=entity.provider_id,
            service_type=entity.service_type,
            status=entity.status.value,
            token_amount=entity.token_amount,
            scheduled_at=entity.scheduled_at,
            duration=entity.duration,
            notes=entity.notes,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            completed_at=entity.completed_at,
            cancelled_at=entity.cancelled_at,
        )


class MonitorAssignmentModel(Base):
    """Which staff member monitors a booking's chat."""

    __tablename__ = "monitor_assignments"

    id = Column(String, primary_key=True)
    booking_id = Column(String, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    assigned_to = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_entity(self) -> MonitorAssignment:
        """Convert to domain entity."""
        return MonitorAssignment(
            id=self.id,
            booking_id=self.booking_id,
            assigned_to=self.assigned_to,
            created_at=self.created_at,
        )


class RoundRobinCounterModel(Base):
    """Named cursor into an ordered staff list."""

    __tablename__ = "round_robin_counters"

    name = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
