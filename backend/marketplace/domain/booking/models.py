"""Booking domain models."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from marketplace.domain.common.types import generate_id


class BookingStatus(str, Enum):
    """Booking lifecycle status."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

# Statuses from which a dispute may be filed
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})


@dataclass
class Booking:
    """Booking domain model. token_amount is integer tokens; duration is minutes."""
    id: str
    seeker_id: str
    provider_id: str
    service_type: str
    status: BookingStatus
    token_amount: int
    scheduled_at: datetime
    duration: int
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration)

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.seeker_id, self.provider_id)

    def counterpart_of(self, user_id: str) -> Optional[str]:
        if user_id == self.seeker_id:
            return self.provider_id
        if user_id == self.provider_id:
            return self.seeker_id
        return None

    @property
    def room(self) -> str:
        """Realtime room name for this booking."""
        return f"booking_{self.id}"

    @classmethod
    def create(
        cls,
        seeker_id: str,
        provider_id: str,
        service_type: str,
        token_amount: int,
        scheduled_at: datetime,
        duration: int,
        notes: Optional[str] = None,
    ) -> "Booking":
        """Create a new PENDING booking."""
        now = datetime.utcnow()
        return cls(
            id=generate_id(),
            seeker_id=seeker_id,
            provider_id=provider_id,
            service_type=service_type,
            status=BookingStatus.PENDING,
            token_amount=token_amount,
            scheduled_at=scheduled_at,
            duration=duration,
            notes=notes,
            created_at=now,
            updated_at=now,
        )


@dataclass
class MonitorAssignment:
    """Staff member watching a booking's chat."""
    id: str
    booking_id: str
    assigned_to: str
    created_at: datetime
