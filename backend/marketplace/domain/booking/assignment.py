"""Round-robin assignment of staff monitors to bookings."""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.admin.models import UserRole
from marketplace.domain.admin.services import UserRepository
from marketplace.domain.booking.models import MonitorAssignment
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.booking_repo import MonitorAssignmentRepository

logger = logging.getLogger(__name__)

BOOKING_MONITORING = "BOOKING_MONITORING"


class MonitorAssignmentService:
    """Spreads new bookings evenly over active employees."""

    def __init__(self, repo: MonitorAssignmentRepository, user_repo: UserRepository, db: AsyncSession):
        self.repo = repo
        self.user_repo = user_repo
        self.db = db

    async def assign(self, booking_id: str) -> Optional[MonitorAssignment]:
        """Assign the next employee in rotation. Returns None when no employee is active."""

        async def _assign() -> Optional[MonitorAssignment]:
            existing = await self.repo.get_for_booking(booking_id)
            if existing is not None:
                return existing
            staff = await self.user_repo.list_active_by_role(UserRole.EMPLOYEE)
            if not staff:
                return None
            position = await self.repo.next_position(BOOKING_MONITORING)
            chosen = staff[position % len(staff)]
            return await self.repo.create(booking_id, chosen.id)

        assignment = await run_atomic(self.db, _assign, label="monitor assignment")
        if assignment is None:
            logger.info("No active employees; booking %s has no monitor", booking_id)
        else:
            logger.info("Booking %s monitored by %s", booking_id, assignment.assigned_to)
        return assignment

    async def get_monitor_id(self, booking_id: str) -> Optional[str]:
        """User id of the booking's monitor, if any."""
        assignment = await self.repo.get_for_booking(booking_id)
        return assignment.assigned_to if assignment else None
