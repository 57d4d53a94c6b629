"""Booking domain services."""
import logging
from datetime import datetime, timezone
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.admin.models import User, UserRole
from marketplace.domain.admin.services import UserRepository
from marketplace.domain.booking.assignment import MonitorAssignmentService
from marketplace.domain.booking.models import Booking, BookingStatus
from marketplace.domain.booking.state_machine import (
    STATUS_UPDATE_TARGETS,
    Transition,
    apply_side_effect,
    get_transition,
    plan_transition,
    require_access,
)
from marketplace.domain.common.errors import (
    AgeVerificationError,
    AuthorizationError,
    ConflictError,
    InsufficientFundsError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from marketplace.domain.wallet.ledger import WalletLedger, validate_amount
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.booking_repo import BookingRepository, MonitorAssignmentRepository
from marketplace.infra.db.repositories.wallet_repo import WalletRepository
from marketplace.services.notification_service import deliver_notification
from marketplace.services.realtime_events import emit_to_booking
from marketplace.settings import settings

logger = logging.getLogger(__name__)


STATUS_MESSAGES = {
    BookingStatus.CONFIRMED: ("Booking confirmed", "Your booking has been confirmed"),
    BookingStatus.IN_PROGRESS: ("Booking started", "Your booking is now in progress"),
    BookingStatus.COMPLETED: ("Booking completed", "Your booking has been completed"),
    BookingStatus.CANCELLED: ("Booking cancelled", "Your booking has been cancelled"),
    BookingStatus.DISPUTED: ("Booking disputed", "A dispute has been filed for your booking"),
}


def to_naive_utc(value: datetime) -> datetime:
    """Store and compare timestamps as naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_status(value) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown booking status: {value}", field="status")


def booking_payload(booking: Booking) -> dict:
    """Realtime/event view of a booking."""
    return {
        "id": booking.id,
        "status": booking.status.value,
        "seekerId": booking.seeker_id,
        "providerId": booking.provider_id,
        "tokenAmount": booking.token_amount,
        "scheduledAt": booking.scheduled_at.isoformat(),
        "completedAt": booking.completed_at.isoformat() if booking.completed_at else None,
    }


class BookingService:
    """Booking lifecycle: creation with escrow hold, and guarded status transitions."""

    def __init__(
        self,
        repo: BookingRepository,
        wallet_repo: WalletRepository,
        user_repo: UserRepository,
        db: AsyncSession,
    ):
        self.repo = repo
        self.user_repo = user_repo
        self.db = db
        self.ledger = WalletLedger(wallet_repo)
        self.assignments = MonitorAssignmentService(MonitorAssignmentRepository(db), user_repo, db)

    async def create_booking(
        self,
        seeker: User,
        provider_id: str,
        service_type: str,
        scheduled_at: datetime,
        duration: int,
        token_amount: int,
        notes: Optional[str] = None,
    ) -> Booking:
        """Create a PENDING booking and hold the seeker's tokens in escrow, atomically."""
        if seeker.role != UserRole.SEEKER:
            raise AuthorizationError("Only seekers can create bookings")
        if not seeker.is_age_verified:
            raise AgeVerificationError()
        validate_amount(token_amount)
        if isinstance(duration, bool) or not isinstance(duration, int):
            raise ValidationError("Duration must be a whole number of minutes", field="duration")
        if duration < settings.min_booking_duration_minutes:
            raise ValidationError(
                f"Duration must be at least {settings.min_booking_duration_minutes} minutes", field="duration"
            )
        scheduled_at = to_naive_utc(scheduled_at)
        if scheduled_at <= datetime.utcnow():
            raise ValidationError("Booking time must be in the future", field="scheduledAt")
        if not (service_type or "").strip():
            raise ValidationError("Service type is required", field="serviceType")
        if provider_id == seeker.id:
            raise ValidationError("Cannot book yourself", field="providerId")

        provider = await self.user_repo.get_by_id(provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)
        if provider.role != UserRole.PROVIDER or not provider.is_active:
            raise ValidationError("Selected user is not an active provider", field="providerId")

        booking = Booking.create(
            seeker_id=seeker.id,
            provider_id=provider_id,
            service_type=service_type.strip(),
            token_amount=token_amount,
            scheduled_at=scheduled_at,
            duration=duration,
            notes=notes,
        )
        transition = get_transition(None, BookingStatus.PENDING)

        async def _create() -> Booking:
            open_bookings = await self.repo.list_provider_open_before(provider_id, booking.ends_at)
            if any(other.ends_at > booking.scheduled_at for other in open_bookings):
                raise ConflictError("Provider already has a booking at this time")
            created = await self.repo.create(booking)
            try:
                await apply_side_effect(self.ledger, created, transition)
            except InsufficientFundsError as e:
                raise InsufficientFundsError("Insufficient tokens", code="INSUFFICIENT_TOKENS") from e
            return created

        created = await run_atomic(self.db, _create, label="booking creation")
        logger.info(
            "Booking created: id=%s seeker=%s provider=%s tokens=%s",
            created.id, seeker.id, provider_id, token_amount,
        )
        try:
            await self.assignments.assign(created.id)
        except Exception as e:
            logger.warning("Monitor assignment for booking %s failed: %s", created.id, e)
        await self._notify(
            provider_id,
            "booking_request",
            "New booking request",
            f"New {created.service_type} booking request for {created.token_amount} tokens",
            created,
        )
        return created

    async def get_booking(self, booking_id: str, user: User) -> Booking:
        """Get a booking the user is a party to (or any booking for admins)."""
        booking = await self.repo.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        require_access(booking, user)
        return booking

    async def list_bookings(
        self,
        user: User,
        status: Optional[BookingStatus] = None,
        as_role: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Booking]:
        """Bookings where the user is seeker or provider."""
        if as_role not in (None, "seeker", "provider"):
            raise ValidationError("role must be 'seeker' or 'provider'", field="role")
        return await self.repo.list_for_user(user.id, status=status, as_role=as_role, limit=limit, offset=offset)

    async def execute_transition(self, booking: Booking, transition: Transition) -> bool:
        """Compare-and-set the status, then run the side effect. Call inside an open transaction.

        Returns False when another request already moved the booking to the same
        target (no side effect runs). Raises InvalidTransitionError when it moved
        somewhere else.
        """
        now = datetime.utcnow()
        changed = await self.repo.transition_status(
            booking.id,
            booking.status,
            transition.target,
            completed_at=now if transition.target == BookingStatus.COMPLETED else None,
            cancelled_at=now if transition.target == BookingStatus.CANCELLED else None,
        )
        if not changed:
            current = await self.repo.get(booking.id)
            if current is not None and current.status == transition.target:
                return False
            raise InvalidTransitionError(
                (current.status if current else booking.status).value, transition.target.value
            )
        await apply_side_effect(self.ledger, booking, transition)
        return True

    async def update_status(self, booking_id: str, target, user: User) -> Booking:
        """Move a booking along the lifecycle. Re-requesting the current status is a no-op success."""
        target = parse_status(target)
        if target not in STATUS_UPDATE_TARGETS:
            raise ValidationError(
                f"Status must be one of {', '.join(sorted(s.value for s in STATUS_UPDATE_TARGETS))}",
                field="status",
            )

        async def _update() -> tuple[Booking, bool]:
            booking = await self.repo.get(booking_id)
            if booking is None:
                raise NotFoundError("Booking", booking_id)
            transition = plan_transition(booking, target, user)
            if transition is None:
                return booking, False
            changed = await self.execute_transition(booking, transition)
            return await self.repo.get(booking_id), changed

        booking, changed = await run_atomic(self.db, _update, label="booking status update")
        if changed:
            logger.info("Booking %s -> %s by %s", booking.id, booking.status.value, user.id)
            await self.announce_status(booking, user.id)
        else:
            logger.info("Booking %s already %s; no-op for %s", booking.id, booking.status.value, user.id)
        return booking

    async def announce_status(self, booking: Booking, actor_id: str) -> None:
        """Post-commit: room event plus inbox notification for the other side(s)."""
        emit_to_booking(booking.id, "booking_status", booking_payload(booking))
        title, message = STATUS_MESSAGES.get(
            booking.status, ("Booking updated", f"Booking is now {booking.status.value}")
        )
        for recipient in (booking.seeker_id, booking.provider_id):
            if recipient != actor_id:
                await self._notify(recipient, "booking_update", title, message, booking)

    async def _notify(self, user_id: str, type: str, title: str, message: str, booking: Booking) -> None:
        try:
            await deliver_notification(
                self.db,
                user_id,
                type,
                title,
                message,
                booking_id=booking.id,
                extra_payload={"status": booking.status.value},
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning("Notification for booking %s to %s failed: %s", booking.id, user_id, e)
