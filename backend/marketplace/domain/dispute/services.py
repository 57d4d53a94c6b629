"""Dispute services: filing freezes the booking, resolution settles the escrow."""
import logging
from datetime import datetime
from typing import Optional, List, Tuple
from urllib.parse import urlparse
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.admin.models import User
from marketplace.domain.admin.services import UserRepository
from marketplace.domain.booking.models import ACTIVE_STATUSES, Booking, BookingStatus
from marketplace.domain.booking.services import BookingService
from marketplace.domain.booking.state_machine import plan_transition
from marketplace.domain.common.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from marketplace.domain.dispute.models import (
    Dispute,
    DisputeOutcome,
    DisputeStatus,
    DisputeType,
)
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.dispute_repo import DisputeRepository
from marketplace.services.notification_service import deliver_notification
from marketplace.settings import settings

logger = logging.getLogger(__name__)

S = DisputeStatus

# Booking status each outcome settles to
OUTCOME_TARGETS = {
    DisputeOutcome.RELEASE: BookingStatus.COMPLETED,
    DisputeOutcome.REFUND: BookingStatus.CANCELLED,
}


def parse_enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field}: {value}. Must be one of {allowed}", field=field)


def validate_text(value: Optional[str], field: str, min_length: int, max_length: int) -> str:
    text = (value or "").strip()
    if not min_length <= len(text) <= max_length:
        raise ValidationError(
            f"{field} must be between {min_length} and {max_length} characters", field=field
        )
    return text


def validate_evidence(evidence) -> List[str]:
    """Evidence is an optional list of http(s) URLs."""
    if evidence is None:
        return []
    if not isinstance(evidence, list):
        raise ValidationError("Evidence must be a list of URLs", field="evidence")
    for item in evidence:
        parsed = urlparse(item) if isinstance(item, str) else None
        if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid evidence URL: {item}", field="evidence")
    return list(evidence)


def require_admin(user: User) -> None:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")


class DisputeService:
    """Dispute lifecycle: OPEN -> INVESTIGATING -> RESOLVED (-> ESCALATED) -> CLOSED."""

    def __init__(
        self,
        repo: DisputeRepository,
        bookings: BookingService,
        user_repo: UserRepository,
        db: AsyncSession,
    ):
        self.repo = repo
        self.bookings = bookings
        self.user_repo = user_repo
        self.db = db

    async def _get_booking(self, booking_id: str) -> Booking:
        booking = await self.bookings.repo.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def _get(self, dispute_id: str) -> Dispute:
        dispute = await self.repo.get(dispute_id)
        if dispute is None:
            raise NotFoundError("Dispute", dispute_id)
        return dispute

    async def file_dispute(
        self,
        booking_id: str,
        user: User,
        dispute_type,
        description: Optional[str],
        evidence=None,
    ) -> Tuple[Dispute, Booking]:
        """File a dispute and move the booking to DISPUTED in one transaction. Funds stay in escrow."""
        booking = await self._get_booking(booking_id)
        if not booking.is_party(user.id):
            raise AuthorizationError("You can only file disputes for your own bookings")
        if booking.status not in ACTIVE_STATUSES:
            raise InvalidTransitionError(
                booking.status.value,
                BookingStatus.DISPUTED.value,
                f"Cannot dispute a booking in status {booking.status.value}",
            )
        dispute_type = parse_enum(DisputeType, dispute_type, "disputeType")
        description = validate_text(
            description,
            "description",
            settings.min_dispute_description_length,
            settings.max_dispute_description_length,
        )
        evidence = validate_evidence(evidence)

        async def _file() -> Tuple[Dispute, Booking]:
            if await self.repo.get_open_for_booking(booking_id) is not None:
                raise ConflictError("There is already an open dispute for this booking")
            current = await self._get_booking(booking_id)
            transition = plan_transition(current, BookingStatus.DISPUTED, user)
            if transition is None or not await self.bookings.execute_transition(current, transition):
                raise ConflictError("There is already an open dispute for this booking")
            dispute = await self.repo.create(
                Dispute.create(
                    booking_id=booking_id,
                    reported_by=user.id,
                    reported_against=current.counterpart_of(user.id),
                    dispute_type=dispute_type,
                    description=description,
                    evidence=evidence,
                )
            )
            return dispute, await self._get_booking(booking_id)

        dispute, booking = await run_atomic(self.db, _file, label="dispute filing")
        logger.info("Dispute filed: %s by %s for booking %s (%s)", dispute.id, user.id, booking_id, dispute_type.value)
        await self.bookings.announce_status(booking, user.id)
        return dispute, booking

    async def assign(self, dispute_id: str, actor: User, assignee_id: Optional[str] = None) -> Dispute:
        """Take (or hand) a dispute for investigation.

        An appealed (ESCALATED) dispute only changes hands; it stays ESCALATED so it can still be closed.
        """
        require_admin(actor)
        assignee_id = assignee_id or actor.id
        if assignee_id != actor.id:
            assignee = await self.user_repo.get_by_id(assignee_id)
            if assignee is None or not assignee.is_admin or not assignee.is_active:
                raise ValidationError("Assignee must be an active staff member", field="assignedTo")

        async def _assign() -> Dispute:
            dispute = await self._get(dispute_id)
            if dispute.status == S.ESCALATED:
                expected, values = {S.ESCALATED}, {"assigned_to": assignee_id}
            else:
                expected = {S.OPEN, S.INVESTIGATING}
                values = {"status": S.INVESTIGATING, "assigned_to": assignee_id}
            if dispute.status not in expected:
                raise InvalidTransitionError(
                    dispute.status.value, S.INVESTIGATING.value,
                    f"Cannot assign a dispute in status {dispute.status.value}",
                )
            if not await self.repo.update_if_status(dispute_id, expected, **values):
                raise ConflictError("Dispute was updated concurrently, please retry")
            return await self._get(dispute_id)

        dispute = await run_atomic(self.db, _assign, label="dispute assignment")
        logger.info("Dispute %s assigned to %s by %s", dispute_id, assignee_id, actor.id)
        return dispute

    async def resolve(self, dispute_id: str, actor: User, outcome, resolution: Optional[str]) -> Tuple[Dispute, Booking]:
        """Settle the escrow: RELEASE completes the booking, REFUND cancels it. Same transaction."""
        require_admin(actor)
        if outcome is None:
            raise ValidationError("Outcome is required", field="outcome")
        outcome = parse_enum(DisputeOutcome, outcome, "outcome")
        resolution = (resolution or "").strip()
        if not resolution:
            raise ValidationError("Resolution is required", field="resolution")
        target = OUTCOME_TARGETS[outcome]

        async def _resolve() -> Tuple[Dispute, Booking]:
            dispute = await self._get(dispute_id)
            expected = {S.OPEN, S.INVESTIGATING}
            if dispute.status not in expected:
                raise InvalidTransitionError(
                    dispute.status.value, S.RESOLVED.value,
                    f"Cannot resolve a dispute in status {dispute.status.value}",
                )
            now = datetime.utcnow()
            if not await self.repo.update_if_status(
                dispute_id,
                expected,
                status=S.RESOLVED,
                outcome=outcome,
                resolution=resolution,
                resolved_at=now,
                assigned_to=dispute.assigned_to or actor.id,
            ):
                raise ConflictError("Dispute was updated concurrently, please retry")
            booking = await self._get_booking(dispute.booking_id)
            transition = plan_transition(booking, target, actor, resolution=True)
            if transition is None or not await self.bookings.execute_transition(booking, transition):
                raise ConflictError("Booking was already settled")
            return await self._get(dispute_id), await self._get_booking(dispute.booking_id)

        dispute, booking = await run_atomic(self.db, _resolve, label="dispute resolution")
        logger.info(
            "Dispute %s resolved by %s: outcome=%s booking=%s -> %s",
            dispute_id, actor.id, outcome.value, booking.id, booking.status.value,
        )
        await self.bookings.announce_status(booking, actor.id)
        for party in (dispute.reported_by, dispute.reported_against):
            await self._notify(party, "dispute_resolved", "Dispute resolved", resolution, dispute)
        return dispute, booking

    async def appeal(self, dispute_id: str, user: User, reason: Optional[str]) -> Dispute:
        """One appeal per dispute, by a party, after resolution. Funds do not move again."""
        dispute = await self._get(dispute_id)
        if not dispute.involves(user.id):
            raise AuthorizationError("You can only appeal disputes you are involved in")
        if dispute.appealed:
            raise ConflictError("This dispute has already been appealed")
        if dispute.status != S.RESOLVED:
            raise InvalidTransitionError(
                dispute.status.value, S.ESCALATED.value, "Only resolved disputes can be appealed"
            )
        reason = validate_text(
            reason, "reason", settings.min_appeal_reason_length, settings.max_appeal_reason_length
        )

        async def _appeal() -> Dispute:
            if not await self.repo.update_if_status(
                dispute_id, {S.RESOLVED}, status=S.ESCALATED, appeal_reason=reason, appealed_at=datetime.utcnow()
            ):
                raise ConflictError("This dispute has already been appealed")
            return await self._get(dispute_id)

        dispute = await run_atomic(self.db, _appeal, label="dispute appeal")
        logger.info("Dispute %s appealed by %s", dispute_id, user.id)
        if dispute.assigned_to:
            await self._notify(dispute.assigned_to, "dispute_appealed", "Dispute appealed", reason, dispute)
        return dispute

    async def close(self, dispute_id: str, actor: User) -> Dispute:
        """Close a settled (or appealed) dispute."""
        require_admin(actor)

        async def _close() -> Dispute:
            dispute = await self._get(dispute_id)
            expected = {S.RESOLVED, S.ESCALATED}
            if dispute.status not in expected:
                raise InvalidTransitionError(
                    dispute.status.value, S.CLOSED.value, "Only resolved or escalated disputes can be closed"
                )
            if not await self.repo.update_if_status(dispute_id, expected, status=S.CLOSED):
                raise ConflictError("Dispute was updated concurrently, please retry")
            return await self._get(dispute_id)

        dispute = await run_atomic(self.db, _close, label="dispute close")
        logger.info("Dispute %s closed by %s", dispute_id, actor.id)
        return dispute

    async def get_dispute(self, dispute_id: str, user: User) -> Dispute:
        dispute = await self._get(dispute_id)
        if not (dispute.involves(user.id) or user.is_admin):
            raise AuthorizationError("Access denied")
        return dispute

    async def list_mine(
        self, user: User, status=None, limit: int = 20, offset: int = 0
    ) -> Tuple[List[Dispute], int]:
        """Disputes the user filed or was reported in."""
        status = parse_enum(DisputeStatus, status, "status") if status else None
        items = await self.repo.list_for_user(user.id, status=status, limit=limit, offset=offset)
        return items, await self.repo.count_for_user(user.id, status=status)

    async def list_all(
        self, actor: User, status=None, dispute_type=None, limit: int = 20, offset: int = 0
    ) -> Tuple[List[Dispute], int]:
        require_admin(actor)
        status = parse_enum(DisputeStatus, status, "status") if status else None
        dispute_type = parse_enum(DisputeType, dispute_type, "type") if dispute_type else None
        items = await self.repo.list_all(status=status, dispute_type=dispute_type, limit=limit, offset=offset)
        return items, await self.repo.count_all(status=status, dispute_type=dispute_type)

    async def stats(self, actor: User) -> dict:
        """Counts by status and by type."""
        require_admin(actor)
        by_status = await self.repo.count_by("status")
        by_type = await self.repo.count_by("dispute_type")
        return {
            "total": sum(by_status.values()),
            "byStatus": {s.value: by_status.get(s.value, 0) for s in DisputeStatus},
            "byType": {t.value: by_type.get(t.value, 0) for t in DisputeType},
        }

    async def _notify(self, user_id: str, type: str, title: str, message: str, dispute: Dispute) -> None:
        try:
            await deliver_notification(
                self.db,
                user_id,
                type,
                title,
                message,
                booking_id=dispute.booking_id,
                extra_payload={"disputeId": dispute.id},
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning("Notification for dispute %s to %s failed: %s", dispute.id, user_id, e)
