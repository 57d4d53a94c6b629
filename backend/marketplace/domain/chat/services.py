"""Chat services: gated message acceptance, moderation, and history."""
import logging
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.admin.models import User
from marketplace.domain.booking.models import Booking
from marketplace.domain.booking.state_machine import require_access
from marketplace.domain.chat.content_filter import ContentFilter, FilterResult, get_content_filter
from marketplace.domain.chat.gate import check_can_send
from marketplace.domain.chat.models import Conversation, Message
from marketplace.domain.common.errors import AuthorizationError, NotFoundError, ValidationError
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.booking_repo import BookingRepository, MonitorAssignmentRepository
from marketplace.infra.db.repositories.message_repo import MessageRepository
from marketplace.services.notification_service import deliver_notification
from marketplace.services.realtime_events import emit_to_booking, emit_to_user
from marketplace.settings import settings

logger = logging.getLogger(__name__)

MANUAL_FLAG_REASON = "Flagged by moderator"


def message_payload(message: Message) -> dict:
    """Wire view of a message, shared by REST responses and realtime events."""
    return {
        "id": message.id,
        "bookingId": message.booking_id,
        "senderId": message.sender_id,
        "content": message.content,
        "mediaUrl": message.media_url,
        "isSystemMessage": message.is_system_message,
        "isFlagged": message.is_flagged,
        "flaggedReason": message.flagged_reason,
        "templateId": message.template_id,
        "createdAt": message.created_at.isoformat(),
    }


def require_admin(user: User) -> None:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")


class ChatService:
    """Booking chat. Every accepted message is persisted and classified before it is broadcast."""

    def __init__(
        self,
        repo: MessageRepository,
        booking_repo: BookingRepository,
        monitor_repo: MonitorAssignmentRepository,
        db: AsyncSession,
        content_filter: Optional[ContentFilter] = None,
    ):
        self.repo = repo
        self.booking_repo = booking_repo
        self.monitor_repo = monitor_repo
        self.db = db
        # None means the filter is rebuilt from current settings for every message
        self.content_filter = content_filter

    async def _get_booking(self, booking_id: str) -> Booking:
        booking = await self.booking_repo.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _clean_content(self, content: Optional[str], media_url: Optional[str]) -> str:
        content = (content or "").strip()
        if not content and not media_url:
            raise ValidationError("Message content is required", field="content")
        if len(content) > settings.max_message_length:
            raise ValidationError(
                f"Message must be at most {settings.max_message_length} characters", field="content"
            )
        return content

    async def send_message(
        self,
        booking_id: str,
        user: User,
        content: Optional[str],
        media_url: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> Message:
        """Gate, persist, classify, commit, then broadcast. Flagged messages are still delivered."""
        content_filter = self.content_filter if self.content_filter is not None else get_content_filter()
        result: Optional[FilterResult] = None

        async def _send() -> Message:
            nonlocal result
            booking = await self._get_booking(booking_id)
            check_can_send(booking, user)
            text = self._clean_content(content, media_url)
            result = content_filter.check(text)
            message = Message.create(
                booking_id=booking_id,
                sender_id=user.id,
                content=text,
                media_url=media_url,
                template_id=template_id,
            )
            message.is_flagged = result.flagged
            message.flagged_reason = result.reason
            return await self.repo.create(message)

        message = await run_atomic(self.db, _send, label="chat message")
        logger.info(
            "Message %s in booking %s by %s (flagged=%s)", message.id, booking_id, user.id, message.is_flagged
        )
        emit_to_booking(booking_id, "new_message", message_payload(message))
        if message.is_flagged:
            await self._alert_monitor(message, result)
        return message

    async def _alert_monitor(self, message: Message, result: FilterResult) -> None:
        logger.info(
            "Message %s flagged by content filter v%s: %s",
            message.id, result.version, ", ".join(result.matched_terms),
        )
        assignment = await self.monitor_repo.get_for_booking(message.booking_id)
        if assignment is None:
            logger.info(
                "Booking %s has no monitor; flagged message %s waits in the review queue",
                message.booking_id, message.id,
            )
            return
        monitor_id = assignment.assigned_to
        emit_to_user(
            monitor_id,
            "flagged_message",
            {**message_payload(message), "matchedTerms": result.matched_terms, "filterVersion": result.version},
        )
        try:
            await deliver_notification(
                self.db,
                monitor_id,
                "flagged_message",
                "Message flagged",
                result.reason or "",
                booking_id=message.booking_id,
                extra_payload={"messageId": message.id},
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning("Flag notification for message %s failed: %s", message.id, e)

    async def send_system_message(self, booking_id: str, actor: User, content: Optional[str]) -> Message:
        """Staff announcement. Skips the state gate and the content filter."""
        require_admin(actor)
        content = self._clean_content(content, None)

        async def _send() -> Message:
            await self._get_booking(booking_id)
            return await self.repo.create(
                Message.create(booking_id=booking_id, sender_id=actor.id, content=content, is_system_message=True)
            )

        message = await run_atomic(self.db, _send, label="system message")
        logger.info("System message %s in booking %s by %s", message.id, booking_id, actor.id)
        emit_to_booking(booking_id, "new_message", message_payload(message))
        return message

    async def flag_message(
        self, message_id: str, actor: User, is_flagged: bool, reason: Optional[str] = None
    ) -> Message:
        """Moderator override of a message's flag state."""
        require_admin(actor)
        reason = (reason or "").strip() or (MANUAL_FLAG_REASON if is_flagged else None)

        async def _flag() -> Message:
            if not await self.repo.set_flag(message_id, is_flagged, reason):
                raise NotFoundError("Message", message_id)
            return await self.repo.get(message_id)

        message = await run_atomic(self.db, _flag, label="message flag")
        logger.info("Message %s flag set to %s by %s", message_id, is_flagged, actor.id)
        emit_to_booking(
            message.booking_id,
            "message_flagged",
            {"messageId": message.id, "isFlagged": message.is_flagged, "flaggedReason": message.flagged_reason},
        )
        return message

    async def get_history(
        self, booking_id: str, user: User, page: int = 1, limit: Optional[int] = None
    ) -> Tuple[List[Message], int]:
        """Oldest-first history. Readable in any booking state."""
        booking = await self._get_booking(booking_id)
        require_access(booking, user)
        limit = limit or settings.chat_page_size
        items = await self.repo.list_for_booking(booking_id, limit=limit, offset=(page - 1) * limit)
        return items, await self.repo.count_for_booking(booking_id)

    async def list_conversations(self, user: User, limit: int = 50) -> List[Conversation]:
        bookings = await self.booking_repo.list_for_user(user.id, limit=limit)
        summaries = await self.repo.summaries([b.id for b in bookings])
        conversations = []
        for booking in bookings:
            count, last = summaries.get(booking.id, (0, None))
            conversations.append(
                Conversation(
                    booking_id=booking.id,
                    status=booking.status.value,
                    seeker_id=booking.seeker_id,
                    provider_id=booking.provider_id,
                    service_type=booking.service_type,
                    message_count=count,
                    last_message=last,
                )
            )
        return conversations

    async def list_flagged(self, actor: User, page: int = 1, limit: int = 50) -> Tuple[List[Message], int]:
        require_admin(actor)
        items = await self.repo.list_flagged(limit=limit, offset=(page - 1) * limit)
        return items, await self.repo.count_flagged()
