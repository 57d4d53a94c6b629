"""Inbox delivery shared by bookings, chat moderation and disputes.

Call after the business transaction has committed: the inbox row commits on
its own and the live push goes to every socket the recipient has open.
"""
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.infra.db.models.notification import NotificationModel
from marketplace.infra.db.repositories.notification_repo import NotificationRepository
from marketplace.infra.realtime.ws_manager import ws_manager

logger = logging.getLogger(__name__)


def notification_payload(notif: NotificationModel) -> dict[str, Any]:
    """Wire view of an inbox entry, shared by the REST inbox and the live push."""
    return {
        "id": notif.id,
        "type": notif.type,
        "title": notif.title,
        "message": notif.message,
        "bookingId": notif.booking_id,
        "read": notif.read,
        "createdAt": notif.created_at.isoformat(),
    }


async def deliver_notification(
    session: AsyncSession,
    user_id: str,
    type: str,
    title: str,
    message: str,
    *,
    booking_id: Optional[str] = None,
    extra_payload: Optional[dict[str, Any]] = None,
) -> NotificationModel:
    """
    Store an inbox entry for ``user_id`` and push it live.

    Args:
        session: DB session; the inbox row is committed on its own.
        user_id: Recipient.
        type: booking_request, booking_update, dispute_filed, flagged_message, ...
        booking_id: Booking the entry is about, if any.
        extra_payload: Merged into the live push only (status, message_id, dispute_id).
    """
    notif = await NotificationRepository(session).create(
        user_id=user_id, type=type, title=title, message=message, booking_id=booking_id
    )
    payload = notification_payload(notif)
    if extra_payload:
        payload.update(extra_payload)
    try:
        await ws_manager.send_to_user(user_id, {"type": "notification.new", "payload": payload})
    except Exception as e:
        logger.warning("Live notification push failed for user %s: %s", user_id, e)
    return notif
