"""Notification database model."""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Text

from marketplace.infra.db.base import Base


class NotificationModel(Base):
    """Inbox entry: booking and dispute updates, flagged-message alerts for monitors."""

    __tablename__ = "notifications"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = Column(String, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    type = Column(String, nullable=False)  # booking_request, booking_update, dispute_*, flagged_message
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_notifications_user_id_read", "user_id", "read"),
    )
