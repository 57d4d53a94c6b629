"""Chat message and template database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB

from marketplace.infra.db.base import Base
from marketplace.domain.chat.models import Message
from marketplace.domain.template.models import ChatTemplate, TemplateCategory

VariablesType = JSON().with_variant(JSONB(), "postgresql")


class MessageModel(Base):
    """Booking chat message. Only the flag columns are ever updated."""

    __tablename__ = "messages"

    id = Column(String, primary_key=True)
    booking_id = Column(String, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    media_url = Column(String, nullable=True)
    is_system_message = Column(Boolean, default=False, nullable=False)
    is_flagged = Column(Boolean, default=False, nullable=False)
    flagged_reason = Column(String, nullable=True)
    template_id = Column(String, ForeignKey("chat_templates.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_messages_booking_id_created_at", "booking_id", "created_at"),
        Index("ix_messages_is_flagged", "is_flagged"),
    )

    def to_entity(self) -> Message:
        """Convert to domain entity."""
        return Message(
            id=self.id,
            booking_id=self.booking_id,
            sender_id=self.sender_id,
            content=self.content,
            media_url=self.media_url,
            is_system_message=self.is_system_message,
            is_flagged=self.is_flagged,
            flagged_reason=self.flagged_reason,
            template_id=self.template_id,
            created_at=self.created_at,
        )

    @classmethod
    def from_entity(cls, entity: Message) -> "MessageModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            booking_id=entity.booking_id,
            sender_id=entity.sender_id,
            content=entity.content,
            media_url=entity.media_url,
            is_system_message=entity.is_system_message,
            is_flagged=entity.is_flagged,
            flagged_reason=entity.flagged_reason,
            template_id=entity.template_id,
            created_at=entity.created_at,
        )


class ChatTemplateModel(Base):
    """Pre-approved message with {{variable}} placeholders."""

    __tablename__ = "chat_templates"

    id = Column(String, primary_key=True)
    category = Column(String, nullable=False, index=True)
    template_text = Column(Text, nullable=False)
    description = Column(String, nullable=True)
    variables = Column(VariablesType, nullable=False, default=list)
    usage_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_entity(self) -> ChatTemplate:
        """Convert to domain entity."""
        return ChatTemplate(
            id=self.id,
            category=TemplateCategory(self.category),
            template_text=self.template_text,
            description=self.description,
            variables=list(self.variables or []),
            usage_count=self.usage_count,
            is_active=self.is_active,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: ChatTemplate) -> "ChatTemplateModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            category=entity.category.value,
            template_text=entity.template_text,
            description=entity.description,
            variables=list(entity.variables),
            usage_count=entity.usage_count,
            is_active=entity.is_active,
            created_by=entity.created_by,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
