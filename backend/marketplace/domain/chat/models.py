"""Chat domain models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from marketplace.domain.common.types import generate_id


@dataclass
class Message:
    """Chat message in a booking room. Content never changes after creation."""
    id: str
    booking_id: str
    sender_id: str
    content: str
    created_at: datetime
    media_url: Optional[str] = None
    is_system_message: bool = False
    is_flagged: bool = False
    flagged_reason: Optional[str] = None
    template_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        booking_id: str,
        sender_id: str,
        content: str,
        media_url: Optional[str] = None,
        is_system_message: bool = False,
        template_id: Optional[str] = None,
    ) -> "Message":
        return cls(
            id=generate_id(),
            booking_id=booking_id,
            sender_id=sender_id,
            content=content,
            media_url=media_url,
            is_system_message=is_system_message,
            template_id=template_id,
            created_at=datetime.utcnow(),
        )


@dataclass
class Conversation:
    """A booking seen from the chat list: last message and message count."""
    booking_id: str
    status: str
    seeker_id: str
    provider_id: str
    service_type: str
    message_count: int
    last_message: Optional[Message]
