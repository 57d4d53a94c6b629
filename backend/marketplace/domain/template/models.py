"""Chat template domain models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from marketplace.domain.common.types import generate_id


class TemplateCategory(str, Enum):
    BOOKING_COORDINATION = "BOOKING_COORDINATION"
    SERVICE_DISCUSSION = "SERVICE_DISCUSSION"
    LOGISTICS = "LOGISTICS"
    SUPPORT = "SUPPORT"
    SYSTEM = "SYSTEM"  # staff only


STAFF_ONLY_CATEGORIES = frozenset({TemplateCategory.SYSTEM})


@dataclass
class ChatTemplate:
    id: str
    category: TemplateCategory
    template_text: str
    created_at: datetime
    updated_at: datetime
    variables: List[str] = field(default_factory=list)
    usage_count: int = 0
    description: Optional[str] = None
    is_active: bool = True
    created_by: Optional[str] = None

    @property
    def staff_only(self) -> bool:
        return self.category in STAFF_ONLY_CATEGORIES

    @classmethod
    def create(
        cls,
        category: TemplateCategory,
        template_text: str,
        variables: List[str],
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> "ChatTemplate":
        now = datetime.utcnow()
        return cls(
            id=generate_id(),
            category=category,
            template_text=template_text,
            variables=list(variables),
            description=description,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
