"""Dispute domain models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List

from marketplace.domain.common.types import generate_id


class DisputeType(str, Enum):
    NO_SHOW = "NO_SHOW"
    SERVICE_QUALITY = "SERVICE_QUALITY"
    PAYMENT_ISSUE = "PAYMENT_ISSUE"
    BEHAVIOR_ISSUE = "BEHAVIOR_ISSUE"
    TERMS_VIOLATION = "TERMS_VIOLATION"
    OTHER = "OTHER"


class DisputeStatus(str, Enum):
    OPEN = "OPEN"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"
    CLOSED = "CLOSED"


class DisputeOutcome(str, Enum):
    """Where the escrowed tokens go when a dispute is resolved."""
    RELEASE = "RELEASE"  # pay the provider
    REFUND = "REFUND"  # return to the seeker


# A booking may carry at most one dispute in these states
OPEN_DISPUTE_STATUSES = frozenset({DisputeStatus.OPEN, DisputeStatus.INVESTIGATING, DisputeStatus.ESCALATED})


@dataclass
class Dispute:
    """Dispute filed by one booking party against the other."""
    id: str
    booking_id: str
    reported_by: str
    reported_against: str
    dispute_type: DisputeType
    description: str
    status: DisputeStatus
    created_at: datetime
    updated_at: datetime
    evidence: List[str] = field(default_factory=list)
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None
    outcome: Optional[DisputeOutcome] = None
    appeal_reason: Optional[str] = None
    appealed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_DISPUTE_STATUSES

    @property
    def appealed(self) -> bool:
        return self.appealed_at is not None

    def involves(self, user_id: str) -> bool:
        return user_id in (self.reported_by, self.reported_against)

    @classmethod
    def create(
        cls,
        booking_id: str,
        reported_by: str,
        reported_against: str,
        dispute_type: DisputeType,
        description: str,
        evidence: Optional[List[str]] = None,
    ) -> "Dispute":
        """Create a new OPEN dispute."""
        now = datetime.utcnow()
        return cls(
            id=generate_id(),
            booking_id=booking_id,
            reported_by=reported_by,
            reported_against=reported_against,
            dispute_type=dispute_type,
            description=description,
            status=DisputeStatus.OPEN,
            created_at=now,
            updated_at=now,
            evidence=list(evidence or []),
        )
