"""Dispute database model."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB

from marketplace.infra.db.base import Base
from marketplace.domain.dispute.models import Dispute, DisputeType, DisputeStatus, DisputeOutcome

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
EvidenceType = JSON().with_variant(JSONB(), "postgresql")


class DisputeModel(Base):
    """Dispute on a booking. Funds stay in escrow until an admin resolves it."""

    __tablename__ = "disputes"

    id = Column(String, primary_key=True)
    booking_id = Column(String, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    reported_by = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reported_against = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    dispute_type = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    evidence = Column(EvidenceType, nullable=False, default=list)  # list of URLs
    status = Column(String, nullable=False, default=DisputeStatus.OPEN.value)
    assigned_to = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolution = Column(Text, nullable=True)
    outcome = Column(String, nullable=True)  # RELEASE | REFUND
    appeal_reason = Column(Text, nullable=True)
    appealed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_disputes_booking_id", "booking_id"),
        Index("ix_disputes_status", "status"),
        Index("ix_disputes_reported_by", "reported_by"),
        Index("ix_disputes_reported_against", "reported_against"),
    )

    def to_entity(self) -> Dispute:
        """Convert to domain entity."""
        return Dispute(
            id=self.id,
            booking_id=self.booking_id,
            reported_by=self.reported_by,
            reported_against=self.reported_against,
            dispute_type=DisputeType(self.dispute_type),
            description=self.description,
            evidence=list(self.evidence or []),
            status=DisputeStatus(self.status),
            assigned_to=self.assigned_to,
            resolution=self.resolution,
            outcome=DisputeOutcome(self.outcome) if self.outcome else None,
            appeal_reason=self.appeal_reason,
            appealed_at=self.appealed_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
            resolved_at=self.resolved_at,
        )

    @classmethod
    def from_entity(cls, entity: Dispute) -> "DisputeModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            booking_id=entity.booking_id,
            reported_by=entity.reported_by,
            reported_against=entity.reported_against,
            dispute_type=entity.dispute_type.value,
            description=entity.description,
            evidence=list(entity.evidence),
            status=entity.status.value,
            assigned_to=entity.assigned_to,
            resolution=entity.resolution,
            outcome=entity.outcome.value if entity.outcome else None,
            appeal_reason=entity.appeal_reason,
            appealed_at=entity.appealed_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            resolved_at=entity.resolved_at,
        )
