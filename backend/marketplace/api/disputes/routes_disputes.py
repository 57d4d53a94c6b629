"""Dispute routes. Filing lives on the booking (POST /bookings/{id}/dispute)."""
from datetime import datetime
from typing import Optional, List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import build_dispute_service, get_current_admin, get_current_user, get_db
from marketplace.api.schemas import CamelModel, Pagination
from marketplace.domain.admin.models import User
from marketplace.domain.dispute.models import Dispute

router = APIRouter()


class DisputeResponse(CamelModel):
    id: str
    booking_id: str
    reported_by: str
    reported_against: str
    dispute_type: str
    description: str
    evidence: List[str]
    status: str
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None
    outcome: Optional[str] = None
    appeal_reason: Optional[str] = None
    appealed_at: Optional[datetime] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, dispute: Dispute) -> "DisputeResponse":
        return cls(
            id=dispute.id,
            booking_id=dispute.booking_id,
            reported_by=dispute.reported_by,
            reported_against=dispute.reported_against,
            dispute_type=dispute.dispute_type.value,
            description=dispute.description,
            evidence=dispute.evidence,
            status=dispute.status.value,
            assigned_to=dispute.assigned_to,
            resolution=dispute.resolution,
            outcome=dispute.outcome.value if dispute.outcome else None,
            appeal_reason=dispute.appeal_reason,
            appealed_at=dispute.appealed_at,
            created_at=dispute.created_at,
            resolved_at=dispute.resolved_at,
        )


class AssignRequest(CamelModel):
    assigned_to: Optional[str] = None


class ResolveRequest(CamelModel):
    outcome: Optional[str] = None
    resolution: Optional[str] = None


class AppealRequest(CamelModel):
    reason: Optional[str] = None


@router.get("")
async def list_disputes(
    status: Optional[str] = None,
    type: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """All disputes (staff only), newest first."""
    items, total = await build_dispute_service(db).list_all(
        current_user, status=status, dispute_type=type, limit=limit, offset=(page - 1) * limit
    )
    return {
        "success": True,
        "disputes": [DisputeResponse.from_entity(d) for d in items],
        "pagination": Pagination.of(page, limit, total),
    }


@router.get("/my")
async def my_disputes(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Disputes the caller filed or was reported in."""
    items, total = await build_dispute_service(db).list_mine(
        current_user, status=status, limit=limit, offset=(page - 1) * limit
    )
    return {
        "success": True,
        "disputes": [DisputeResponse.from_entity(d) for d in items],
        "pagination": Pagination.of(page, limit, total),
    }


@router.get("/stats")
async def dispute_stats(
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "stats": await build_dispute_service(db).stats(current_user)}


@router.get("/{dispute_id}")
async def get_dispute(
    dispute_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dispute = await build_dispute_service(db).get_dispute(dispute_id, current_user)
    return {"success": True, "dispute": DisputeResponse.from_entity(dispute)}


@router.put("/{dispute_id}/assign")
async def assign_dispute(
    dispute_id: str,
    request: Optional[AssignRequest] = None,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Start investigating; assigns the caller unless another staff member is named."""
    assignee = request.assigned_to if request else None
    dispute = await build_dispute_service(db).assign(dispute_id, current_user, assignee)
    return {"success": True, "dispute": DisputeResponse.from_entity(dispute)}


@router.put("/{dispute_id}/resolve")
async def resolve_dispute(
    dispute_id: str,
    request: ResolveRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Settle the escrow: RELEASE pays the provider, REFUND returns tokens to the seeker."""
    dispute, booking = await build_dispute_service(db).resolve(
        dispute_id, current_user, request.outcome, request.resolution
    )
    return {
        "success": True,
        "dispute": DisputeResponse.from_entity(dispute),
        "bookingStatus": booking.status.value,
    }


@router.post("/{dispute_id}/appeal")
async def appeal_dispute(
    dispute_id: str,
    request: AppealRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    dispute = await build_dispute_service(db).appeal(dispute_id, current_user, request.reason)
    return {"success": True, "dispute": DisputeResponse.from_entity(dispute)}


@router.put("/{dispute_id}/close")
async def close_dispute(
    dispute_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    dispute = await build_dispute_service(db).close(dispute_id, current_user)
    return {"success": True, "dispute": DisputeResponse.from_entity(dispute)}
