"""Booking routes: create with escrow hold, lifecycle transitions, dispute filing."""
from datetime import datetime
from typing import Optional, List
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import build_booking_service, build_dispute_service, get_current_user, get_db
from marketplace.api.disputes.routes_disputes import DisputeResponse
from marketplace.api.schemas import CamelModel
from marketplace.domain.admin.models import User
from marketplace.domain.booking.models import Booking
from marketplace.domain.booking.services import parse_status

router = APIRouter()


class BookingResponse(CamelModel):
    id: str
    seeker_id: str
    provider_id: str
    service_type: str
    status: str
    token_amount: int
    scheduled_at: datetime
    duration: int
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            seeker_id=booking.seeker_id,
            provider_id=booking.provider_id,
            service_type=booking.service_type,
            status=booking.status.value,
            token_amount=booking.token_amount,
            scheduled_at=booking.scheduled_at,
            duration=booking.duration,
            notes=booking.notes,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            completed_at=booking.completed_at,
            cancelled_at=booking.cancelled_at,
        )


class CreateBookingRequest(CamelModel):
    provider_id: str
    service_type: str
    scheduled_at: datetime
    duration: int
    token_amount: int
    notes: Optional[str] = Field(default=None, max_length=1000)


class UpdateStatusRequest(CamelModel):
    status: str


class FileDisputeRequest(CamelModel):
    """``reason`` and ``disputeType`` are interchangeable names for the dispute type."""
    reason: Optional[str] = None
    dispute_type: Optional[str] = None
    description: Optional[str] = None
    evidence: Optional[List[str]] = None


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: CreateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Request a booking; the token amount moves from balance to escrow."""
    booking = await build_booking_service(db).create_booking(
        seeker=current_user,
        provider_id=request.provider_id,
        service_type=request.service_type,
        scheduled_at=request.scheduled_at,
        duration=request.duration,
        token_amount=request.token_amount,
        notes=request.notes,
    )
    return {"success": True, "booking": BookingResponse.from_entity(booking)}


@router.get("")
async def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    role: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's bookings, newest first."""
    bookings = await build_booking_service(db).list_bookings(
        current_user,
        status=parse_status(status_filter) if status_filter else None,
        as_role=role,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return {"success": True, "bookings": [BookingResponse.from_entity(b) for b in bookings]}


@router.get("/{booking_id}")
async def get_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await build_booking_service(db).get_booking(booking_id, current_user)
    return {"success": True, "booking": BookingResponse.from_entity(booking)}


@router.put("/{booking_id}/status")
async def update_booking_status(
    booking_id: str,
    request: UpdateStatusRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Move the booking along its lifecycle. Completion releases escrow; cancellation refunds it."""
    booking = await build_booking_service(db).update_status(booking_id, request.status, current_user)
    return {"success": True, "booking": BookingResponse.from_entity(booking)}


@router.post("/{booking_id}/dispute")
async def file_dispute(
    booking_id: str,
    request: FileDisputeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """File a dispute. The booking becomes DISPUTED and its escrow is frozen until resolution."""
    dispute, booking = await build_dispute_service(db).file_dispute(
        booking_id,
        current_user,
        dispute_type=request.dispute_type or request.reason,
        description=request.description,
        evidence=request.evidence,
    )
    return {
        "success": True,
        "dispute": DisputeResponse.from_entity(dispute),
        "booking": BookingResponse.from_entity(booking),
    }
