"""Reservation endpoints - booking, rescheduling and status changes.

Clients reserve anonymously and act on their booking only through its
cancellation token. Every route addressing a booking by id belongs to the
provider and requires the ``X-Provider-ID`` header.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from slotbook.api.deps import get_current_provider, get_engine
from slotbook.models.booking import BookingStatus
from slotbook.schemas.booking import (
    BookingHistoryResponse,
    BookingListResponse,
    BookingResponse,
    BookingStatsResponse,
    CancelRequest,
    RescheduleRequest,
    ReservationCreate,
    ReservationCreatedResponse,
)
from slotbook.services.engine import SchedulingEngine

router = APIRouter()


# =============================================================================
# Client booking flow
# =============================================================================

@router.post("", response_model=ReservationCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    data: ReservationCreate,
    engine: SchedulingEngine = Depends(get_engine),
):
    """
    Reserve a slot.
    Returns 409 with ``retryable`` set when the slot was taken meanwhile.
    """
    return await engine.guard.reserve(data)


@router.get("/by-token/{cancel_token}", response_model=BookingResponse)
async def get_by_token(
    cancel_token: str,
    engine: SchedulingEngine = Depends(get_engine),
):
    """Look up a booking from its anonymous cancellation link."""
    return await engine.guard.get_by_cancel_token(cancel_token)


@router.post("/by-token/{cancel_token}/cancel", response_model=BookingResponse)
async def cancel_by_token(
    cancel_token: str,
    data: Optional[CancelRequest] = None,
    engine: SchedulingEngine = Depends(get_engine),
):
    """Cancel through the anonymous cancellation link."""
    reason = data.reason if data else None
    return await engine.guard.cancel_by_token(cancel_token, reason)


# =============================================================================
# Provider queries
# =============================================================================

@router.get("", response_model=BookingListResponse)
async def list_reservations(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    member_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """List bookings of the current provider."""
    bookings, total = await engine.guard.list_bookings(
        provider_id,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        member_id=member_id,
        page=page,
        page_size=page_size,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
    )


@router.get("/stats", response_model=BookingStatsResponse)
async def reservation_stats(
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Booking counts per status."""
    counts = await engine.guard.stats(provider_id)
    return BookingStatsResponse(total=sum(counts.values()), by_status=counts)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_reservation(
    booking_id: UUID,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    return await engine.guard.get_booking(booking_id, provider_id)


@router.get("/{booking_id}/history", response_model=List[BookingHistoryResponse])
async def get_reservation_history(
    booking_id: UUID,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Status changes of a booking, oldest first."""
    return await engine.guard.history(booking_id, provider_id)


# =============================================================================
# Provider changes
# =============================================================================

@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_reservation(
    booking_id: UUID,
    data: RescheduleRequest,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Move a booking to another start time; the status is unchanged."""
    return await engine.guard.reschedule(
        booking_id, data.starts_at, reason=data.reason, provider_id=provider_id
    )


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_reservation(
    booking_id: UUID,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Confirm a pending booking."""
    return await engine.guard.confirm(booking_id, provider_id=provider_id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_reservation(
    booking_id: UUID,
    data: Optional[CancelRequest] = None,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Cancel a booking on behalf of the provider."""
    reason = data.reason if data else None
    return await engine.guard.cancel(booking_id, "provider", reason, provider_id=provider_id)


@router.post("/{booking_id}/noshow", response_model=BookingResponse)
async def mark_no_show(
    booking_id: UUID,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Mark a past confirmed booking as no-show."""
    return await engine.guard.mark_no_show(booking_id, provider_id=provider_id)
