"""Public slot search endpoints."""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query

from slotbook.api.deps import get_engine
from slotbook.core.calendar import MemberSelector
from slotbook.schemas.schedule import CandidateSlotResponse, NextSlotResponse, SlotsResponse
from slotbook.services.engine import SchedulingEngine
from slotbook.services.slot_generator import CandidateSlot

router = APIRouter()


def _slot_response(slot: CandidateSlot) -> CandidateSlotResponse:
    return CandidateSlotResponse(
        date=slot.date,
        start=slot.start,
        end=slot.end,
        starts_at=slot.starts_at,
        ends_at=slot.ends_at,
    )


@router.get("", response_model=SlotsResponse)
async def list_slots(
    provider_id: str = Query(..., description="Provider"),
    service_id: str = Query(..., description="Service to place"),
    location_id: str = Query(..., description="Location"),
    member_id: Optional[str] = Query(None, description="Member; omit for the location default"),
    date_from: date = Query(..., alias="from", description="First date"),
    date_to: date = Query(..., alias="to", description="Last date, inclusive"),
    engine: SchedulingEngine = Depends(get_engine),
):
    """
    Get free slots for a service on one calendar.
    Does not require authentication.
    """
    slots = await engine.slots.generate_slots(
        provider_id=provider_id,
        service_id=service_id,
        location_id=location_id,
        member=MemberSelector.from_optional(member_id),
        start_date=date_from,
        end_date=date_to,
    )
    return SlotsResponse(slots=[_slot_response(s) for s in slots])


@router.get("/next", response_model=NextSlotResponse)
async def next_slot(
    provider_id: str = Query(...),
    service_id: str = Query(...),
    location_id: str = Query(...),
    member_id: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Get the first free slot, searching forward from today or ``from``."""
    slot = await engine.slots.next_available_slot(
        provider_id=provider_id,
        service_id=service_id,
        location_id=location_id,
        member=MemberSelector.from_optional(member_id),
        from_date=date_from,
    )
    return NextSlotResponse(slot=_slot_response(slot) if slot else None)
