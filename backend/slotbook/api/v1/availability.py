"""Weekly availability template endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from slotbook.api.deps import get_current_provider, get_engine
from slotbook.core.calendar import MemberSelector
from slotbook.schemas.schedule import (
    AvailabilityConflictResponse,
    AvailabilityDayInput,
    AvailabilityResponse,
    AvailabilityWeekInput,
    ConflictCheckRequest,
)
from slotbook.services.engine import SchedulingEngine

router = APIRouter()


@router.get("", response_model=List[AvailabilityResponse])
async def get_week(
    location_id: str = Query(...),
    member_id: Optional[str] = Query(None),
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Get every configured day of one calendar, Sunday first."""
    async with engine.stores() as stores:
        return await stores.availability.get_week(
            provider_id, location_id, MemberSelector.from_optional(member_id)
        )


@router.put("/day", response_model=AvailabilityResponse)
async def set_day(
    data: AvailabilityDayInput,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Create or replace the template for one day of the week."""
    async with engine.stores() as stores:
        return await stores.availability.set_day(provider_id, data)


@router.put("/week", response_model=List[AvailabilityResponse])
async def set_week(
    data: AvailabilityWeekInput,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Replace all seven days at once; nothing is written if any day is invalid."""
    async with engine.stores() as stores:
        return await stores.availability.set_week(provider_id, data)


@router.post("/conflicts", response_model=List[AvailabilityConflictResponse])
async def check_conflicts(
    data: ConflictCheckRequest,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """
    List upcoming bookings a proposed day template would no longer cover.
    Call before ``PUT /day`` to warn the provider.
    """
    conflicts = await engine.conflicts.detect_conflicts(provider_id, data)
    return [
        AvailabilityConflictResponse(
            booking_id=c.booking_id,
            starts_at=c.starts_at,
            ends_at=c.ends_at,
            client_name=c.client_name,
            service_id=c.service_id,
            conflict_type=c.conflict_type,
        )
        for c in conflicts
    ]
