"""Blocked period endpoints (vacations, absences, closures)."""

from datetime import date
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from slotbook.api.deps import get_current_provider, get_engine
from slotbook.exceptions import NotFoundError
from slotbook.schemas.schedule import BlockedPeriodCreate, BlockedPeriodResponse, SweepResponse
from slotbook.services.engine import SchedulingEngine

router = APIRouter()


@router.post("", response_model=BlockedPeriodResponse, status_code=status.HTTP_201_CREATED)
async def create_blocked_period(
    data: BlockedPeriodCreate,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Block a date range, whole days or a time window on each day."""
    async with engine.stores() as stores:
        return await stores.blocked_periods.create(provider_id, data)


@router.get("", response_model=List[BlockedPeriodResponse])
async def list_blocked_periods(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    member_id: Optional[str] = Query(None),
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """
    List blocked periods.
    With ``member_id``, returns that member's periods plus provider-wide ones.
    """
    async with engine.stores() as stores:
        if member_id:
            periods = await stores.blocked_periods.list_by_member(provider_id, member_id)
        else:
            start = date_from or date.min
            end = date_to or date.max
            periods = await stores.blocked_periods.list_in_range(provider_id, start, end)
    
    if member_id and (date_from or date_to):
        periods = [
            p for p in periods
            if (date_to is None or p.start_date <= date_to)
            and (date_from is None or p.end_date >= date_from)
        ]
    return periods


@router.get("/upcoming", response_model=List[BlockedPeriodResponse])
async def list_upcoming(
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Blocked periods that have not ended yet."""
    today = await engine.provider_today(provider_id)
    async with engine.stores() as stores:
        return await stores.blocked_periods.list_upcoming(provider_id, today)


@router.post("/sweep", response_model=SweepResponse)
async def sweep_past(
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    """Delete blocked periods that ended before today."""
    today = await engine.provider_today(provider_id)
    async with engine.stores() as stores:
        deleted = await stores.blocked_periods.sweep_past(provider_id, today)
    return SweepResponse(deleted=deleted)


@router.get("/{period_id}", response_model=BlockedPeriodResponse)
async def get_blocked_period(
    period_id: UUID,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    async with engine.stores() as stores:
        period = await stores.blocked_periods.get(provider_id, period_id)
    if not period:
        raise NotFoundError("Blocked period not found")
    return period


@router.put("/{period_id}", response_model=BlockedPeriodResponse)
async def replace_blocked_period(
    period_id: UUID,
    data: BlockedPeriodCreate,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    async with engine.stores() as stores:
        return await stores.blocked_periods.replace(provider_id, period_id, data)


@router.delete("/{period_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked_period(
    period_id: UUID,
    provider_id: str = Depends(get_current_provider),
    engine: SchedulingEngine = Depends(get_engine),
):
    async with engine.stores() as stores:
        await stores.blocked_periods.delete(provider_id, period_id)
