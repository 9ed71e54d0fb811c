"""Blocked-period store - ad-hoc exclusions over date ranges."""

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.intervals import Window, parse_time_of_day, windows_overlap
from slotbook.exceptions import NotFoundError, ValidationError
from slotbook.models.availability import BlockedPeriod
from slotbook.schemas.schedule import BlockedPeriodCreate

logger = logging.getLogger(__name__)


def period_window(period: BlockedPeriod) -> Optional[Window]:
    """Blocked time-of-day window, or None for an all-day period."""
    if period.all_day:
        return None
    return Window(start=period.start_time, end=period.end_time)


def period_applies(
    period: BlockedPeriod,
    day: date,
    location_id: str,
    member_id: Optional[str],
    window: Optional[Window] = None,
) -> bool:
    """Whether a period blocks a calendar on ``day``.
    
    With ``window`` given, a time-bounded period only applies when its
    window overlaps it. Without one, any period covering the day applies.
    """
    if not (period.start_date <= day <= period.end_date):
        return False
    if period.member_id is not None and period.member_id != member_id:
        return False
    if period.location_id is not None and period.location_id != location_id:
        return False
    if period.all_day or window is None:
        return True
    return windows_overlap(period_window(period), window)


def validate_period(data: BlockedPeriodCreate) -> BlockedPeriodCreate:
    """Check date order and the time fields of partial-day periods."""
    if data.end_date < data.start_date:
        raise ValidationError("End date must be on or after start date", field="end_date")
    
    if data.all_day:
        return data.model_copy(update={"start_time": None, "end_time": None})
    
    if not data.start_time or not data.end_time:
        raise ValidationError(
            "Start and end times are required when the period is not all day",
            field="start_time",
        )
    parse_time_of_day(data.start_time, "start_time")
    parse_time_of_day(data.end_time, "end_time")
    if data.start_time >= data.end_time:
        raise ValidationError("End time must be after start time", field="end_time")
    return data


class BlockedPeriodStore:
    """Create, list and delete blocked periods of a provider."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def create(self, provider_id: str, data: BlockedPeriodCreate) -> BlockedPeriod:
        """Block a period (vacation, absence, etc.)."""
        data = validate_period(data)
        period = BlockedPeriod(provider_id=provider_id, **data.model_dump())
        self.db.add(period)
        await self.db.commit()
        await self.db.refresh(period)
        
        logger.info(
            "Blocked period created provider=%s %s..%s all_day=%s member=%s location=%s",
            provider_id, period.start_date, period.end_date, period.all_day,
            period.member_id, period.location_id,
        )
        return period
    
    async def get(self, provider_id: str, period_id: UUID) -> Optional[BlockedPeriod]:
        result = await self.db.execute(
            select(BlockedPeriod).where(
                BlockedPeriod.id == period_id,
                BlockedPeriod.provider_id == provider_id,
            )
        )
        return result.scalar_one_or_none()
    
    async def replace(
        self,
        provider_id: str,
        period_id: UUID,
        data: BlockedPeriodCreate,
    ) -> BlockedPeriod:
        """Replace every attribute of an existing period."""
        data = validate_period(data)
        period = await self.get(provider_id, period_id)
        if not period:
            raise NotFoundError("Blocked period not found")
        
        for key, value in data.model_dump().items():
            setattr(period, key, value)
        await self.db.commit()
        await self.db.refresh(period)
        return period
    
    async def delete(self, provider_id: str, period_id: UUID) -> None:
        """Remove a blocked period."""
        period = await self.get(provider_id, period_id)
        if not period:
            raise NotFoundError("Blocked period not found")
        
        await self.db.delete(period)
        await self.db.commit()
        logger.info("Blocked period deleted provider=%s id=%s", provider_id, period_id)
    
    async def list_in_range(self, provider_id: str, start: date, end: date) -> List[BlockedPeriod]:
        """Periods whose date range intersects ``[start, end]``."""
        result = await self.db.execute(
            select(BlockedPeriod)
            .where(
                BlockedPeriod.provider_id == provider_id,
                BlockedPeriod.start_date <= end,
                BlockedPeriod.end_date >= start,
            )
            .order_by(BlockedPeriod.start_date)
        )
        return list(result.scalars())
    
    async def list_by_member(self, provider_id: str, member_id: str) -> List[BlockedPeriod]:
        """Periods that apply to one member, including provider-wide ones."""
        result = await self.db.execute(
            select(BlockedPeriod)
            .where(
                BlockedPeriod.provider_id == provider_id,
                or_(BlockedPeriod.member_id == member_id, BlockedPeriod.member_id.is_(None)),
            )
            .order_by(BlockedPeriod.start_date)
        )
        return list(result.scalars())
    
    async def list_upcoming(self, provider_id: str, today: Optional[date] = None) -> List[BlockedPeriod]:
        """Periods that have not ended yet."""
        today = today or date.today()
        result = await self.db.execute(
            select(BlockedPeriod)
            .where(
                BlockedPeriod.provider_id == provider_id,
                BlockedPeriod.end_date >= today,
            )
            .order_by(BlockedPeriod.end_date, BlockedPeriod.start_date)
        )
        return list(result.scalars())
    
    async def sweep_past(self, provider_id: str, today: Optional[date] = None) -> int:
        """Delete periods that ended before today. Returns the count removed."""
        today = today or date.today()
        result = await self.db.execute(
            delete(BlockedPeriod).where(
                BlockedPeriod.provider_id == provider_id,
                BlockedPeriod.end_date < today,
            )
        )
        await self.db.commit()
        
        count = result.rowcount or 0
        if count:
            logger.info("Swept %d past blocked periods for provider=%s", count, provider_id)
        return count
