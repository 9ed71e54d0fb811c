"""Availability store - the recurring weekly template."""

import logging
from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.calendar import MemberSelector, calendar_key
from slotbook.core.intervals import Window, validate_windows
from slotbook.exceptions import ConflictError, ValidationError
from slotbook.models.availability import AvailabilityRecord
from slotbook.schemas.schedule import AvailabilityDayInput, AvailabilityWeekInput, WindowSchema

logger = logging.getLogger(__name__)


def normalize_windows(windows: Sequence[WindowSchema]) -> List[Window]:
    """Validate each window and reject overlapping pairs."""
    return validate_windows([Window(start=w.start, end=w.end) for w in windows])


class AvailabilityStore:
    """Reads and upserts availability records keyed by calendar and weekday."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get(
        self,
        provider_id: str,
        location_id: str,
        member: MemberSelector,
        day_of_week: int,
    ) -> Optional[AvailabilityRecord]:
        """Get the record for one calendar and day of week."""
        result = await self.db.execute(
            select(AvailabilityRecord).where(
                AvailabilityRecord.provider_id == provider_id,
                AvailabilityRecord.calendar_key == calendar_key(location_id, member),
                AvailabilityRecord.day_of_week == day_of_week,
            )
        )
        return result.scalar_one_or_none()
    
    async def get_week(
        self,
        provider_id: str,
        location_id: str,
        member: MemberSelector,
    ) -> List[AvailabilityRecord]:
        """Get every configured day of one calendar, Sunday first."""
        result = await self.db.execute(
            select(AvailabilityRecord)
            .where(
                AvailabilityRecord.provider_id == provider_id,
                AvailabilityRecord.calendar_key == calendar_key(location_id, member),
            )
            .order_by(AvailabilityRecord.day_of_week)
        )
        return list(result.scalars())
    
    async def set_day(self, provider_id: str, data: AvailabilityDayInput) -> AvailabilityRecord:
        """Create or replace the template for one day."""
        windows = normalize_windows(data.windows)
        member = MemberSelector.from_optional(data.member_id)
        
        record = await self._upsert(
            provider_id, data.location_id, member, data.day_of_week, data.is_open, windows
        )
        await self._commit()
        await self.db.refresh(record)
        
        logger.info(
            "Availability set provider=%s calendar=%s day=%s open=%s windows=%d",
            provider_id, record.calendar_key, record.day_of_week, record.is_open, len(windows),
        )
        return record
    
    async def set_week(self, provider_id: str, data: AvailabilityWeekInput) -> List[AvailabilityRecord]:
        """Replace all seven days of a calendar, all or nothing."""
        days = sorted(data.days, key=lambda d: d.day_of_week)
        if [d.day_of_week for d in days] != list(range(7)):
            raise ValidationError(
                "A weekly schedule must contain each day of the week exactly once",
                field="days",
            )
        
        # Validate everything before the first write
        normalized = [(day, normalize_windows(day.windows)) for day in days]
        member = MemberSelector.from_optional(data.member_id)
        
        records = []
        for day, windows in normalized:
            record = await self._upsert(
                provider_id, data.location_id, member, day.day_of_week, day.is_open, windows
            )
            records.append(record)
        await self._commit()
        
        for record in records:
            await self.db.refresh(record)
        
        logger.info(
            "Weekly availability set provider=%s calendar=%s",
            provider_id, calendar_key(data.location_id, member),
        )
        return records
    
    async def _upsert(
        self,
        provider_id: str,
        location_id: str,
        member: MemberSelector,
        day_of_week: int,
        is_open: bool,
        windows: List[Window],
    ) -> AvailabilityRecord:
        record = await self.get(provider_id, location_id, member, day_of_week)
        if record is None:
            record = AvailabilityRecord(
                provider_id=provider_id,
                location_id=location_id,
                member_id=member.member_id,
                calendar_key=calendar_key(location_id, member),
                day_of_week=day_of_week,
            )
            self.db.add(record)
        
        record.is_open = is_open
        record.windows = [w.to_dict() for w in windows]
        await self.db.flush()
        return record
    
    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Availability was changed concurrently, retry") from exc
