"""Slot generator - expands the weekly template into free candidate slots."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from slotbook.config import Settings, get_settings
from slotbook.core.calendar import MemberSelector
from slotbook.core.intervals import (
    Window,
    at_time_of_day,
    day_of_week,
    from_minutes,
    iter_dates,
    ranges_overlap,
)
from slotbook.exceptions import NotFoundError, ValidationError
from slotbook.models.availability import AvailabilityRecord, BlockedPeriod
from slotbook.models.booking import Booking
from slotbook.services.blocked_period_store import period_applies
from slotbook.services.collaborators import CatalogGateway, DirectoryGateway, ProviderGateway
from slotbook.services.context import BookingContext, Clock, load_context, utc_now
from slotbook.services.stores import StoresFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateSlot:
    """A computed, not yet reserved, bookable window."""
    
    date: date
    start: str
    end: str
    starts_at: datetime
    ends_at: datetime
    
    @property
    def window(self) -> Window:
        return Window(start=self.start, end=self.end)


def expand_window(day: date, window: Window, slot_duration: int, step: int) -> List[CandidateSlot]:
    """Candidates of ``slot_duration`` minutes every ``step`` minutes inside a window."""
    candidates = []
    cursor = window.start_minutes
    end = window.end_minutes
    while cursor + slot_duration <= end:
        start_value = from_minutes(cursor)
        end_value = from_minutes(cursor + slot_duration)
        candidates.append(CandidateSlot(
            date=day,
            start=start_value,
            end=end_value,
            starts_at=at_time_of_day(day, start_value),
            ends_at=at_time_of_day(day, end_value),
        ))
        cursor += step
    return candidates


def is_blocked(
    day: date,
    window: Window,
    periods: Iterable[BlockedPeriod],
    location_id: str,
    member_id: Optional[str],
) -> bool:
    return any(period_applies(p, day, location_id, member_id, window) for p in periods)


def is_booked(start: datetime, end: datetime, bookings: Iterable[Booking]) -> bool:
    return any(ranges_overlap(start, end, b.starts_at, b.ends_at) for b in bookings)


def build_day_slots(
    day: date,
    record: Optional[AvailabilityRecord],
    periods: Sequence[BlockedPeriod],
    bookings: Sequence[Booking],
    ctx: BookingContext,
) -> List[CandidateSlot]:
    """Free candidates for one date, ascending by start."""
    if record is None or not record.is_open or not record.windows:
        return []
    
    member_id = ctx.member.member_id
    earliest = ctx.earliest_start
    
    free = []
    for window in record.window_list:
        generated = expand_window(day, window, ctx.slot_duration, ctx.step)
        kept = [
            slot for slot in generated
            if not is_blocked(day, slot.window, periods, ctx.location_id, member_id)
            and not is_booked(slot.starts_at, slot.ends_at, bookings)
            and slot.starts_at > earliest
        ]
        logger.debug(
            "Window %s-%s on %s: %d generated, %d filtered out",
            window.start, window.end, day, len(generated), len(generated) - len(kept),
        )
        free.extend(kept)
    
    return sorted(free, key=lambda s: s.starts_at)


class SlotGenerator:
    """Read-only composition of the template, blocked periods and bookings."""
    
    def __init__(
        self,
        stores: StoresFactory,
        catalog: CatalogGateway,
        providers: ProviderGateway,
        directory: DirectoryGateway,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.stores = stores
        self.catalog = catalog
        self.providers = providers
        self.directory = directory
        self.clock = clock
        self.settings = settings or get_settings()
    
    async def generate_slots(
        self,
        provider_id: str,
        service_id: str,
        location_id: str,
        member: MemberSelector,
        start_date: date,
        end_date: date,
    ) -> List[CandidateSlot]:
        """
        Free candidate slots for every date in ``[start_date, end_date]``.
        An unknown member yields no slots rather than an error.
        """
        if end_date < start_date:
            raise ValidationError("End date must be on or after start date", field="to")
        
        try:
            ctx = await self._context(provider_id, service_id, location_id, member)
        except NotFoundError as exc:
            if exc.field == "member_id":
                logger.info("Unknown member %s for provider %s, no slots", member, provider_id)
                return []
            raise
        
        first, last = self._scan_range(ctx, start_date, end_date)
        if first > last:
            return []
        
        return await self._collect(ctx, first, last)
    
    async def next_available_slot(
        self,
        provider_id: str,
        service_id: str,
        location_id: str,
        member: MemberSelector,
        from_date: Optional[date] = None,
    ) -> Optional[CandidateSlot]:
        """First free slot within the next-slot horizon, week by week."""
        try:
            ctx = await self._context(provider_id, service_id, location_id, member)
        except NotFoundError as exc:
            if exc.field == "member_id":
                return None
            raise
        
        start = max(from_date or ctx.now.date(), ctx.now.date())
        horizon_end = start + timedelta(days=self.settings.NEXT_SLOT_HORIZON_DAYS - 1)
        if ctx.latest_date is not None:
            horizon_end = min(horizon_end, ctx.latest_date.date())
        
        chunk_start = start
        while chunk_start <= horizon_end:
            chunk_end = min(chunk_start + timedelta(days=6), horizon_end)
            slots = await self._collect(ctx, chunk_start, chunk_end)
            if slots:
                return slots[0]
            chunk_start = chunk_end + timedelta(days=1)
        return None
    
    async def _context(
        self,
        provider_id: str,
        service_id: str,
        location_id: str,
        member: MemberSelector,
    ) -> BookingContext:
        return await load_context(
            self.catalog,
            self.providers,
            self.directory,
            self.clock,
            self.settings.SLOT_STEP_MINUTES,
            provider_id,
            service_id,
            location_id,
            member,
        )
    
    def _scan_range(self, ctx: BookingContext, start_date: date, end_date: date):
        """Clip the requested dates to today, the advance limit and the scan cap."""
        first = max(start_date, ctx.now.date())
        last = end_date
        if ctx.latest_date is not None:
            last = min(last, ctx.latest_date.date())
        
        cap = first + timedelta(days=self.settings.MAX_SCAN_DAYS - 1)
        if last > cap:
            logger.warning(
                "Slot scan for provider %s clipped from %s to %s (MAX_SCAN_DAYS=%d)",
                ctx.provider_id, last, cap, self.settings.MAX_SCAN_DAYS,
            )
            last = cap
        return first, last
    
    async def _collect(self, ctx: BookingContext, first: date, last: date) -> List[CandidateSlot]:
        async with self.stores() as stores:
            week = await stores.availability.get_week(
                ctx.provider_id, ctx.location_id, ctx.member
            )
            records: Dict[int, AvailabilityRecord] = {r.day_of_week: r for r in week}
            if not any(r.is_open and r.windows for r in records.values()):
                return []
            
            periods = await stores.blocked_periods.list_in_range(ctx.provider_id, first, last)
            bookings = await stores.bookings.list_occupying(
                ctx.provider_id,
                ctx.location_id,
                ctx.member,
                datetime.combine(first, time.min),
                datetime.combine(last + timedelta(days=1), time.min),
            )
        
        slots: List[CandidateSlot] = []
        for day in iter_dates(first, last):
            day_start = datetime.combine(day, time.min)
            day_end = day_start + timedelta(days=1)
            day_periods = [p for p in periods if p.start_date <= day <= p.end_date]
            day_bookings = [
                b for b in bookings if ranges_overlap(b.starts_at, b.ends_at, day_start, day_end)
            ]
            slots.extend(build_day_slots(
                day, records.get(day_of_week(day)), day_periods, day_bookings, ctx
            ))
        
        logger.debug(
            "Generated %d slots for provider=%s calendar=%s %s..%s",
            len(slots), ctx.provider_id, ctx.calendar_key, first, last,
        )
        return slots
