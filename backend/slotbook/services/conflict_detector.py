"""Conflict detection for proposed availability changes."""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from slotbook.config import Settings, get_settings
from slotbook.core.calendar import MemberSelector
from slotbook.core.intervals import day_of_week, window_of
from slotbook.exceptions import NotFoundError
from slotbook.schemas.schedule import ConflictCheckRequest
from slotbook.services.availability_store import normalize_windows
from slotbook.services.collaborators import ProviderGateway
from slotbook.services.context import Clock, provider_now, utc_now
from slotbook.services.stores import StoresFactory

logger = logging.getLogger(__name__)

DAY_CLOSED = "day_closed"
REDUCED_HOURS = "reduced_hours"


@dataclass(frozen=True)
class AvailabilityConflict:
    booking_id: UUID
    starts_at: datetime
    ends_at: datetime
    client_name: Optional[str]
    service_id: str
    conflict_type: str


class ConflictDetector:
    """Finds upcoming bookings a new weekday template would no longer cover."""
    
    def __init__(
        self,
        stores: StoresFactory,
        providers: ProviderGateway,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.stores = stores
        self.providers = providers
        self.clock = clock
        self.settings = settings or get_settings()
    
    async def detect_conflicts(
        self,
        provider_id: str,
        data: ConflictCheckRequest,
    ) -> List[AvailabilityConflict]:
        provider = await self.providers.get_settings(provider_id)
        if provider is None:
            raise NotFoundError("Provider not found or inactive", field="provider_id")
        
        windows = normalize_windows(data.windows) if data.is_open else []
        member = MemberSelector.from_optional(data.member_id)
        
        now = provider_now(self.clock, provider.timezone)
        start = now
        if data.effective_from is not None:
            start = max(now, datetime.combine(data.effective_from, time.min))
        end = start + timedelta(days=self.settings.CONFLICT_LOOKAHEAD_DAYS)
        
        async with self.stores() as stores:
            bookings = await stores.bookings.list_occupying(
                provider_id, data.location_id, member, start, end
            )
        
        conflicts = []
        for booking in bookings:
            if day_of_week(booking.starts_at.date()) != data.day_of_week:
                continue
            
            if not windows:
                conflict_type = DAY_CLOSED
            else:
                booked = window_of(booking.starts_at, booking.ends_at)
                if booked is not None and any(w.contains(booked) for w in windows):
                    continue
                conflict_type = REDUCED_HOURS
            
            conflicts.append(AvailabilityConflict(
                booking_id=booking.id,
                starts_at=booking.starts_at,
                ends_at=booking.ends_at,
                client_name=booking.client_name,
                service_id=booking.service_id,
                conflict_type=conflict_type,
            ))
        
        if conflicts:
            logger.info(
                "Template change on day %d for provider %s strands %d booking(s)",
                data.day_of_week, provider_id, len(conflicts),
            )
        return conflicts
