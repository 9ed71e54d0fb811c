"""Per-request booking context: provider rules, service length, local clock."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slotbook.core.calendar import MemberSelector, calendar_key
from slotbook.exceptions import NotFoundError, ValidationError
from slotbook.services.collaborators import (
    CatalogGateway,
    DirectoryGateway,
    ProviderGateway,
    ProviderSettings,
    ServiceInfo,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def provider_tz(tz_name: str) -> ZoneInfo:
    """The provider's timezone, or UTC when the stored name is unknown."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def provider_now(clock: Clock, tz_name: str) -> datetime:
    """Current wall-clock time in the provider's timezone, without tzinfo."""
    tz = provider_tz(tz_name)
    now = clock()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz).replace(tzinfo=None)


def to_provider_time(value: datetime, tz_name: str) -> datetime:
    """Normalize an incoming datetime to naive provider wall-clock, minute-aligned."""
    if value.tzinfo is not None:
        value = value.astimezone(provider_tz(tz_name)).replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


@dataclass(frozen=True)
class BookingContext:
    """Everything needed to place one service on one calendar."""
    
    provider_id: str
    location_id: str
    member: MemberSelector
    settings: ProviderSettings
    service: ServiceInfo
    slot_duration: int
    step: int
    now: datetime
    
    @property
    def calendar_key(self) -> str:
        return calendar_key(self.location_id, self.member)
    
    @property
    def earliest_start(self) -> datetime:
        """Candidates must start strictly after this instant."""
        return self.now + timedelta(minutes=self.settings.min_booking_notice_minutes)
    
    @property
    def latest_date(self) -> Optional[datetime]:
        if self.settings.max_booking_advance_days is None:
            return None
        return self.now + timedelta(days=self.settings.max_booking_advance_days)


async def load_context(
    catalog: CatalogGateway,
    providers: ProviderGateway,
    directory: DirectoryGateway,
    clock: Clock,
    default_step: int,
    provider_id: str,
    service_id: str,
    location_id: str,
    member: MemberSelector,
) -> BookingContext:
    """Resolve collaborators for a request, raising NotFoundError on any gap.
    
    An unknown member is reported with ``field="member_id"`` so read paths
    can treat it as an empty calendar.
    """
    settings = await providers.get_settings(provider_id)
    if settings is None:
        raise NotFoundError("Provider not found or inactive", field="provider_id")
    
    service = await catalog.get_service(provider_id, service_id)
    if service is None or not service.is_active:
        raise NotFoundError("Service not found or inactive", field="service_id")
    
    if not await directory.location_exists(provider_id, location_id):
        raise NotFoundError("Location not found or inactive", field="location_id")
    
    if not member.is_location_default:
        info = await directory.get_member(provider_id, member.member_id)
        if info is None or not info.is_active:
            raise NotFoundError("Member not found or inactive", field="member_id")
        if info.location_id != location_id:
            raise ValidationError("Member does not work at this location", field="member_id")
    
    buffer_time = service.buffer_time
    if buffer_time is None:
        buffer_time = settings.default_buffer_time
    
    return BookingContext(
        provider_id=provider_id,
        location_id=location_id,
        member=member,
        settings=settings,
        service=service,
        slot_duration=service.duration + buffer_time,
        step=settings.slot_interval or default_step,
        now=provider_now(clock, settings.timezone),
    )
