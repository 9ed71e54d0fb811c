"""Reservation guard - the only write path that can occupy a calendar."""

import logging
import secrets
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from slotbook.config import Settings, get_settings
from slotbook.core.calendar import MemberSelector, calendar_key
from slotbook.core.intervals import day_of_week, window_of
from slotbook.exceptions import (
    ConflictError,
    InvalidTransition,
    NotFoundError,
    SlotUnavailable,
    TransientStoreError,
    ValidationError,
)
from slotbook.models.booking import Booking, BookingStatus, BookingStatusHistory, TERMINAL_STATUSES
from slotbook.schemas.booking import ReservationCreate
from slotbook.services.booking_ledger import TransitionMeta
from slotbook.services.calendar_lock import CalendarLocks
from slotbook.services.collaborators import CatalogGateway, DirectoryGateway, ProviderGateway
from slotbook.services.context import (
    BookingContext,
    Clock,
    load_context,
    provider_now,
    to_provider_time,
    utc_now,
)
from slotbook.services.slot_generator import is_blocked
from slotbook.services.stores import CalendarStores, StoresFactory

logger = logging.getLogger(__name__)

settings = get_settings()

retry_transient = retry(
    retry=retry_if_exception_type(TransientStoreError),
    stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.1, max=2),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def lock_key(provider_id: str, location_id: str, member: MemberSelector) -> str:
    return f"{provider_id}:{calendar_key(location_id, member)}"


async def check_slot(
    stores: CalendarStores,
    provider_id: str,
    location_id: str,
    member: MemberSelector,
    starts_at: datetime,
    ends_at: datetime,
    exclude_booking_id: Optional[UUID] = None,
) -> bool:
    """Open per template, not blocked, not occupied - for a single window."""
    window = window_of(starts_at, ends_at)
    if window is None:
        return False
    
    day = starts_at.date()
    record = await stores.availability.get(provider_id, location_id, member, day_of_week(day))
    if record is None or not record.is_open:
        return False
    if not any(open_window.contains(window) for open_window in record.window_list):
        return False
    
    periods = await stores.blocked_periods.list_in_range(provider_id, day, day)
    if is_blocked(day, window, periods, location_id, member.member_id):
        return False
    
    bookings = await stores.bookings.list_occupying(
        provider_id, location_id, member, starts_at, ends_at, exclude_booking_id
    )
    return not bookings


class ReservationGuard:
    """
    Reserves, reschedules and transitions bookings.
    
    Each check-then-write runs under the calendar lock, on a session opened
    after the lock is held so the check sees every committed booking.
    """
    
    def __init__(
        self,
        stores: StoresFactory,
        locks: CalendarLocks,
        catalog: CatalogGateway,
        providers: ProviderGateway,
        directory: DirectoryGateway,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.stores = stores
        self.locks = locks
        self.catalog = catalog
        self.providers = providers
        self.directory = directory
        self.clock = clock
        self.settings = settings or get_settings()
    
    # =========================================================================
    # Availability
    # =========================================================================
    
    async def is_slot_available(
        self,
        provider_id: str,
        location_id: str,
        member: MemberSelector,
        starts_at: datetime,
        duration: int,
        exclude_booking_id: Optional[UUID] = None,
    ) -> bool:
        """Whether ``[starts_at, starts_at + duration)`` can be booked right now."""
        ends_at = starts_at + timedelta(minutes=duration)
        async with self.stores() as stores:
            return await check_slot(
                stores, provider_id, location_id, member, starts_at, ends_at, exclude_booking_id
            )
    
    # =========================================================================
    # Reserve / reschedule
    # =========================================================================
    
    @retry_transient
    async def reserve(self, data: ReservationCreate) -> Booking:
        """
        Create a booking for the requested slot.
        Raises SlotUnavailable when the slot is closed, blocked or taken.
        """
        member = MemberSelector.from_optional(data.member_id)
        ctx = await self._context(data.provider_id, data.service_id, data.location_id, member)
        starts_at = to_provider_time(data.starts_at, ctx.settings.timezone)
        ends_at = starts_at + timedelta(minutes=ctx.slot_duration)
        
        if data.idempotency_key:
            existing = await self._replay(data.idempotency_key, ctx, starts_at)
            if existing is not None:
                logger.info("Idempotent replay of booking %s", existing.id)
                return existing
        
        self._check_start(ctx, starts_at)
        
        status = (
            BookingStatus.PENDING if ctx.settings.requires_confirmation else BookingStatus.CONFIRMED
        )
        booking = Booking(
            provider_id=ctx.provider_id,
            location_id=ctx.location_id,
            member_id=member.member_id,
            calendar_key=ctx.calendar_key,
            service_id=data.service_id,
            client_id=data.client_id,
            client_name=data.client_info.name,
            client_email=data.client_info.email,
            client_phone=data.client_info.phone,
            notes=data.notes,
            starts_at=starts_at,
            ends_at=ends_at,
            duration=ctx.slot_duration,
            status=status,
            cancel_token=secrets.token_urlsafe(self.settings.CANCEL_TOKEN_BYTES),
            idempotency_key=data.idempotency_key,
            confirmed_at=ctx.now if status == BookingStatus.CONFIRMED else None,
        )
        
        try:
            async with self.locks.hold(lock_key(ctx.provider_id, ctx.location_id, member)):
                async with self.stores() as stores:
                    if not await check_slot(
                        stores, ctx.provider_id, ctx.location_id, member, starts_at, ends_at
                    ):
                        logger.info(
                            "Slot unavailable provider=%s calendar=%s at %s",
                            ctx.provider_id, ctx.calendar_key, starts_at,
                        )
                        raise SlotUnavailable("The requested slot is no longer available")
                    return await stores.bookings.create(booking, changed_by="client")
        except InvalidTransition:
            raise
        except ConflictError as exc:
            # Same idempotency key committed by a concurrent attempt
            if data.idempotency_key:
                existing = await self._replay(data.idempotency_key, ctx, starts_at)
                if existing is not None:
                    return existing
            logger.info("Lost reservation race on %s at %s", ctx.calendar_key, starts_at)
            raise SlotUnavailable("The requested slot is no longer available") from exc
    
    @retry_transient
    async def reschedule(
        self,
        booking_id: UUID,
        starts_at: datetime,
        reason: Optional[str] = None,
        changed_by: str = "provider",
        provider_id: Optional[str] = None,
    ) -> Booking:
        """Move a booking in place; the booking never conflicts with itself."""
        booking = await self.get_booking(booking_id, provider_id)
        if booking.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Cannot reschedule a {BookingStatus(booking.status).value} booking"
            )
        
        member = MemberSelector.from_optional(booking.member_id)
        ctx = await self._context(
            booking.provider_id, booking.service_id, booking.location_id, member
        )
        starts_at = to_provider_time(starts_at, ctx.settings.timezone)
        ends_at = starts_at + timedelta(minutes=booking.duration)
        self._check_start(ctx, starts_at)
        
        meta = TransitionMeta(now=ctx.now, changed_by=changed_by, reason=reason)
        try:
            async with self.locks.hold(lock_key(booking.provider_id, booking.location_id, member)):
                async with self.stores() as stores:
                    if not await check_slot(
                        stores,
                        booking.provider_id,
                        booking.location_id,
                        member,
                        starts_at,
                        ends_at,
                        exclude_booking_id=booking.id,
                    ):
                        raise SlotUnavailable("The requested slot is no longer available")
                    return await stores.bookings.reschedule(booking.id, starts_at, ends_at, meta)
        except InvalidTransition:
            raise
        except ConflictError as exc:
            raise SlotUnavailable("The requested slot is no longer available") from exc
    
    # =========================================================================
    # Status transitions
    # =========================================================================
    
    async def confirm(
        self,
        booking_id: UUID,
        changed_by: str = "provider",
        provider_id: Optional[str] = None,
    ) -> Booking:
        return await self._transition(
            booking_id, BookingStatus.CONFIRMED, changed_by, provider_id=provider_id
        )
    
    async def cancel(
        self,
        booking_id: UUID,
        cancelled_by: str = "client",
        reason: Optional[str] = None,
        provider_id: Optional[str] = None,
    ) -> Booking:
        return await self._transition(
            booking_id, BookingStatus.CANCELLED, cancelled_by, reason, provider_id
        )
    
    async def mark_no_show(
        self,
        booking_id: UUID,
        changed_by: str = "provider",
        provider_id: Optional[str] = None,
    ) -> Booking:
        return await self._transition(
            booking_id, BookingStatus.NOSHOW, changed_by, provider_id=provider_id
        )
    
    async def cancel_by_token(self, token: str, reason: Optional[str] = None) -> Booking:
        """Anonymous cancellation; only upcoming occupying bookings qualify."""
        booking = await self.get_by_cancel_token(token)
        if booking.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Cannot cancel a {BookingStatus(booking.status).value} booking"
            )
        
        now = await self._provider_now(booking.provider_id)
        if booking.starts_at <= now:
            raise InvalidTransition("Cannot cancel a booking that has already started")
        
        return await self._transition(booking.id, BookingStatus.CANCELLED, "client", reason)
    
    @retry_transient
    async def _transition(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
        changed_by: str,
        reason: Optional[str] = None,
        provider_id: Optional[str] = None,
    ) -> Booking:
        booking = await self.get_booking(booking_id, provider_id)
        member = MemberSelector.from_optional(booking.member_id)
        now = await self._provider_now(booking.provider_id)
        
        async with self.locks.hold(lock_key(booking.provider_id, booking.location_id, member)):
            async with self.stores() as stores:
                meta = TransitionMeta(now=now, changed_by=changed_by, reason=reason)
                return await stores.bookings.transition(booking.id, new_status, meta)
    
    # =========================================================================
    # Queries
    # =========================================================================
    
    async def get_booking(self, booking_id: UUID, provider_id: Optional[str] = None) -> Booking:
        """Load a booking; with ``provider_id`` another provider's booking is not found."""
        async with self.stores() as stores:
            booking = await stores.bookings.get(booking_id)
        if not booking or (provider_id is not None and booking.provider_id != provider_id):
            raise NotFoundError("Booking not found", field="booking_id")
        return booking
    
    async def get_by_cancel_token(self, token: str) -> Booking:
        async with self.stores() as stores:
            booking = await stores.bookings.get_by_cancel_token(token)
        if not booking:
            raise NotFoundError("Booking not found", field="cancel_token")
        return booking
    
    async def list_bookings(
        self,
        provider_id: str,
        status: Optional[BookingStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        member_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Booking], int]:
        async with self.stores() as stores:
            return await stores.bookings.list_for_provider(
                provider_id, status, date_from, date_to, member_id, page, page_size
            )
    
    async def stats(self, provider_id: str) -> Dict[str, int]:
        async with self.stores() as stores:
            return await stores.bookings.stats(provider_id)
    
    async def history(
        self, booking_id: UUID, provider_id: Optional[str] = None
    ) -> List[BookingStatusHistory]:
        booking = await self.get_booking(booking_id, provider_id)
        async with self.stores() as stores:
            return await stores.bookings.history(booking.id)
    
    # =========================================================================
    # Helpers
    # =========================================================================
    
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
    
    async def _provider_now(self, provider_id: str) -> datetime:
        provider = await self.providers.get_settings(provider_id)
        tz_name = provider.timezone if provider else self.settings.DEFAULT_TIMEZONE
        return provider_now(self.clock, tz_name)
    
    async def _replay(
        self, key: str, ctx: BookingContext, starts_at: datetime
    ) -> Optional[Booking]:
        """The booking an earlier attempt created with ``key``, if any.
        
        A key already used for another provider, calendar or start time is
        rejected rather than replayed.
        """
        async with self.stores() as stores:
            existing = await stores.bookings.get_by_idempotency_key(key)
        if existing is None:
            return None
        if (existing.provider_id, existing.calendar_key, existing.starts_at) != (
            ctx.provider_id, ctx.calendar_key, starts_at
        ):
            raise ValidationError(
                "Idempotency key was already used for a different reservation",
                field="idempotency_key",
            )
        return existing
    
    @staticmethod
    def _check_start(ctx: BookingContext, starts_at: datetime) -> None:
        if starts_at <= ctx.now:
            raise ValidationError("Bookings must start in the future", field="starts_at")
        if starts_at <= ctx.earliest_start:
            raise SlotUnavailable(
                f"Bookings require {ctx.settings.min_booking_notice_minutes} minutes notice"
            )
        if ctx.latest_date is not None and starts_at.date() > ctx.latest_date.date():
            raise SlotUnavailable(
                f"Bookings can be made at most {ctx.settings.max_booking_advance_days} days ahead"
            )
