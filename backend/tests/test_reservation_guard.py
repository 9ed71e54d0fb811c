"""Tests for reservations, rescheduling and status changes."""

import asyncio
from datetime import datetime, timedelta, timezone
from itertools import combinations

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from slotbook.core.calendar import MemberSelector
from slotbook.core.intervals import ranges_overlap
from slotbook.config import get_settings
from slotbook.exceptions import (
    InvalidTransition,
    NotFoundError,
    SlotUnavailable,
    TransientStoreError,
    ValidationError,
)
from slotbook.models import Provider
from slotbook.models.booking import BookingStatus
from slotbook.schemas.booking import ClientInfo, ReservationCreate
from slotbook.schemas.schedule import BlockedPeriodCreate
from slotbook.services import reservation_guard
from slotbook.services.booking_ledger import BookingLedger

from conftest import (
    LOCATION_ID,
    MEMBER_ID,
    MONDAY,
    OTHER_MEMBER_ID,
    PROVIDER_ID,
    SERVICE_30,
    SERVICE_60,
    set_day,
)

MEMBER = MemberSelector.specific(MEMBER_ID)


def _request(starts_at: datetime, **kwargs) -> ReservationCreate:
    values = dict(
        provider_id=PROVIDER_ID,
        service_id=SERVICE_30,
        location_id=LOCATION_ID,
        member_id=MEMBER_ID,
        starts_at=starts_at,
        client_info=ClientInfo(name="Jane Doe", email="jane@example.com", phone="+33612345678"),
    )
    values.update(kwargs)
    return ReservationCreate(**values)


@pytest.fixture
async def monday(engine):
    await set_day(engine, 1, [("09:00", "12:00")])
    return engine


# =============================================================================
# reserve
# =============================================================================

async def test_reserve_confirms_by_default(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.ends_at == datetime(2030, 1, 7, 9, 30)
    assert booking.duration == 30
    assert booking.calendar_key == f"{LOCATION_ID}_{MEMBER_ID}"
    assert booking.client_email == "jane@example.com"
    assert booking.client_phone == "+33612345678"
    assert booking.confirmed_at is not None
    assert len(booking.cancel_token) >= 24


async def test_reserve_pending_when_provider_confirms_manually(monday, seeded):
    async with seeded() as db:
        await db.execute(
            update(Provider).where(Provider.id == PROVIDER_ID).values(requires_confirmation=True)
        )
        await db.commit()
    
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    assert booking.status == BookingStatus.PENDING
    assert booking.confirmed_at is None


async def test_cancel_tokens_are_unique(monday):
    first = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    second = await monday.guard.reserve(_request(datetime(2030, 1, 7, 10, 0)))
    assert first.cancel_token != second.cancel_token


async def test_reserve_overlapping_slot_is_unavailable(monday):
    await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0), service_id=SERVICE_60))
    
    with pytest.raises(SlotUnavailable):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 30)))


async def test_reserve_outside_template_is_unavailable(monday):
    with pytest.raises(SlotUnavailable):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 11, 45)))
    with pytest.raises(SlotUnavailable):
        await monday.guard.reserve(_request(datetime(2030, 1, 8, 9, 0)))


async def test_reserve_blocked_period_is_unavailable(monday):
    async with monday.stores() as stores:
        await stores.blocked_periods.create(
            PROVIDER_ID,
            BlockedPeriodCreate(
                start_date=MONDAY, end_date=MONDAY, all_day=False,
                start_time="09:00", end_time="09:15",
            ),
        )
    
    with pytest.raises(SlotUnavailable):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 15)))
    assert booking.status == BookingStatus.CONFIRMED


async def test_reserve_in_the_past_is_rejected(monday):
    with pytest.raises(ValidationError):
        await monday.guard.reserve(_request(datetime(2030, 1, 5, 9, 0)))


async def test_reserve_unknown_member_is_not_found(monday):
    with pytest.raises(NotFoundError):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0), member_id="nobody"))


async def test_reserve_inactive_member_is_not_found(monday):
    with pytest.raises(NotFoundError):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0), member_id="mem-gone"))


async def test_reserve_member_from_other_location_is_invalid(monday):
    with pytest.raises(ValidationError):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0), member_id=OTHER_MEMBER_ID))


async def test_reserve_converts_aware_datetimes_to_provider_time(monday):
    aware = datetime(2030, 1, 7, 10, 0, tzinfo=timezone(timedelta(hours=1)))
    booking = await monday.guard.reserve(_request(aware))
    assert booking.starts_at == datetime(2030, 1, 7, 9, 0)


async def test_reserve_is_idempotent_with_key(monday):
    first = await monday.guard.reserve(
        _request(datetime(2030, 1, 7, 9, 0), idempotency_key="attempt-1")
    )
    again = await monday.guard.reserve(
        _request(datetime(2030, 1, 7, 9, 0), idempotency_key="attempt-1")
    )
    
    assert again.id == first.id
    bookings, total = await monday.guard.list_bookings(PROVIDER_ID)
    assert total == 1


async def test_reused_idempotency_key_with_other_slot_is_rejected(monday):
    first = await monday.guard.reserve(
        _request(datetime(2030, 1, 7, 9, 0), idempotency_key="attempt-1")
    )
    
    with pytest.raises(ValidationError) as exc_info:
        await monday.guard.reserve(
            _request(datetime(2030, 1, 7, 10, 0), idempotency_key="attempt-1")
        )
    assert exc_info.value.field == "idempotency_key"
    
    with pytest.raises(ValidationError):
        await monday.guard.reserve(
            _request(datetime(2030, 1, 7, 9, 0), member_id=None, idempotency_key="attempt-1")
        )
    
    bookings, total = await monday.guard.list_bookings(PROVIDER_ID)
    assert total == 1
    assert bookings[0].id == first.id


async def test_concurrent_reserves_for_the_same_slot(monday):
    results = await asyncio.gather(
        monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0))),
        monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0))),
        return_exceptions=True,
    )
    
    booked = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(booked) == 1
    assert booked[0].status in (BookingStatus.CONFIRMED, BookingStatus.PENDING)
    assert len(failed) == 1
    assert isinstance(failed[0], SlotUnavailable)


async def test_unique_index_hit_is_reported_as_unavailable(monday, monkeypatch):
    async def always_free(*args, **kwargs):
        return True
    
    monkeypatch.setattr(reservation_guard, "check_slot", always_free)
    await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    with pytest.raises(SlotUnavailable):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    bookings, total = await monday.guard.list_bookings(PROVIDER_ID)
    assert total == 1


async def test_concurrent_overlapping_reserves_never_double_book(monday):
    starts = [datetime(2030, 1, 7, 9, 0) + timedelta(minutes=15 * i) for i in range(8)]
    await asyncio.gather(
        *(monday.guard.reserve(_request(s, service_id=SERVICE_60)) for s in starts),
        return_exceptions=True,
    )
    
    async with monday.stores() as stores:
        bookings = await stores.bookings.list_occupying(
            PROVIDER_ID, LOCATION_ID, MEMBER, datetime(2030, 1, 7), datetime(2030, 1, 8)
        )
    assert bookings
    for a, b in combinations(bookings, 2):
        assert not ranges_overlap(a.starts_at, a.ends_at, b.starts_at, b.ends_at)


async def test_location_default_and_member_calendars_are_independent(monday):
    await set_day(monday, 1, [("09:00", "12:00")], member_id=None)
    
    await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0), member_id=None))
    
    assert booking.member_id is None
    assert booking.calendar_key == f"{LOCATION_ID}__default"


# =============================================================================
# is_slot_available
# =============================================================================

async def test_is_slot_available_excludes_the_given_booking(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    start = datetime(2030, 1, 7, 9, 0)
    
    assert not await monday.guard.is_slot_available(PROVIDER_ID, LOCATION_ID, MEMBER, start, 30)
    assert await monday.guard.is_slot_available(
        PROVIDER_ID, LOCATION_ID, MEMBER, start, 30, exclude_booking_id=booking.id
    )


async def test_is_slot_available_rejects_ranges_past_midnight(monday):
    await set_day(monday, 1, [("23:00", "24:00")])
    start = datetime(2030, 1, 7, 23, 30)
    
    assert await monday.guard.is_slot_available(PROVIDER_ID, LOCATION_ID, MEMBER, start, 30)
    assert not await monday.guard.is_slot_available(PROVIDER_ID, LOCATION_ID, MEMBER, start, 60)


# =============================================================================
# reschedule
# =============================================================================

async def test_reschedule_overlapping_only_itself(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0), service_id=SERVICE_60))
    
    moved = await monday.guard.reschedule(booking.id, datetime(2030, 1, 7, 9, 30))
    
    assert moved.id == booking.id
    assert moved.starts_at == datetime(2030, 1, 7, 9, 30)
    assert moved.ends_at == datetime(2030, 1, 7, 10, 30)
    assert moved.status == BookingStatus.CONFIRMED
    assert moved.rescheduled_at is not None


async def test_reschedule_onto_another_booking_fails(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    await monday.guard.reserve(_request(datetime(2030, 1, 7, 10, 0)))
    
    with pytest.raises(SlotUnavailable):
        await monday.guard.reschedule(booking.id, datetime(2030, 1, 7, 10, 15))
    
    unchanged = await monday.guard.get_booking(booking.id)
    assert unchanged.starts_at == datetime(2030, 1, 7, 9, 0)


async def test_reschedule_cancelled_booking_is_invalid(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    await monday.guard.cancel(booking.id, "client")
    
    with pytest.raises(InvalidTransition):
        await monday.guard.reschedule(booking.id, datetime(2030, 1, 7, 10, 0))


async def test_reschedule_into_the_past_is_rejected(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    with pytest.raises(ValidationError):
        await monday.guard.reschedule(booking.id, datetime(2030, 1, 6, 9, 0))


async def test_reschedule_records_history(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    await monday.guard.reschedule(booking.id, datetime(2030, 1, 7, 11, 0), reason="Client asked")
    
    history = await monday.guard.history(booking.id)
    assert [h.to_status for h in history] == ["confirmed", "confirmed"]
    assert history[-1].reason == "Client asked"


# =============================================================================
# transitions
# =============================================================================

async def test_cancel_twice_keeps_first_cancellation(monday, clock):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    cancelled = await monday.guard.cancel(booking.id, "client", "Sick")
    
    clock.now = clock.now + timedelta(hours=2)
    with pytest.raises(InvalidTransition):
        await monday.guard.cancel(booking.id, "provider")
    
    reloaded = await monday.guard.get_booking(booking.id)
    assert reloaded.cancelled_at == cancelled.cancelled_at
    assert reloaded.cancelled_by == "client"
    assert reloaded.cancel_reason == "Sick"


async def test_confirm_pending(monday, seeded):
    async with seeded() as db:
        await db.execute(
            update(Provider).where(Provider.id == PROVIDER_ID).values(requires_confirmation=True)
        )
        await db.commit()
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    confirmed = await monday.guard.confirm(booking.id)
    assert confirmed.status == BookingStatus.CONFIRMED
    
    with pytest.raises(InvalidTransition):
        await monday.guard.confirm(booking.id)


async def test_mark_no_show_after_start(monday, clock):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    with pytest.raises(InvalidTransition):
        await monday.guard.mark_no_show(booking.id)
    
    clock.now = datetime(2030, 1, 7, 9, 20, tzinfo=timezone.utc)
    marked = await monday.guard.mark_no_show(booking.id)
    assert marked.status == BookingStatus.NOSHOW
    assert marked.no_show_at == datetime(2030, 1, 7, 9, 20)


async def test_unknown_booking(monday):
    import uuid
    
    with pytest.raises(NotFoundError):
        await monday.guard.cancel(uuid.uuid4(), "client")


# =============================================================================
# cancel by token
# =============================================================================

async def test_cancel_by_token(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    found = await monday.guard.get_by_cancel_token(booking.cancel_token)
    assert found.id == booking.id
    
    cancelled = await monday.guard.cancel_by_token(booking.cancel_token, "Plans changed")
    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancelled_by == "client"
    
    with pytest.raises(InvalidTransition):
        await monday.guard.cancel_by_token(booking.cancel_token)


async def test_cancel_by_token_after_start_is_rejected(monday, clock):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    clock.now = datetime(2030, 1, 7, 9, 5, tzinfo=timezone.utc)
    
    with pytest.raises(InvalidTransition):
        await monday.guard.cancel_by_token(booking.cancel_token)


async def test_cancel_by_unknown_token(monday):
    with pytest.raises(NotFoundError):
        await monday.guard.cancel_by_token("not-a-token")


def test_client_phone_is_normalized():
    info = ClientInfo(name="Jane Doe", email="jane@example.com", phone="06 12 34 56 78")
    assert info.phone == "+33612345678"


def test_client_phone_must_be_valid():
    with pytest.raises(ValueError):
        ClientInfo(name="Jane Doe", email="jane@example.com", phone="12")


# =============================================================================
# provider scoping
# =============================================================================

async def test_provider_scoped_actions_hide_other_providers_bookings(monday):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    with pytest.raises(NotFoundError):
        await monday.guard.get_booking(booking.id, provider_id="prov-other")
    with pytest.raises(NotFoundError):
        await monday.guard.cancel(booking.id, "provider", provider_id="prov-other")
    with pytest.raises(NotFoundError):
        await monday.guard.reschedule(
            booking.id, datetime(2030, 1, 7, 10, 0), provider_id="prov-other"
        )
    
    unchanged = await monday.guard.get_booking(booking.id, provider_id=PROVIDER_ID)
    assert unchanged.status == BookingStatus.CONFIRMED
    assert unchanged.starts_at == datetime(2030, 1, 7, 9, 0)


# =============================================================================
# store failures
# =============================================================================

def _store_down(*args, **kwargs):
    raise OperationalError("SELECT bookings", {}, Exception("database is locked"))


async def test_read_failure_during_reserve_is_retried_then_transient(monday, monkeypatch):
    calls = []
    
    async def failing_list_occupying(self, *args, **kwargs):
        calls.append(args)
        _store_down()
    
    monkeypatch.setattr(BookingLedger, "list_occupying", failing_list_occupying)
    
    with pytest.raises(TransientStoreError):
        await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    assert len(calls) == get_settings().STORE_RETRY_ATTEMPTS


async def test_read_failure_on_lookup_is_transient(monday, monkeypatch):
    booking = await monday.guard.reserve(_request(datetime(2030, 1, 7, 9, 0)))
    
    async def failing_get(self, booking_id):
        _store_down()
    
    monkeypatch.setattr(BookingLedger, "get", failing_get)
    
    with pytest.raises(TransientStoreError):
        await monday.guard.get_booking(booking.id)


# =============================================================================
# provider timezone
# =============================================================================

async def test_unknown_provider_timezone_falls_back_to_utc(monday, seeded):
    async with seeded() as db:
        await db.execute(
            update(Provider).where(Provider.id == PROVIDER_ID).values(timezone="Mars/Olympus")
        )
        await db.commit()
    
    aware = datetime(2030, 1, 7, 10, 0, tzinfo=timezone(timedelta(hours=1)))
    booking = await monday.guard.reserve(_request(aware))
    assert booking.starts_at == datetime(2030, 1, 7, 9, 0)
