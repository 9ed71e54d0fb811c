"""Tests for availability change conflict detection."""

from datetime import date, datetime

from slotbook.schemas.booking import ClientInfo, ReservationCreate
from slotbook.schemas.schedule import ConflictCheckRequest, WindowSchema

from conftest import LOCATION_ID, MEMBER_ID, PROVIDER_ID, SERVICE_30, set_day


async def _book(engine, starts_at: datetime):
    return await engine.guard.reserve(ReservationCreate(
        provider_id=PROVIDER_ID,
        service_id=SERVICE_30,
        location_id=LOCATION_ID,
        member_id=MEMBER_ID,
        starts_at=starts_at,
        client_info=ClientInfo(name="Jane Doe", email="jane@example.com"),
    ))


def _check(windows, is_open=True, effective_from=None) -> ConflictCheckRequest:
    return ConflictCheckRequest(
        location_id=LOCATION_ID,
        member_id=MEMBER_ID,
        day_of_week=1,
        is_open=is_open,
        windows=[WindowSchema(start=s, end=e) for s, e in windows],
        effective_from=effective_from,
    )


async def test_closing_the_day_strands_every_booking(engine):
    await set_day(engine, 1, [("09:00", "12:00")])
    first = await _book(engine, datetime(2030, 1, 7, 9, 0))
    second = await _book(engine, datetime(2030, 1, 14, 11, 0))
    
    conflicts = await engine.conflicts.detect_conflicts(PROVIDER_ID, _check([], is_open=False))
    
    assert [c.booking_id for c in conflicts] == [first.id, second.id]
    assert {c.conflict_type for c in conflicts} == {"day_closed"}


async def test_reduced_hours(engine):
    await set_day(engine, 1, [("09:00", "12:00")])
    kept = await _book(engine, datetime(2030, 1, 7, 9, 0))
    stranded = await _book(engine, datetime(2030, 1, 7, 11, 0))
    
    conflicts = await engine.conflicts.detect_conflicts(PROVIDER_ID, _check([("09:00", "10:00")]))
    
    assert [c.booking_id for c in conflicts] == [stranded.id]
    assert conflicts[0].conflict_type == "reduced_hours"
    assert kept.id not in {c.booking_id for c in conflicts}


async def test_other_weekdays_and_cancelled_bookings_are_ignored(engine):
    await set_day(engine, 1, [("09:00", "12:00")])
    await set_day(engine, 2, [("09:00", "12:00")])
    await _book(engine, datetime(2030, 1, 8, 9, 0))
    cancelled = await _book(engine, datetime(2030, 1, 7, 9, 0))
    await engine.guard.cancel(cancelled.id, "client")
    
    conflicts = await engine.conflicts.detect_conflicts(PROVIDER_ID, _check([], is_open=False))
    assert conflicts == []


async def test_effective_from_skips_earlier_bookings(engine):
    await set_day(engine, 1, [("09:00", "12:00")])
    await _book(engine, datetime(2030, 1, 7, 9, 0))
    later = await _book(engine, datetime(2030, 1, 14, 9, 0))
    
    conflicts = await engine.conflicts.detect_conflicts(
        PROVIDER_ID, _check([], is_open=False, effective_from=date(2030, 1, 10))
    )
    assert [c.booking_id for c in conflicts] == [later.id]
