"""Tests for the weekly template store."""

import pytest

from slotbook.core.calendar import MemberSelector
from slotbook.exceptions import ValidationError
from slotbook.schemas.schedule import AvailabilityWeekInput, WeekDayInput, WindowSchema

from conftest import LOCATION_ID, MEMBER_ID, PROVIDER_ID, set_day


async def test_set_day_upserts_by_calendar_and_weekday(engine):
    first = await set_day(engine, 1, [("09:00", "12:00")])
    second = await set_day(engine, 1, [("14:00", "18:00"), ("09:00", "12:00")])
    
    assert first.id == second.id
    assert second.windows == [
        {"start": "09:00", "end": "12:00"},
        {"start": "14:00", "end": "18:00"},
    ]
    
    async with engine.stores() as stores:
        week = await stores.availability.get_week(
            PROVIDER_ID, LOCATION_ID, MemberSelector.specific(MEMBER_ID)
        )
    assert len(week) == 1


async def test_member_and_location_default_are_separate_calendars(engine):
    await set_day(engine, 1, [("09:00", "12:00")], member_id=MEMBER_ID)
    await set_day(engine, 1, [("13:00", "17:00")], member_id=None)
    
    async with engine.stores() as stores:
        member_record = await stores.availability.get(
            PROVIDER_ID, LOCATION_ID, MemberSelector.specific(MEMBER_ID), 1
        )
        default_record = await stores.availability.get(
            PROVIDER_ID, LOCATION_ID, MemberSelector.location_default(), 1
        )
    
    assert member_record.windows[0]["start"] == "09:00"
    assert default_record.windows[0]["start"] == "13:00"
    assert default_record.member_id is None


async def test_set_day_rejects_overlapping_windows(engine):
    with pytest.raises(ValidationError):
        await set_day(engine, 2, [("09:00", "12:00"), ("11:00", "13:00")])
    
    async with engine.stores() as stores:
        record = await stores.availability.get(
            PROVIDER_ID, LOCATION_ID, MemberSelector.specific(MEMBER_ID), 2
        )
    assert record is None


async def test_set_day_rejects_inverted_window(engine):
    with pytest.raises(ValidationError):
        await set_day(engine, 2, [("12:00", "09:00")])


def _week(broken_day=None):
    days = []
    for day in range(7):
        windows = [WindowSchema(start="09:00", end="17:00")]
        if day == broken_day:
            windows = [WindowSchema(start="17:00", end="09:00")]
        days.append(WeekDayInput(day_of_week=day, is_open=day not in (0, 6), windows=windows))
    return AvailabilityWeekInput(location_id=LOCATION_ID, member_id=MEMBER_ID, days=days)


async def test_set_week_writes_all_seven_days(engine):
    async with engine.stores() as stores:
        records = await stores.availability.set_week(PROVIDER_ID, _week())
    
    assert [r.day_of_week for r in records] == list(range(7))
    assert [r.is_open for r in records] == [False, True, True, True, True, True, False]


async def test_set_week_is_all_or_nothing(engine):
    await set_day(engine, 1, [("08:00", "10:00")])
    
    with pytest.raises(ValidationError):
        async with engine.stores() as stores:
            await stores.availability.set_week(PROVIDER_ID, _week(broken_day=4))
    
    async with engine.stores() as stores:
        week = await stores.availability.get_week(
            PROVIDER_ID, LOCATION_ID, MemberSelector.specific(MEMBER_ID)
        )
    assert len(week) == 1
    assert week[0].windows == [{"start": "08:00", "end": "10:00"}]


async def test_set_week_requires_each_day_once(engine):
    week = _week()
    week.days[6] = WeekDayInput(day_of_week=5, windows=[])
    
    with pytest.raises(ValidationError):
        async with engine.stores() as stores:
            await stores.availability.set_week(PROVIDER_ID, week)
