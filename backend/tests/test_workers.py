"""Tests for the blocked period sweep worker."""

from datetime import date

from slotbook.schemas.schedule import BlockedPeriodCreate
from slotbook.workers.sweep_blocked_periods import sweep_blocked_periods

from conftest import PROVIDER_ID


async def test_sweep_removes_only_finished_periods(engine):
    async with engine.stores() as stores:
        await stores.blocked_periods.create(
            PROVIDER_ID, BlockedPeriodCreate(start_date=date(2029, 12, 20), end_date=date(2029, 12, 24))
        )
        await stores.blocked_periods.create(
            PROVIDER_ID, BlockedPeriodCreate(start_date=date(2030, 1, 6), end_date=date(2030, 1, 10))
        )
    
    assert await sweep_blocked_periods(engine) == 1
    
    async with engine.stores() as stores:
        remaining = await stores.blocked_periods.list_in_range(PROVIDER_ID, date.min, date.max)
    assert [p.start_date for p in remaining] == [date(2030, 1, 6)]
