"""Shared fixtures: a throwaway SQLite database, seeded directory data, fixed clock."""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./slotbook-test.db"
os.environ["LOCK_BACKEND"] = "local"

from datetime import date, datetime, timezone
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import slotbook.models  # noqa: F401
from slotbook.config import get_settings
from slotbook.database import Base
from slotbook.models import Location, Member, Provider, Service
from slotbook.schemas.schedule import AvailabilityDayInput, WindowSchema
from slotbook.services.calendar_lock import LocalCalendarLocks
from slotbook.services.engine import SchedulingEngine

# Sunday 2030-01-06, noon; providers in the fixtures use UTC
FIXED_NOW = datetime(2030, 1, 6, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)

PROVIDER_ID = "prov-1"
LOCATION_ID = "loc-1"
OTHER_LOCATION_ID = "loc-2"
MEMBER_ID = "mem-1"
OTHER_MEMBER_ID = "mem-2"
SERVICE_30 = "svc-30"
SERVICE_60 = "svc-60"


class FakeClock:
    """Clock returning a settable instant."""
    
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now
    
    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'slotbook.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    yield factory
    await engine.dispose()


@pytest.fixture
async def seeded(session_factory):
    """Provider with two locations, two members and a small catalog."""
    async with session_factory() as db:
        db.add(Provider(
            id=PROVIDER_ID,
            name="Studio Lumen",
            timezone="UTC",
            default_buffer_time=0,
            requires_confirmation=False,
            is_active=True,
        ))
        db.add_all([
            Location(id=LOCATION_ID, provider_id=PROVIDER_ID, name="Centre", is_active=True),
            Location(id=OTHER_LOCATION_ID, provider_id=PROVIDER_ID, name="Annexe", is_active=True),
        ])
        db.add_all([
            Member(id=MEMBER_ID, provider_id=PROVIDER_ID, location_id=LOCATION_ID,
                   name="Alice", is_active=True),
            Member(id=OTHER_MEMBER_ID, provider_id=PROVIDER_ID, location_id=OTHER_LOCATION_ID,
                   name="Bruno", is_active=True),
            Member(id="mem-gone", provider_id=PROVIDER_ID, location_id=LOCATION_ID,
                   name="Chloe", is_active=False),
        ])
        db.add_all([
            Service(id=SERVICE_30, provider_id=PROVIDER_ID, name="Cut", duration=30, is_active=True),
            Service(id=SERVICE_60, provider_id=PROVIDER_ID, name="Colour", duration=60,
                    buffer_time=0, is_active=True),
            Service(id="svc-old", provider_id=PROVIDER_ID, name="Perm", duration=90, is_active=False),
        ])
        await db.commit()
    return session_factory


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(seeded, clock) -> SchedulingEngine:
    return SchedulingEngine.from_session_factory(
        seeded,
        locks=LocalCalendarLocks(blocking_timeout=5),
        clock=clock,
        settings=get_settings(),
    )


async def set_day(
    engine: SchedulingEngine,
    day_of_week: int,
    windows: List[tuple],
    member_id: Optional[str] = MEMBER_ID,
    location_id: str = LOCATION_ID,
    is_open: bool = True,
):
    async with engine.stores() as stores:
        return await stores.availability.set_day(
            PROVIDER_ID,
            AvailabilityDayInput(
                location_id=location_id,
                member_id=member_id,
                day_of_week=day_of_week,
                is_open=is_open,
                windows=[WindowSchema(start=s, end=e) for s, e in windows],
            ),
        )
