"""Session-scoped bundle of the three calendar stores."""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotbook.database import open_session
from slotbook.services.availability_store import AvailabilityStore
from slotbook.services.blocked_period_store import BlockedPeriodStore
from slotbook.services.booking_ledger import BookingLedger


class CalendarStores:
    """Availability, blocked periods and bookings sharing one session."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
        self.availability = AvailabilityStore(db)
        self.blocked_periods = BlockedPeriodStore(db)
        self.bookings = BookingLedger(db)


StoresFactory = Callable[[], AsyncContextManager[CalendarStores]]


def stores_factory(session_factory: async_sessionmaker[AsyncSession]) -> StoresFactory:
    """Build a factory that opens a fresh session per unit of work.
    
    Driver errors from any read or write inside the unit of work leave the
    block as ConflictError or TransientStoreError.
    """
    
    @asynccontextmanager
    async def open_stores() -> AsyncIterator[CalendarStores]:
        async with open_session(session_factory) as db:
            yield CalendarStores(db)
    
    return open_stores
