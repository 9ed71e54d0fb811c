"""Scheduling engine - wires the stores, generator, guard and detector together."""

from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotbook.config import Settings, get_settings
from slotbook.services.calendar_lock import CalendarLocks, LocalCalendarLocks
from slotbook.services.collaborators import (
    CatalogGateway,
    DirectoryGateway,
    ProviderGateway,
    SqlCatalogGateway,
    SqlDirectoryGateway,
    SqlProviderGateway,
)
from slotbook.services.conflict_detector import ConflictDetector
from slotbook.services.context import Clock, provider_now, utc_now
from slotbook.services.reservation_guard import ReservationGuard
from slotbook.services.slot_generator import SlotGenerator
from slotbook.services.stores import StoresFactory, stores_factory


class SchedulingEngine:
    """
    Entry point for every scheduling operation.
    
    Holds explicit references to its collaborators so tests can swap in
    fakes, a fixed clock or another lock backend.
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
        self.settings = settings or get_settings()
        self.stores = stores
        self.locks = locks
        self.clock = clock
        self.providers = providers
        
        self.slots = SlotGenerator(
            stores, catalog, providers, directory, clock=clock, settings=self.settings
        )
        self.guard = ReservationGuard(
            stores, locks, catalog, providers, directory, clock=clock, settings=self.settings
        )
        self.conflicts = ConflictDetector(stores, providers, clock=clock, settings=self.settings)
    
    @classmethod
    def from_session_factory(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        locks: Optional[CalendarLocks] = None,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ) -> "SchedulingEngine":
        """Build an engine backed by the SQL stores and gateways."""
        settings = settings or get_settings()
        return cls(
            stores=stores_factory(session_factory),
            locks=locks or LocalCalendarLocks(settings.LOCK_BLOCKING_TIMEOUT_SECONDS),
            catalog=SqlCatalogGateway(session_factory),
            providers=SqlProviderGateway(session_factory),
            directory=SqlDirectoryGateway(session_factory),
            clock=clock,
            settings=settings,
        )
    
    async def provider_today(self, provider_id: str) -> date:
        """Today's date in the provider's timezone."""
        provider = await self.providers.get_settings(provider_id)
        tz_name = provider.timezone if provider else self.settings.DEFAULT_TIMEZONE
        return provider_now(self.clock, tz_name).date()
