"""Narrow read interfaces onto the catalog, provider and directory records.

The scheduling engine only needs a handful of facts from these
subsystems, so each gateway returns a small frozen value instead of the
ORM row.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotbook.database import open_session
from slotbook.models.directory import Location, Member
from slotbook.models.provider import Provider
from slotbook.models.service import Service


@dataclass(frozen=True)
class ServiceInfo:
    id: str
    duration: int
    buffer_time: Optional[int]
    is_active: bool


@dataclass(frozen=True)
class ProviderSettings:
    default_buffer_time: int
    requires_confirmation: bool
    timezone: str
    slot_interval: Optional[int] = None
    min_booking_notice_minutes: int = 0
    max_booking_advance_days: Optional[int] = None


@dataclass(frozen=True)
class MemberInfo:
    id: str
    location_id: str
    is_active: bool


class CatalogGateway(Protocol):
    async def get_service(self, provider_id: str, service_id: str) -> Optional[ServiceInfo]:
        ...


class ProviderGateway(Protocol):
    async def get_settings(self, provider_id: str) -> Optional[ProviderSettings]:
        ...
    
    async def list_active_ids(self) -> List[str]:
        ...


class DirectoryGateway(Protocol):
    async def location_exists(self, provider_id: str, location_id: str) -> bool:
        ...
    
    async def get_member(self, provider_id: str, member_id: str) -> Optional[MemberInfo]:
        ...


class SqlCatalogGateway:
    """Catalog lookups against the services table."""
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
    
    async def get_service(self, provider_id: str, service_id: str) -> Optional[ServiceInfo]:
        async with open_session(self.session_factory) as db:
            result = await db.execute(
                select(Service).where(
                    Service.id == service_id,
                    Service.provider_id == provider_id,
                )
            )
            service = result.scalar_one_or_none()
        
        if not service:
            return None
        
        return ServiceInfo(
            id=service.id,
            duration=service.duration,
            buffer_time=service.buffer_time,
            is_active=bool(service.is_active),
        )


class SqlProviderGateway:
    """Provider settings lookups against the providers table."""
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
    
    async def get_settings(self, provider_id: str) -> Optional[ProviderSettings]:
        async with open_session(self.session_factory) as db:
            result = await db.execute(
                select(Provider).where(Provider.id == provider_id, Provider.is_active == True)
            )
            provider = result.scalar_one_or_none()
        
        if not provider:
            return None
        
        return ProviderSettings(
            default_buffer_time=provider.default_buffer_time or 0,
            requires_confirmation=bool(provider.requires_confirmation),
            timezone=provider.timezone or "UTC",
            slot_interval=provider.slot_interval,
            min_booking_notice_minutes=provider.min_booking_notice_minutes or 0,
            max_booking_advance_days=provider.max_booking_advance_days,
        )
    
    async def list_active_ids(self) -> List[str]:
        async with open_session(self.session_factory) as db:
            result = await db.execute(
                select(Provider.id).where(Provider.is_active == True)
            )
            return list(result.scalars())


class SqlDirectoryGateway:
    """Location and member lookups."""
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
    
    async def location_exists(self, provider_id: str, location_id: str) -> bool:
        async with open_session(self.session_factory) as db:
            result = await db.execute(
                select(Location.id).where(
                    Location.id == location_id,
                    Location.provider_id == provider_id,
                    Location.is_active == True,
                )
            )
            return result.scalar_one_or_none() is not None
    
    async def get_member(self, provider_id: str, member_id: str) -> Optional[MemberInfo]:
        async with open_session(self.session_factory) as db:
            result = await db.execute(
                select(Member).where(
                    Member.id == member_id,
                    Member.provider_id == provider_id,
                )
            )
            member = result.scalar_one_or_none()
        
        if not member:
            return None
        
        return MemberInfo(
            id=member.id,
            location_id=member.location_id,
            is_active=bool(member.is_active),
        )
