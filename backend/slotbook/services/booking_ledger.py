"""Booking ledger - the authoritative record of occupied windows."""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.calendar import MemberSelector, calendar_key
from slotbook.exceptions import ConflictError, InvalidTransition, NotFoundError, TransientStoreError
from slotbook.models.booking import (
    Booking,
    BookingStatus,
    BookingStatusHistory,
    OCCUPYING_STATUSES,
)

logger = logging.getLogger(__name__)

# Allowed status changes; rescheduling keeps the status and is handled separately
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.NOSHOW},
    BookingStatus.CANCELLED: set(),
    BookingStatus.NOSHOW: set(),
}


@dataclass(frozen=True)
class TransitionMeta:
    """Who is changing a booking, when, and why."""
    
    now: datetime
    changed_by: str = "system"
    reason: Optional[str] = None


def check_transition(booking: Booking, new_status: BookingStatus, now: datetime) -> None:
    """Raise InvalidTransition unless ``booking`` may move to ``new_status``."""
    current = BookingStatus(booking.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change a {current.value} booking to {new_status.value}"
        )
    if new_status == BookingStatus.NOSHOW and booking.starts_at > now:
        raise InvalidTransition("Cannot mark a booking as no-show before it starts")


class BookingLedger:
    """Reads and writes bookings and their status history."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get(self, booking_id: UUID) -> Optional[Booking]:
        result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()
    
    async def get_by_cancel_token(self, token: str) -> Optional[Booking]:
        result = await self.db.execute(select(Booking).where(Booking.cancel_token == token))
        return result.scalar_one_or_none()
    
    async def get_by_idempotency_key(self, key: str) -> Optional[Booking]:
        result = await self.db.execute(select(Booking).where(Booking.idempotency_key == key))
        return result.scalar_one_or_none()
    
    async def list_occupying(
        self,
        provider_id: str,
        location_id: str,
        member: MemberSelector,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[UUID] = None,
    ) -> List[Booking]:
        """Pending/confirmed bookings on a calendar intersecting ``[start, end)``."""
        query = select(Booking).where(
            Booking.provider_id == provider_id,
            Booking.calendar_key == calendar_key(location_id, member),
            Booking.status.in_(OCCUPYING_STATUSES),
            Booking.starts_at < end,
            Booking.ends_at > start,
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)
        
        result = await self.db.execute(query.order_by(Booking.starts_at))
        return list(result.scalars())
    
    async def create(self, booking: Booking, changed_by: str = "client") -> Booking:
        """Persist a new booking with its initial history row."""
        if booking.id is None:
            booking.id = uuid.uuid4()
        
        self.db.add(booking)
        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=None,
            to_status=BookingStatus(booking.status).value,
            changed_by=changed_by,
            reason="Booking created",
        ))
        await self._commit("create")
        await self.db.refresh(booking)
        
        logger.info(
            "Booking created id=%s provider=%s calendar=%s %s-%s status=%s",
            booking.id, booking.provider_id, booking.calendar_key,
            booking.starts_at, booking.ends_at, booking.status.value,
        )
        return booking
    
    async def transition(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
        meta: TransitionMeta,
    ) -> Booking:
        """Apply a status change after checking it against the state machine."""
        booking = await self.get(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        
        check_transition(booking, new_status, meta.now)
        
        old_status = BookingStatus(booking.status)
        booking.status = new_status
        booking.updated_at = datetime.utcnow()
        
        if new_status == BookingStatus.CONFIRMED:
            booking.confirmed_at = meta.now
        elif new_status == BookingStatus.CANCELLED:
            booking.cancelled_at = meta.now
            booking.cancelled_by = meta.changed_by
            booking.cancel_reason = meta.reason
        elif new_status == BookingStatus.NOSHOW:
            booking.no_show_at = meta.now
        
        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=old_status.value,
            to_status=new_status.value,
            changed_by=meta.changed_by,
            reason=meta.reason,
        ))
        await self._commit("transition")
        await self.db.refresh(booking)
        
        logger.info(
            "Booking %s %s -> %s by %s", booking.id, old_status.value, new_status.value, meta.changed_by
        )
        return booking
    
    async def reschedule(
        self,
        booking_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        meta: TransitionMeta,
    ) -> Booking:
        """Move an occupying booking in place; status is unchanged."""
        booking = await self.get(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        
        if not booking.is_occupying:
            raise InvalidTransition(
                f"Cannot reschedule a {BookingStatus(booking.status).value} booking"
            )
        
        previous = booking.starts_at
        booking.starts_at = starts_at
        booking.ends_at = ends_at
        booking.rescheduled_at = meta.now
        booking.updated_at = datetime.utcnow()
        
        status = BookingStatus(booking.status).value
        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=status,
            to_status=status,
            changed_by=meta.changed_by,
            reason=meta.reason or f"Rescheduled from {previous.isoformat()}",
        ))
        await self._commit("reschedule")
        await self.db.refresh(booking)
        
        logger.info("Booking %s rescheduled %s -> %s", booking.id, previous, starts_at)
        return booking
    
    async def list_for_provider(
        self,
        provider_id: str,
        status: Optional[BookingStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        member_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Booking], int]:
        """List bookings with filters and pagination."""
        query = select(Booking).where(Booking.provider_id == provider_id)
        
        if status:
            query = query.where(Booking.status == status)
        if date_from:
            query = query.where(Booking.starts_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.where(
                Booking.starts_at < datetime.combine(date_to + timedelta(days=1), time.min)
            )
        if member_id:
            query = query.where(Booking.member_id == member_id)
        
        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar_one()
        
        result = await self.db.execute(
            query.order_by(Booking.starts_at)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars()), total
    
    async def stats(self, provider_id: str) -> Dict[str, int]:
        """Count of bookings per status."""
        result = await self.db.execute(
            select(Booking.status, func.count())
            .where(Booking.provider_id == provider_id)
            .group_by(Booking.status)
        )
        counts = {status.value: 0 for status in BookingStatus}
        for status, count in result.all():
            counts[BookingStatus(status).value] = count
        return counts
    
    async def history(self, booking_id: UUID) -> List[BookingStatusHistory]:
        result = await self.db.execute(
            select(BookingStatusHistory)
            .where(BookingStatusHistory.booking_id == booking_id)
            .order_by(BookingStatusHistory.created_at)
        )
        return list(result.scalars())
    
    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.info("Booking %s hit a booking constraint: %s", operation, exc.orig)
            raise ConflictError("Booking conflicts with an existing booking") from exc
        except OperationalError as exc:
            await self.db.rollback()
            raise TransientStoreError(f"Booking {operation} failed, retry") from exc
