"""Booking models - the authoritative record of occupied time."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    DDL, Column, String, DateTime, ForeignKey, Text, Integer, Index, Enum, Uuid, event,
)
from sqlalchemy.orm import relationship
from slotbook.database import Base


class BookingStatus(str, PyEnum):
    """Booking status enumeration."""
    PENDING = "pending"        # Awaiting provider confirmation
    CONFIRMED = "confirmed"    # Accepted, slot is held
    CANCELLED = "cancelled"    # Cancelled by client or provider
    NOSHOW = "noshow"          # Client did not show up


# Only these statuses occupy a slot
OCCUPYING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
TERMINAL_STATUSES = (BookingStatus.CANCELLED, BookingStatus.NOSHOW)


class Booking(Base):
    """A reserved window on one provider/location/member calendar."""
    
    __tablename__ = "bookings"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    provider_id = Column(String(64), nullable=False)
    location_id = Column(String(64), nullable=False)
    member_id = Column(String(64))  # Null = location-level default calendar
    calendar_key = Column(String(140), nullable=False)
    service_id = Column(String(64), nullable=False)
    
    # Client
    client_id = Column(String(64))
    client_name = Column(String(100))
    client_email = Column(String(255))
    client_phone = Column(String(30))
    notes = Column(Text)
    
    # Scheduling (provider wall-clock time)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # Minutes occupied, buffer included
    
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING)
    
    # Anonymous cancellation and retry safety
    cancel_token = Column(String(64), unique=True, nullable=False)
    idempotency_key = Column(String(100), unique=True)
    
    # Transition details
    cancelled_at = Column(DateTime)
    cancelled_by = Column(String(20))  # 'client', 'provider'
    cancel_reason = Column(String(200))
    confirmed_at = Column(DateTime)
    no_show_at = Column(DateTime)
    rescheduled_at = Column(DateTime)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    status_history = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingStatusHistory.created_at",
    )
    
    # Backstop against double-booking: one occupying booking per calendar start
    __table_args__ = (
        Index(
            "ix_bookings_unique_slot",
            "provider_id",
            "calendar_key",
            "starts_at",
            unique=True,
            postgresql_where=status.in_(OCCUPYING_STATUSES),
            sqlite_where=status.in_(OCCUPYING_STATUSES),
        ),
        Index("ix_bookings_calendar_range", "provider_id", "calendar_key", "starts_at", "ends_at"),
    )
    
    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES
    
    def __repr__(self):
        return f"<Booking {self.id} {self.starts_at} {self.status}>"


# PostgreSQL only: occupying bookings on one calendar never overlap
BOOKING_OVERLAP_EXTENSION = "CREATE EXTENSION IF NOT EXISTS btree_gist"
BOOKING_OVERLAP_CONSTRAINT = (
    "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_no_overlap "
    "EXCLUDE USING gist (provider_id WITH =, calendar_key WITH =, "
    "tsrange(starts_at, ends_at) WITH &&) "
    "WHERE (status IN ('PENDING', 'CONFIRMED'))"
)

event.listen(
    Booking.__table__, "after_create",
    DDL(BOOKING_OVERLAP_EXTENSION).execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__, "after_create",
    DDL(BOOKING_OVERLAP_CONSTRAINT).execute_if(dialect="postgresql"),
)


class BookingStatusHistory(Base):
    """Track all status changes for auditing."""
    
    __tablename__ = "booking_status_history"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id"), nullable=False)
    
    # Status change
    from_status = Column(String(20))
    to_status = Column(String(20), nullable=False)
    
    # Who made the change
    changed_by = Column(String(20))  # 'client', 'provider', 'system'
    
    # Optional reason
    reason = Column(Text)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    booking = relationship("Booking", back_populates="status_history")
    
    def __repr__(self):
        return f"<BookingStatusHistory {self.from_status} -> {self.to_status}>"
