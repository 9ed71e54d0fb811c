"""Weekly availability template and blocked period models."""

import uuid
from datetime import datetime
from typing import List
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Date, JSON, Uuid, UniqueConstraint, Index,
)
from slotbook.core.intervals import Window
from slotbook.database import Base


class AvailabilityRecord(Base):
    """Open windows of one calendar for one day of the week."""
    
    __tablename__ = "availability"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    provider_id = Column(String(64), nullable=False)
    location_id = Column(String(64), nullable=False)
    member_id = Column(String(64))  # Null = location-level default
    calendar_key = Column(String(140), nullable=False)
    
    # Schedule
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 1=Monday, ..., 6=Saturday
    is_open = Column(Boolean, default=True, nullable=False)
    windows = Column(JSON, default=list, nullable=False)  # [{"start": "09:00", "end": "12:00"}, ...]
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    __table_args__ = (
        UniqueConstraint(
            "provider_id", "calendar_key", "day_of_week",
            name="uq_availability_calendar_day",
        ),
    )
    
    @property
    def window_list(self) -> List[Window]:
        return [Window.from_dict(w) for w in (self.windows or [])]
    
    def __repr__(self):
        return f"<AvailabilityRecord {self.calendar_key} day={self.day_of_week} open={self.is_open}>"


class BlockedPeriod(Base):
    """Ad-hoc exclusion (vacation, absence) over a range of dates."""
    
    __tablename__ = "blocked_periods"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    provider_id = Column(String(64), nullable=False)
    location_id = Column(String(64))  # Null = every location
    member_id = Column(String(64))  # Null = every member
    
    # Date range, inclusive
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    
    # All day or partial
    all_day = Column(Boolean, default=True, nullable=False)
    start_time = Column(String(5))  # HH:MM, if not all day
    end_time = Column(String(5))    # HH:MM, if not all day
    
    reason = Column(String(200))  # "Vacation", "Training", etc.
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    __table_args__ = (
        Index("ix_blocked_periods_provider_range", "provider_id", "start_date", "end_date"),
    )
    
    def __repr__(self):
        return f"<BlockedPeriod {self.start_date} - {self.end_date}>"
