"""Availability, blocked period and slot schemas."""

from datetime import datetime, date
from typing import Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, Field

TIME_PATTERN = r"^([01]\d|2[0-4]):[0-5]\d$"


class WindowSchema(BaseModel):
    """An open time-of-day window."""
    
    start: str = Field(..., pattern=TIME_PATTERN, examples=["09:00"])
    end: str = Field(..., pattern=TIME_PATTERN, examples=["12:00"])


class AvailabilityDayInput(BaseModel):
    """Set the template for one day of the week."""
    
    location_id: str = Field(..., min_length=1)
    member_id: Optional[str] = None  # Null = location-level default
    day_of_week: int = Field(..., ge=0, le=6)  # 0=Sunday
    is_open: bool = True
    windows: List[WindowSchema] = Field(default_factory=list)


class WeekDayInput(BaseModel):
    """One day inside a weekly template."""
    
    day_of_week: int = Field(..., ge=0, le=6)
    is_open: bool = True
    windows: List[WindowSchema] = Field(default_factory=list)


class AvailabilityWeekInput(BaseModel):
    """Set all seven days of a calendar at once."""
    
    location_id: str = Field(..., min_length=1)
    member_id: Optional[str] = None
    days: List[WeekDayInput] = Field(..., min_length=7, max_length=7)


class AvailabilityResponse(BaseModel):
    """Availability record response."""
    
    id: UUID
    provider_id: str
    location_id: str
    member_id: Optional[str]
    day_of_week: int
    is_open: bool
    windows: List[WindowSchema]
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class BlockedPeriodCreate(BaseModel):
    """Create a blocked period (vacation, absence)."""
    
    member_id: Optional[str] = None  # Null = every member
    location_id: Optional[str] = None  # Null = every location
    start_date: date
    end_date: date
    all_day: bool = True
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    reason: Optional[str] = Field(None, max_length=200)


class BlockedPeriodResponse(BaseModel):
    """Blocked period response."""
    
    id: UUID
    provider_id: str
    member_id: Optional[str]
    location_id: Optional[str]
    start_date: date
    end_date: date
    all_day: bool
    start_time: Optional[str]
    end_time: Optional[str]
    reason: Optional[str]
    
    class Config:
        from_attributes = True


class SweepResponse(BaseModel):
    """Result of deleting past blocked periods."""
    
    deleted: int


class CandidateSlotResponse(BaseModel):
    """A free, not yet reserved slot."""
    
    date: date
    start: str
    end: str
    starts_at: datetime
    ends_at: datetime


class SlotsResponse(BaseModel):
    """Available slots for a date range."""
    
    slots: List[CandidateSlotResponse]


class NextSlotResponse(BaseModel):
    """First available slot, if any."""
    
    slot: Optional[CandidateSlotResponse] = None


class ConflictCheckRequest(BaseModel):
    """A proposed template change to check against upcoming bookings."""
    
    location_id: str = Field(..., min_length=1)
    member_id: Optional[str] = None
    day_of_week: int = Field(..., ge=0, le=6)
    is_open: bool = True
    windows: List[WindowSchema] = Field(default_factory=list)
    effective_from: Optional[date] = None


class AvailabilityConflictResponse(BaseModel):
    """An upcoming booking the proposed template would strand."""
    
    booking_id: UUID
    starts_at: datetime
    ends_at: datetime
    client_name: Optional[str]
    service_id: str
    conflict_type: Literal["day_closed", "reduced_hours"]
