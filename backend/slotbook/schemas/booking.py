"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Optional, List, Dict
from uuid import UUID
import phonenumbers
from pydantic import BaseModel, Field, field_validator

from slotbook.config import get_settings
from slotbook.models.booking import BookingStatus


class ClientInfo(BaseModel):
    """Contact details of a client booking without an account."""
    
    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = Field(None, max_length=30)
    
    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        """Validate and normalize phone number."""
        if not v:
            return None
        try:
            parsed = phonenumbers.parse(v, get_settings().DEFAULT_PHONE_REGION)
            if not phonenumbers.is_valid_number(parsed):
                raise ValueError("Invalid phone number")
            return phonenumbers.format_number(
                parsed, phonenumbers.PhoneNumberFormat.E164
            )
        except phonenumbers.NumberParseException as e:
            raise ValueError(f"Invalid phone number: {e}")


class ReservationCreate(BaseModel):
    """Request to reserve one slot."""
    
    provider_id: str = Field(..., min_length=1)
    service_id: str = Field(..., min_length=1)
    location_id: str = Field(..., min_length=1)
    member_id: Optional[str] = None  # Null = location-level default calendar
    starts_at: datetime
    client_info: ClientInfo
    client_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)
    
    # Retrying with the same key returns the booking created by the first attempt
    idempotency_key: Optional[str] = Field(None, max_length=100)


class RescheduleRequest(BaseModel):
    """Move a booking to a new start time."""
    
    starts_at: datetime
    reason: Optional[str] = Field(None, max_length=200)


class CancelRequest(BaseModel):
    """Cancel a booking, optionally saying why."""
    
    reason: Optional[str] = Field(None, max_length=200)


class BookingResponse(BaseModel):
    """Booking response."""
    
    id: UUID
    provider_id: str
    location_id: str
    member_id: Optional[str]
    service_id: str
    client_id: Optional[str]
    client_name: Optional[str]
    client_email: Optional[str]
    client_phone: Optional[str]
    notes: Optional[str]
    starts_at: datetime
    ends_at: datetime
    duration: int
    status: BookingStatus
    cancelled_at: Optional[datetime]
    cancelled_by: Optional[str]
    cancel_reason: Optional[str]
    confirmed_at: Optional[datetime]
    no_show_at: Optional[datetime]
    rescheduled_at: Optional[datetime]
    created_at: Optional[datetime]
    
    class Config:
        from_attributes = True


class ReservationCreatedResponse(BookingResponse):
    """Booking as returned to the client that made it, with its cancellation token."""
    
    cancel_token: str


class BookingHistoryResponse(BaseModel):
    """One recorded status change."""
    
    from_status: Optional[str]
    to_status: str
    changed_by: Optional[str]
    reason: Optional[str]
    created_at: datetime
    
    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    """Bookings of a provider."""
    
    bookings: List[BookingResponse]
    total: int


class BookingStatsResponse(BaseModel):
    """Booking counts per status."""
    
    total: int
    by_status: Dict[str, int]
