"""Pydantic schemas for request/response validation."""

from slotbook.schemas.schedule import (
    WindowSchema,
    AvailabilityDayInput,
    WeekDayInput,
    AvailabilityWeekInput,
    AvailabilityResponse,
    BlockedPeriodCreate,
    BlockedPeriodResponse,
    SweepResponse,
    CandidateSlotResponse,
    SlotsResponse,
    NextSlotResponse,
    ConflictCheckRequest,
    AvailabilityConflictResponse,
)
from slotbook.schemas.booking import (
    ClientInfo,
    ReservationCreate,
    RescheduleRequest,
    CancelRequest,
    BookingResponse,
    ReservationCreatedResponse,
    BookingHistoryResponse,
    BookingListResponse,
    BookingStatsResponse,
)

__all__ = [
    # Schedule
    "WindowSchema",
    "AvailabilityDayInput",
    "WeekDayInput",
    "AvailabilityWeekInput",
    "AvailabilityResponse",
    "BlockedPeriodCreate",
    "BlockedPeriodResponse",
    "SweepResponse",
    "CandidateSlotResponse",
    "SlotsResponse",
    "NextSlotResponse",
    "ConflictCheckRequest",
    "AvailabilityConflictResponse",
    # Booking
    "ClientInfo",
    "ReservationCreate",
    "RescheduleRequest",
    "CancelRequest",
    "BookingResponse",
    "ReservationCreatedResponse",
    "BookingHistoryResponse",
    "BookingListResponse",
    "BookingStatsResponse",
]
