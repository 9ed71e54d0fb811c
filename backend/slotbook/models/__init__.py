"""SQLAlchemy models."""

from slotbook.models.provider import Provider
from slotbook.models.directory import Location, Member
from slotbook.models.service import Service
from slotbook.models.availability import AvailabilityRecord, BlockedPeriod
from slotbook.models.booking import (
    Booking,
    BookingStatus,
    BookingStatusHistory,
    OCCUPYING_STATUSES,
    TERMINAL_STATUSES,
)

__all__ = [
    "Provider",
    "Location",
    "Member",
    "Service",
    "AvailabilityRecord",
    "BlockedPeriod",
    "Booking",
    "BookingStatus",
    "BookingStatusHistory",
    "OCCUPYING_STATUSES",
    "TERMINAL_STATUSES",
]
