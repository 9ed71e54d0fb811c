"""Scheduling services."""

from slotbook.services.availability_store import AvailabilityStore
from slotbook.services.blocked_period_store import BlockedPeriodStore
from slotbook.services.booking_ledger import BookingLedger
from slotbook.services.calendar_lock import LocalCalendarLocks, RedisCalendarLocks
from slotbook.services.conflict_detector import ConflictDetector
from slotbook.services.engine import SchedulingEngine
from slotbook.services.reservation_guard import ReservationGuard
from slotbook.services.slot_generator import CandidateSlot, SlotGenerator

__all__ = [
    "AvailabilityStore",
    "BlockedPeriodStore",
    "BookingLedger",
    "LocalCalendarLocks",
    "RedisCalendarLocks",
    "ConflictDetector",
    "SchedulingEngine",
    "ReservationGuard",
    "CandidateSlot",
    "SlotGenerator",
]
