"""Pure scheduling primitives: time-of-day windows and calendar identity."""

from slotbook.core.intervals import (
    Window,
    at_time_of_day,
    day_of_week,
    iter_dates,
    parse_time_of_day,
    ranges_overlap,
    time_of_day_of,
    validate_windows,
    window_of,
    windows_overlap,
)
from slotbook.core.calendar import MemberSelector, calendar_key

__all__ = [
    "Window",
    "at_time_of_day",
    "day_of_week",
    "iter_dates",
    "parse_time_of_day",
    "ranges_overlap",
    "time_of_day_of",
    "validate_windows",
    "window_of",
    "windows_overlap",
    "MemberSelector",
    "calendar_key",
]
