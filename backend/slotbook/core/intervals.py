"""Interval math for time-of-day windows and absolute datetime ranges.

A time of day is an ``HH:MM`` string between ``00:00`` and ``24:00``.
Values are always zero-padded and range-checked on the way in, which is
what makes plain string comparison a correct ordering.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Sequence

from slotbook.exceptions import ValidationError

TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-4]):([0-5]\d)$")
END_OF_DAY = "24:00"
MINUTES_PER_DAY = 24 * 60


def parse_time_of_day(value: str, field: str = "time") -> str:
    """Validate an ``HH:MM`` string and return it unchanged."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an HH:MM string", field=field)
    match = TIME_OF_DAY_RE.match(value)
    if not match or (match.group(1) == "24" and match.group(2) != "00"):
        raise ValidationError(
            f"Invalid time of day '{value}' (expected HH:MM between 00:00 and 24:00)",
            field=field,
        )
    return value


def to_minutes(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(minutes: int) -> str:
    """``HH:MM`` string for minutes since midnight (0..1440)."""
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValidationError(f"{minutes} minutes is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class Window:
    """A half-open time-of-day interval ``[start, end)``."""
    
    start: str
    end: str
    
    def __post_init__(self):
        parse_time_of_day(self.start, "start")
        parse_time_of_day(self.end, "end")
        if self.start >= self.end:
            raise ValidationError(
                f"Invalid window: {self.start} must be before {self.end}",
                field="windows",
            )
    
    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)
    
    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)
    
    def contains(self, other: "Window") -> bool:
        """True if ``other`` lies entirely inside this window."""
        return self.start <= other.start and other.end <= self.end
    
    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}
    
    @classmethod
    def from_dict(cls, data: dict) -> "Window":
        return cls(start=data["start"], end=data["end"])


def windows_overlap(a: Window, b: Window) -> bool:
    """Half-open overlap test; touching endpoints do not overlap."""
    return a.start < b.end and b.start < a.end


def ranges_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Half-open overlap test for absolute datetime ranges."""
    return start1 < end2 and start2 < end1


def validate_windows(windows: Sequence[Window]) -> List[Window]:
    """Return windows sorted by start, rejecting any overlapping pair."""
    ordered = sorted(windows, key=lambda w: w.start)
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if windows_overlap(first, second):
                raise ValidationError(
                    f"Windows {first.start}-{first.end} and {second.start}-{second.end} overlap",
                    field="windows",
                )
    return ordered


def time_of_day_of(dt: datetime) -> str:
    """Truncate a datetime to its ``HH:MM`` wall-clock time, dropping seconds."""
    return f"{dt.hour:02d}:{dt.minute:02d}"


def at_time_of_day(day: date, value: str) -> datetime:
    """Absolute datetime for a time of day on a date (``24:00`` is next midnight)."""
    return datetime.combine(day, time.min) + timedelta(minutes=to_minutes(value))


def window_of(start: datetime, end: datetime) -> Optional[Window]:
    """Map an absolute range back onto the weekly template's coordinates.
    
    Returns None when the range does not fit inside the calendar day it
    starts on, since no template window can contain it.
    """
    if end <= start:
        return None
    day_start = datetime.combine(start.date(), time.min)
    end_offset = end - day_start
    if end_offset > timedelta(days=1):
        return None
    end_minutes = int(end_offset.total_seconds() // 60)
    start_value = time_of_day_of(start)
    end_value = from_minutes(end_minutes)
    if start_value >= end_value:
        return None
    return Window(start=start_value, end=end_value)


def day_of_week(day: date) -> int:
    """Day of week with 0 = Sunday through 6 = Saturday."""
    return (day.weekday() + 1) % 7


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Each calendar date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
