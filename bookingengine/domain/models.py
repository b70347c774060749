"""
Domain models for working hours, blackouts, appointments and slots.

All times of day are integers counting minutes since midnight. Intervals are
half-open, so a range ending at 10:00 never conflicts with one starting at 10:00.
"""

from dataclasses import dataclass, field
from datetime import date as _date, datetime as _datetime
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional
from uuid import uuid4

import pendulum
from pendulum import Date

MINUTES_PER_DAY = 24 * 60
MAX_REPEAT_COUNT = 52

WEEKDAY_NAMES = {
    0: "Sunday",
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
}


def parse_minutes(value: str) -> int:
    """
    Parse an "HH:MM" string into minutes since midnight.

    "24:00" is accepted so that a window may close at midnight.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from None

    if not 0 <= minutes < 60 or not 0 <= hours <= 24 or (hours == 24 and minutes):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")

    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_date(value) -> Date:
    """
    Coerce a date-like value into a pendulum ``Date``.

    Accepts pendulum/stdlib dates and datetimes or a "YYYY-MM-DD" string.
    """
    if isinstance(value, _datetime):
        value = value.date()
    if isinstance(value, Date):
        return value
    if isinstance(value, _date):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return pendulum.from_format(value.strip(), "YYYY-MM-DD").date()
        except ValueError:
            raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from None
    raise TypeError(f"Cannot interpret {value!r} as a date")


def weekday_index(day: _date) -> int:
    """Weekday index with Sunday=0 through Saturday=6."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class MinuteRange:
    """
    Half-open range of minutes within a single day.

    Invariant: start must be before end.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(
                f"Start {format_minutes(self.start)} must be before end {format_minutes(self.end)}"
            )

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "MinuteRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "MinuteRange") -> bool:
        """Check if another range lies completely inside this one."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{format_minutes(self.start)} - {format_minutes(self.end)}"


class Recurrence(str, Enum):
    """How a blackout rule repeats after its anchor date."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class WorkingHoursPolicy:
    """
    Weekly working hours with a daily break and closed weekdays.

    ``closed_weekdays`` uses Sunday=0 through Saturday=6. A break with
    ``break_start == break_end`` is treated as no break at all.
    """
    start_time: int
    end_time: int
    break_start: int = 0
    break_end: int = 0
    closed_weekdays: FrozenSet[int] = frozenset()

    def __post_init__(self):
        if not 0 <= self.start_time < self.end_time <= MINUTES_PER_DAY:
            raise ValueError(
                f"Working hours {format_minutes(self.start_time)} - "
                f"{format_minutes(self.end_time)} are not a valid window"
            )
        if self.break_end < self.break_start:
            raise ValueError("break_end must not be earlier than break_start")
        if self.break_start != self.break_end and not (
            self.start_time <= self.break_start and self.break_end <= self.end_time
        ):
            raise ValueError("Break window must lie within working hours")

        invalid_days = sorted(day for day in self.closed_weekdays if day not in range(7))
        if invalid_days:
            raise ValueError(f"closed_weekdays must be between 0 and 6, got {invalid_days}")
        # Accept any iterable of weekdays from callers
        object.__setattr__(self, "closed_weekdays", frozenset(self.closed_weekdays))

    def is_closed_day(self, day: _date) -> bool:
        """Check if the business is closed on the given date."""
        return weekday_index(day) in self.closed_weekdays

    def working_window(self, day: _date) -> Optional[MinuteRange]:
        """
        Get the working hours range for a specific day.
        Returns None if the business is closed that day.
        """
        if self.is_closed_day(day):
            return None
        return MinuteRange(self.start_time, self.end_time)

    def break_window(self) -> Optional[MinuteRange]:
        """Return the daily break, or None when there is no break."""
        if self.break_start == self.break_end:
            return None
        return MinuteRange(self.break_start, self.break_end)


@dataclass(frozen=True)
class BlackoutRule:
    """
    Operator-defined period in which no booking is allowed.

    ``repeat_count`` only matters when ``recurrence`` is not NONE. The
    ``rule_id`` identifies the stored record and is ignored by equality.
    """
    title: str
    anchor_date: Date
    start_time: int
    end_time: int
    recurrence: Recurrence = Recurrence.NONE
    repeat_count: int = 1
    rule_id: str = field(default_factory=lambda: uuid4().hex, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "anchor_date", to_date(self.anchor_date))
        object.__setattr__(self, "recurrence", Recurrence(self.recurrence))
        # Validates start < end
        MinuteRange(self.start_time, self.end_time)
        if not 1 <= self.repeat_count <= MAX_REPEAT_COUNT:
            raise ValueError(
                f"repeat_count must be between 1 and {MAX_REPEAT_COUNT}, got {self.repeat_count}"
            )

    @property
    def time_range(self) -> MinuteRange:
        return MinuteRange(self.start_time, self.end_time)


@dataclass(frozen=True)
class BlackoutInstance:
    """One concrete occurrence of a blackout rule."""
    date: Date
    start_time: int
    end_time: int
    title: str = ""

    @property
    def time_range(self) -> MinuteRange:
        return MinuteRange(self.start_time, self.end_time)


@dataclass(frozen=True)
class Service:
    """Bookable service from the business catalog."""
    id: str
    name: str
    duration_minutes: int
    price: str = ""
    description: str = ""

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"Service '{self.id}' must have a positive duration")


@dataclass(frozen=True)
class SlotCandidate:
    """A bookable interval proposed by the slot generator."""
    date: Date
    start_time: int
    end_time: int

    @property
    def time_range(self) -> MinuteRange:
        return MinuteRange(self.start_time, self.end_time)

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:MM - HH:MM
        """
        weekday = WEEKDAY_NAMES[weekday_index(self.date)]
        return f"{weekday}, {self.date.format('DD.MM.YYYY')} | {self.time_range}"


@dataclass(frozen=True)
class Appointment:
    """
    A booked appointment.

    Invariant: end_time = start_time + service_duration_minutes. The
    ``appointment_id`` identifies the stored record and is ignored by equality.
    """
    date: Date
    start_time: int
    end_time: int
    service_id: str
    service_duration_minutes: int
    client_name: str
    client_phone: str = ""
    appointment_id: str = field(default_factory=lambda: uuid4().hex, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))
        if self.time_range.duration_minutes() != self.service_duration_minutes:
            raise ValueError("Appointment end must equal start plus service duration")

    @property
    def time_range(self) -> MinuteRange:
        return MinuteRange(self.start_time, self.end_time)

    def format_display(self) -> str:
        return f"{self.date.format('DD.MM.YYYY')} {self.time_range} {self.client_name}"


@dataclass(frozen=True)
class BookingRequest:
    """
    A client's request for a specific slot.

    Fields are not validated on construction; admission reports malformed
    requests as an INVALID_REQUEST rejection instead of raising.
    """
    date: Date
    start_time: int
    duration_minutes: int
    client_name: str
    client_phone: str = ""
    service_id: str = ""

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration_minutes


def sort_appointments(appointments: Iterable[Appointment]) -> List[Appointment]:
    """Order appointments by date and start time."""
    return sorted(appointments, key=lambda appt: (appt.date, appt.start_time))


def time_options(start: str = "08:00", end: str = "22:00", step_minutes: int = 30) -> List[str]:
    """The "HH:MM" grid operators pick times from, both ends included."""
    return [
        format_minutes(minute)
        for minute in range(parse_minutes(start), parse_minutes(end) + 1, step_minutes)
    ]
