"""
Booking admission: decides whether one exact booking request may be written.

Every outcome is returned as a value. A rejection never raises and never
touches any state, so callers can retry or re-render freely.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Union

from .blackout_expander import expand_all
from .conflict_validator import find_conflicts
from .models import (
    MINUTES_PER_DAY,
    Appointment,
    BlackoutRule,
    BookingRequest,
    MinuteRange,
    SlotCandidate,
    WorkingHoursPolicy,
    format_minutes,
    to_date,
)


class RejectionReason(str, Enum):
    """Why a booking request was refused."""
    INVALID_REQUEST = "invalid_request"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    FALLS_IN_BREAK = "falls_in_break"
    FALLS_IN_BLACKOUT = "falls_in_blackout"
    OVERLAPS = "overlaps"


@dataclass(frozen=True)
class Accepted:
    """Admission verdict carrying the appointment ready to be persisted."""
    appointment: Appointment

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """Admission verdict explaining why the request cannot be booked."""
    reason: RejectionReason
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return False


AdmissionResult = Union[Accepted, Rejected]


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_shape(request: BookingRequest) -> Optional[str]:
    """Return a description of what is malformed, or None."""
    try:
        to_date(request.date)
    except (TypeError, ValueError) as exc:
        return str(exc)

    if not _is_int(request.duration_minutes) or request.duration_minutes <= 0:
        return f"Duration must be a positive number of minutes, got {request.duration_minutes!r}"
    if not _is_int(request.start_time) or not 0 <= request.start_time < MINUTES_PER_DAY:
        return f"Start time must be between 00:00 and 23:59, got {request.start_time!r}"
    if not isinstance(request.client_name, str) or not request.client_name.strip():
        return "Client name is required"
    return None


def admit(
    request: BookingRequest,
    policy: WorkingHoursPolicy,
    blackout_rules: Iterable[BlackoutRule],
    appointments: Iterable[Appointment],
    now: datetime,
) -> AdmissionResult:
    """
    Decide whether a booking request can be accepted right now.

    Checks run in a fixed order and the first failing one decides the reason:
    malformed input, working hours, break, blackout, overlap with an existing
    appointment, and finally requests for a moment already in the past.

    Args:
        request: The requested slot and client details
        policy: Working hours of the business
        blackout_rules: Stored blackout rules; expanded over the request date only
        appointments: Snapshot of existing appointments
        now: Evaluation instant, in the business's local time

    Returns:
        Accepted with a new Appointment, or Rejected with a reason
    """
    problem = _validate_shape(request)
    if problem is not None:
        return Rejected(RejectionReason.INVALID_REQUEST, problem)

    day = to_date(request.date)
    start = request.start_time
    end = request.end_time
    slot = SlotCandidate(date=day, start_time=start, end_time=end)
    requested = MinuteRange(start, end)

    window = policy.working_window(day)
    if window is None:
        return Rejected(RejectionReason.OUTSIDE_WORKING_HOURS, f"Closed on {day.to_date_string()}")
    if end > MINUTES_PER_DAY or not window.contains(requested):
        return Rejected(
            RejectionReason.OUTSIDE_WORKING_HOURS,
            f"{format_minutes(start)} - {format_minutes(end)} is outside {window}",
        )

    break_window = policy.break_window()
    if break_window is not None and break_window.overlaps(requested):
        return Rejected(RejectionReason.FALLS_IN_BREAK, f"Break from {break_window}")

    blackouts = [inst for inst in expand_all(blackout_rules, day, day) if inst.time_range.overlaps(requested)]
    if blackouts:
        return Rejected(
            RejectionReason.FALLS_IN_BLACKOUT,
            f"Blocked by '{blackouts[0].title}' ({blackouts[0].time_range})",
        )

    conflicts: List[Appointment] = find_conflicts(slot, appointments)
    if conflicts:
        return Rejected(
            RejectionReason.OVERLAPS,
            f"Overlaps existing appointment at {conflicts[0].time_range}",
        )

    now_day = to_date(now)
    now_minute = now.hour * 60 + now.minute
    if (day, start) < (now_day, now_minute):
        return Rejected(RejectionReason.INVALID_REQUEST, "Requested time is in the past")

    return Accepted(
        Appointment(
            date=day,
            start_time=start,
            end_time=end,
            service_id=request.service_id,
            service_duration_minutes=request.duration_minutes,
            client_name=request.client_name.strip(),
            client_phone=request.client_phone,
        )
    )
