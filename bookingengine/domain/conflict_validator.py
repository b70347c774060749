"""
Conflict checks between candidate slots and existing appointments.
"""

from typing import Iterable, List, Union

from .models import Appointment, MinuteRange, SlotCandidate

Interval = Union[SlotCandidate, Appointment]


def _overlaps(candidate: Interval, appointment: Appointment) -> bool:
    if candidate.date != appointment.date:
        return False
    return MinuteRange(candidate.start_time, candidate.end_time).overlaps(appointment.time_range)


def find_conflicts(candidate: Interval, appointments: Iterable[Appointment]) -> List[Appointment]:
    """Return the appointments on the candidate's date that overlap it."""
    return [appt for appt in appointments if _overlaps(candidate, appt)]


def has_conflict(candidate: Interval, appointments: Iterable[Appointment]) -> bool:
    """Check a single slot against existing appointments."""
    return any(_overlaps(candidate, appt) for appt in appointments)


def filter_available(
    candidates: Iterable[SlotCandidate],
    appointments: Iterable[Appointment],
) -> List[SlotCandidate]:
    """
    Drop every candidate that overlaps an existing appointment.

    Input order is preserved.
    """
    booked = list(appointments)
    return [slot for slot in candidates if not has_conflict(slot, booked)]

