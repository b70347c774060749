"""
Domain layer - Pure booking logic without external dependencies.
"""

from .admission import Accepted, AdmissionResult, Rejected, RejectionReason, admit
from .blackout_expander import expand, expand_all, instances_on
from .conflict_validator import filter_available, find_conflicts, has_conflict
from .models import (
    Appointment,
    BlackoutInstance,
    BlackoutRule,
    BookingRequest,
    MinuteRange,
    Recurrence,
    Service,
    SlotCandidate,
    WorkingHoursPolicy,
)
from .slot_generator import SlotGenerator, generate_slots

__all__ = [
    "Accepted",
    "AdmissionResult",
    "Appointment",
    "BlackoutInstance",
    "BlackoutRule",
    "BookingRequest",
    "MinuteRange",
    "Recurrence",
    "Rejected",
    "RejectionReason",
    "Service",
    "SlotCandidate",
    "SlotGenerator",
    "WorkingHoursPolicy",
    "admit",
    "expand",
    "expand_all",
    "filter_available",
    "find_conflicts",
    "generate_slots",
    "has_conflict",
    "instances_on",
]
