"""
Application services for listing availability and booking appointments.

The service reads a snapshot from a booking store, delegates every decision to
the pure domain functions and hands accepted appointments back to the store,
whose commit re-checks overlap. The store dependency is expressed as a
protocol so the in-memory adapter, a hosted document store or a test stub can
be plugged in.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional, Protocol, Union

import pendulum
from pendulum import DateTime

from ..domain.admission import AdmissionResult, Rejected, RejectionReason, admit
from ..domain.blackout_expander import expand_all
from ..domain.conflict_validator import filter_available
from ..domain.exceptions import StorageUnavailableError, UnknownServiceError
from ..domain.models import (
    Appointment,
    BlackoutRule,
    BookingRequest,
    Service,
    SlotCandidate,
    WorkingHoursPolicy,
    parse_minutes,
    to_date,
)
from ..domain.slot_generator import SLOT_STEP_MINUTES, SlotGenerator

logger = logging.getLogger(__name__)

Clock = Callable[[], DateTime]


class BookingStoreProtocol(Protocol):
    """Protocol describing the store behaviour needed by the service."""

    def get_policy(self, tenant_id: str) -> WorkingHoursPolicy:
        """Return the tenant's working hours."""

    def get_services(self, tenant_id: str) -> List[Service]:
        """Return the tenant's service catalog."""

    def get_blackout_rules(self, tenant_id: str) -> List[BlackoutRule]:
        """Return every stored blackout rule."""

    def get_appointments(self, tenant_id: str, day: date) -> List[Appointment]:
        """Return the appointments booked on a date."""

    def get_upcoming_appointments(self, tenant_id: str, from_date: date) -> List[Appointment]:
        """Return appointments on or after a date, ordered."""

    def get_appointment(self, tenant_id: str, appointment_id: str) -> Optional[Appointment]:
        """Return one appointment or None."""

    def commit_appointment(self, tenant_id: str, appointment: Appointment) -> AdmissionResult:
        """Store an appointment, refusing it if it overlaps a committed one."""

    def replace_appointment(
        self,
        tenant_id: str,
        old_appointment_id: str,
        appointment: Appointment,
    ) -> AdmissionResult:
        """Atomically swap one appointment for another."""

    def delete_appointment(self, tenant_id: str, appointment_id: str) -> bool:
        """Delete an appointment, returning whether it existed."""


class BookingService:
    """
    Orchestrates store reads, slot generation and booking admission.

    Args:
        store: Booking store implementation
        tenant_id: Business whose data is served
        timezone: Local timezone used to decide what "now" is
        clock: Optional callable returning the current local time
        step_minutes: Slot grid granularity
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        tenant_id: str,
        timezone: str = "Europe/Lisbon",
        clock: Optional[Clock] = None,
        step_minutes: int = SLOT_STEP_MINUTES,
    ) -> None:
        self._store = store
        self._tenant_id = tenant_id
        self._timezone = timezone
        self._clock = clock or (lambda: pendulum.now(self._timezone))
        self._step_minutes = step_minutes

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    def now(self) -> DateTime:
        return self._clock()

    def services(self) -> List[Service]:
        return self._read(self._store.get_services)

    def find_service(self, service_id: str) -> Service:
        """
        Look up a service by id.

        Raises:
            UnknownServiceError: If the catalog has no such service
        """
        for service in self.services():
            if service.id == service_id:
                return service
        raise UnknownServiceError(f"Unknown service '{service_id}'")

    def available_slots(self, day: date, service_id: str) -> List[SlotCandidate]:
        """
        Free slots for a service on a date.

        Past dates have no slots, and slots that already started are dropped
        when ``day`` is today.
        """
        day = to_date(day)
        service = self.find_service(service_id)

        now = self.now()
        today = to_date(now)
        if day < today:
            logger.debug("No slots offered for past date %s", day)
            return []

        policy = self._read(self._store.get_policy)
        rules = self._read(self._store.get_blackout_rules)
        appointments = self._read(self._store.get_appointments, day)

        generator = SlotGenerator(policy, step_minutes=self._step_minutes)
        candidates = generator.generate_slots(
            day,
            service.duration_minutes,
            expand_all(rules, day, day),
        )
        slots = filter_available(candidates, appointments)

        if day == today:
            current_minute = now.hour * 60 + now.minute
            slots = [slot for slot in slots if slot.start_time >= current_minute]

        logger.debug(
            "%d of %d candidate slots free on %s for service %s",
            len(slots),
            len(candidates),
            day,
            service_id,
        )
        return slots

    def book(
        self,
        day: Union[date, str],
        start_time: Union[int, str],
        service_id: str,
        client_name: str,
        client_phone: str = "",
    ) -> AdmissionResult:
        """
        Admit a booking request and commit it to the store.

        ``start_time`` may be minutes since midnight or an "HH:MM" string.
        Every refusal, including one raised by the store's commit-time
        overlap check, is returned as a ``Rejected`` value.
        """
        service = self.find_service(service_id)
        try:
            day = to_date(day)
        except (TypeError, ValueError) as exc:
            return Rejected(RejectionReason.INVALID_REQUEST, str(exc))

        request = BookingRequest(
            date=day,
            start_time=self._coerce_time(start_time),
            duration_minutes=service.duration_minutes,
            client_name=client_name,
            client_phone=client_phone,
            service_id=service.id,
        )

        verdict = admit(
            request,
            self._read(self._store.get_policy),
            self._read(self._store.get_blackout_rules),
            self._read(self._store.get_appointments, day),
            self.now(),
        )
        if isinstance(verdict, Rejected):
            logger.debug("Booking on %s at %s rejected: %s", day, start_time, verdict.reason.value)
            return verdict

        return self._write(self._store.commit_appointment, verdict.appointment)

    def reschedule(
        self,
        appointment_id: str,
        day: Union[date, str],
        start_time: Union[int, str],
        service_id: Optional[str] = None,
    ) -> AdmissionResult:
        """
        Move an appointment to a new slot, optionally changing the service.

        Modelled as delete and recreate: the new appointment is admitted as if
        the old one did not exist, then swapped in atomically by the store.

        Raises:
            KeyError: If the appointment does not exist
        """
        existing = self._read(self._store.get_appointment, appointment_id)
        if existing is None:
            raise KeyError(f"Unknown appointment '{appointment_id}'")

        service = self.find_service(service_id or existing.service_id)
        try:
            day = to_date(day)
        except (TypeError, ValueError) as exc:
            return Rejected(RejectionReason.INVALID_REQUEST, str(exc))

        request = BookingRequest(
            date=day,
            start_time=self._coerce_time(start_time),
            duration_minutes=service.duration_minutes,
            client_name=existing.client_name,
            client_phone=existing.client_phone,
            service_id=service.id,
        )
        others = [
            appt for appt in self._read(self._store.get_appointments, day)
            if appt.appointment_id != appointment_id
        ]

        verdict = admit(
            request,
            self._read(self._store.get_policy),
            self._read(self._store.get_blackout_rules),
            others,
            self.now(),
        )
        if isinstance(verdict, Rejected):
            logger.debug("Reschedule of %s rejected: %s", appointment_id, verdict.reason.value)
            return verdict

        return self._write(self._store.replace_appointment, appointment_id, verdict.appointment)

    def cancel(self, appointment_id: str) -> bool:
        """Delete an appointment; returns False if it did not exist."""
        return self._write(self._store.delete_appointment, appointment_id)

    def upcoming(self, from_date: Optional[date] = None) -> List[Appointment]:
        """Appointments from ``from_date`` (default today) onwards."""
        start = to_date(from_date) if from_date is not None else to_date(self.now())
        return self._read(self._store.get_upcoming_appointments, start)

    @staticmethod
    def _coerce_time(value: Union[int, str]):
        """
        Turn "HH:MM" into minutes.

        Unparseable strings are passed through untouched so that admission
        reports them as an invalid request.
        """
        if isinstance(value, str):
            try:
                return parse_minutes(value)
            except ValueError:
                return value
        return value

    def _read(self, operation, *args):
        return self._call("read", operation, *args)

    def _write(self, operation, *args):
        return self._call("write", operation, *args)

    def _call(self, kind: str, operation, *args):
        try:
            return operation(self._tenant_id, *args)
        except StorageUnavailableError as exc:
            logger.warning("Store %s %s failed: %s", kind, operation.__name__, exc)
            raise
