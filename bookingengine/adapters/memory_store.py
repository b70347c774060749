"""
In-memory booking store for local use, the CLI and tests.

Mirrors the contract of the hosted document store: reads return snapshots,
and appointment writes re-check overlap under a per-tenant lock so that two
racing bookings cannot both be committed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from ..config import AppConfig
from ..domain.admission import Accepted, AdmissionResult, Rejected, RejectionReason
from ..domain.conflict_validator import find_conflicts
from ..domain.models import (
    Appointment,
    BlackoutRule,
    Service,
    WorkingHoursPolicy,
    sort_appointments,
    to_date,
)

logger = logging.getLogger(__name__)


@dataclass
class _TenantState:
    policy: WorkingHoursPolicy
    services: Dict[str, Service] = field(default_factory=dict)
    blackout_rules: Dict[str, BlackoutRule] = field(default_factory=dict)
    appointments: Dict[str, Appointment] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class InMemoryBookingStore:
    """
    Thread-safe store keeping every tenant's data in process memory.

    A tenant must be registered with its working hours before any other
    operation; unknown tenants raise ``KeyError``.
    """

    def __init__(self):
        self._tenants: Dict[str, _TenantState] = {}
        self._registry_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AppConfig) -> "InMemoryBookingStore":
        """Build a store seeded with one tenant described by the configuration."""
        store = cls()
        store.register_tenant(
            config.tenant_id,
            policy=config.get_policy(),
            services=config.get_services(),
            blackout_rules=config.get_blackout_rules(),
            appointments=config.get_appointments(),
        )
        return store

    def register_tenant(
        self,
        tenant_id: str,
        policy: WorkingHoursPolicy,
        services: Iterable[Service] = (),
        blackout_rules: Iterable[BlackoutRule] = (),
        appointments: Iterable[Appointment] = (),
    ) -> None:
        """
        Create or reset a tenant with the given data.

        Raises:
            ValueError: If two of the seeded appointments overlap
        """
        state = _TenantState(policy=policy)
        state.services = {service.id: service for service in services}
        state.blackout_rules = {rule.rule_id: rule for rule in blackout_rules}
        for appt in appointments:
            if find_conflicts(appt, state.appointments.values()):
                raise ValueError(f"Seeded appointment {appt.format_display()} overlaps another booking")
            state.appointments[appt.appointment_id] = appt

        with self._registry_lock:
            self._tenants[tenant_id] = state

        logger.debug(
            "Registered tenant %s with %d services, %d blackout rules, %d appointments",
            tenant_id,
            len(state.services),
            len(state.blackout_rules),
            len(state.appointments),
        )

    def _state(self, tenant_id: str) -> _TenantState:
        with self._registry_lock:
            try:
                return self._tenants[tenant_id]
            except KeyError:
                raise KeyError(f"Unknown tenant '{tenant_id}'") from None

    # Reads

    def get_policy(self, tenant_id: str) -> WorkingHoursPolicy:
        return self._state(tenant_id).policy

    def get_services(self, tenant_id: str) -> List[Service]:
        state = self._state(tenant_id)
        with state.lock:
            return sorted(state.services.values(), key=lambda service: service.name)

    def get_blackout_rules(self, tenant_id: str) -> List[BlackoutRule]:
        state = self._state(tenant_id)
        with state.lock:
            return list(state.blackout_rules.values())

    def get_appointments(self, tenant_id: str, day: date) -> List[Appointment]:
        day = to_date(day)
        state = self._state(tenant_id)
        with state.lock:
            return sort_appointments(appt for appt in state.appointments.values() if appt.date == day)

    def get_upcoming_appointments(self, tenant_id: str, from_date: date) -> List[Appointment]:
        """Appointments on or after ``from_date`` ordered by date and time."""
        from_date = to_date(from_date)
        state = self._state(tenant_id)
        with state.lock:
            return sort_appointments(
                appt for appt in state.appointments.values() if appt.date >= from_date
            )

    def get_appointment(self, tenant_id: str, appointment_id: str) -> Optional[Appointment]:
        state = self._state(tenant_id)
        with state.lock:
            return state.appointments.get(appointment_id)

    # Writes

    def save_policy(self, tenant_id: str, policy: WorkingHoursPolicy) -> None:
        state = self._state(tenant_id)
        with state.lock:
            state.policy = policy
        logger.info("Saved working hours for tenant %s", tenant_id)

    def add_blackout_rule(self, tenant_id: str, rule: BlackoutRule) -> None:
        state = self._state(tenant_id)
        with state.lock:
            state.blackout_rules[rule.rule_id] = rule
        logger.info("Added blackout '%s' for tenant %s", rule.title, tenant_id)

    def delete_blackout_rule(self, tenant_id: str, rule_id: str) -> bool:
        state = self._state(tenant_id)
        with state.lock:
            removed = state.blackout_rules.pop(rule_id, None)
        return removed is not None

    def commit_appointment(self, tenant_id: str, appointment: Appointment) -> AdmissionResult:
        """
        Store an admitted appointment unless it overlaps a committed one.

        The overlap check runs under the tenant lock, which makes this the
        final guard against two bookings admitted from stale snapshots.
        """
        state = self._state(tenant_id)
        with state.lock:
            conflicts = find_conflicts(appointment, state.appointments.values())
            if conflicts:
                logger.debug(
                    "Commit refused for %s on %s: overlaps %s",
                    appointment.time_range,
                    appointment.date,
                    conflicts[0].time_range,
                )
                return Rejected(
                    RejectionReason.OVERLAPS,
                    f"Overlaps existing appointment at {conflicts[0].time_range}",
                )
            state.appointments[appointment.appointment_id] = appointment

        logger.info("Committed appointment %s for tenant %s", appointment.appointment_id, tenant_id)
        return Accepted(appointment)

    def replace_appointment(
        self,
        tenant_id: str,
        old_appointment_id: str,
        appointment: Appointment,
    ) -> AdmissionResult:
        """
        Atomically swap an appointment for a new one.

        The old appointment is ignored during the overlap check and is only
        removed if the new one can be stored.
        """
        state = self._state(tenant_id)
        with state.lock:
            if old_appointment_id not in state.appointments:
                raise KeyError(f"Unknown appointment '{old_appointment_id}'")

            others = [
                appt for appt_id, appt in state.appointments.items()
                if appt_id != old_appointment_id
            ]
            conflicts = find_conflicts(appointment, others)
            if conflicts:
                return Rejected(
                    RejectionReason.OVERLAPS,
                    f"Overlaps existing appointment at {conflicts[0].time_range}",
                )

            del state.appointments[old_appointment_id]
            state.appointments[appointment.appointment_id] = appointment

        logger.info(
            "Replaced appointment %s with %s for tenant %s",
            old_appointment_id,
            appointment.appointment_id,
            tenant_id,
        )
        return Accepted(appointment)

    def delete_appointment(self, tenant_id: str, appointment_id: str) -> bool:
        state = self._state(tenant_id)
        with state.lock:
            removed = state.appointments.pop(appointment_id, None)

        if removed is not None:
            logger.info("Deleted appointment %s for tenant %s", appointment_id, tenant_id)
        return removed is not None
