"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.conflict_validator import find_conflicts
from .domain.models import (
    MAX_REPEAT_COUNT,
    MINUTES_PER_DAY,
    Appointment,
    BlackoutRule,
    Recurrence,
    Service,
    WorkingHoursPolicy,
    format_minutes,
    parse_minutes,
    to_date,
)


def _validate_clock(value) -> str:
    # YAML 1.1 reads an unquoted 11:00 as the base-60 integer 660
    if isinstance(value, int) and not isinstance(value, bool):
        if not 0 <= value <= MINUTES_PER_DAY:
            raise ValueError(f"Invalid time {value}, expected HH:MM")
        return format_minutes(value)
    parse_minutes(value)
    return value.strip()


def _validate_iso_date(value) -> str:
    try:
        return to_date(value).to_date_string()
    except TypeError as exc:
        raise ValueError(str(exc)) from exc


class ScheduleConfig(BaseModel):
    """Weekly working schedule of the business."""
    start_hour: str = "09:00"
    end_hour: str = "20:00"
    break_start: str = "14:00"
    break_end: str = "15:00"
    days_off: List[int] = Field(default_factory=lambda: [0])  # Sunday

    @field_validator("start_hour", "end_hour", "break_start", "break_end", mode="before")
    @classmethod
    def validate_clock(cls, value) -> str:
        """Ensure times are valid HH:MM strings."""
        return _validate_clock(value)

    @field_validator("days_off")
    @classmethod
    def validate_days_off(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"days_off must be between 0 (Sunday) and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def validate_hours_order(self) -> "ScheduleConfig":
        """Ensure the day opens before it closes and the break fits inside."""
        start = parse_minutes(self.start_hour)
        end = parse_minutes(self.end_hour)
        break_start = parse_minutes(self.break_start)
        break_end = parse_minutes(self.break_end)

        if end <= start:
            raise ValueError("end_hour must be later than start_hour")
        if break_end < break_start:
            raise ValueError("break_end must not be earlier than break_start")
        if break_start != break_end and not (start <= break_start and break_end <= end):
            raise ValueError("The break must lie within working hours")
        return self

    def to_policy(self) -> WorkingHoursPolicy:
        return WorkingHoursPolicy(
            start_time=parse_minutes(self.start_hour),
            end_time=parse_minutes(self.end_hour),
            break_start=parse_minutes(self.break_start),
            break_end=parse_minutes(self.break_end),
            closed_weekdays=frozenset(self.days_off),
        )


class ServiceConfig(BaseModel):
    """Service offered by the business."""
    id: str
    name: str
    description: str = ""
    price: str = ""
    duration: int = 30

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure service duration is positive."""
        if value <= 0:
            raise ValueError("duration must be greater than zero")
        return value

    def to_service(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            duration_minutes=self.duration,
            price=self.price,
            description=self.description,
        )


def _default_services() -> List[ServiceConfig]:
    return [
        ServiceConfig(
            id="1",
            name="Haircut",
            description="Classic or modern cut with a premium finish.",
            price="12€",
            duration=30,
        ),
        ServiceConfig(
            id="2",
            name="Full Beard",
            description="Beard design with hot towel.",
            price="10€",
            duration=30,
        ),
        ServiceConfig(
            id="3",
            name="Haircut & Beard",
            description="The complete package.",
            price="20€",
            duration=60,
        ),
    ]


class TimeBlockConfig(BaseModel):
    """Blocked period, optionally repeating."""
    title: str
    date: str
    start_time: str = "11:00"
    end_time: str = "12:00"
    is_recurring: bool = False
    recurring_type: Recurrence = Recurrence.WEEKLY
    repeat_count: int = 1

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, value) -> str:
        """Accept ISO strings as well as dates parsed by YAML."""
        return _validate_iso_date(value)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_clock(cls, value) -> str:
        return _validate_clock(value)

    @field_validator("repeat_count")
    @classmethod
    def validate_repeat_count(cls, value: int) -> int:
        if not 1 <= value <= MAX_REPEAT_COUNT:
            raise ValueError(f"repeat_count must be between 1 and {MAX_REPEAT_COUNT}")
        return value

    @model_validator(mode="after")
    def validate_times_order(self) -> "TimeBlockConfig":
        if parse_minutes(self.end_time) <= parse_minutes(self.start_time):
            raise ValueError("end_time must be later than start_time")
        return self

    def to_rule(self) -> BlackoutRule:
        return BlackoutRule(
            title=self.title,
            anchor_date=to_date(self.date),
            start_time=parse_minutes(self.start_time),
            end_time=parse_minutes(self.end_time),
            recurrence=self.recurring_type if self.is_recurring else Recurrence.NONE,
            repeat_count=self.repeat_count,
        )


class AppointmentConfig(BaseModel):
    """Already booked appointment used to seed the store."""
    date: str
    start_time: str
    service_id: str
    client_name: str
    client_phone: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, value) -> str:
        """Accept ISO strings as well as dates parsed by YAML."""
        return _validate_iso_date(value)

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_clock(cls, value) -> str:
        return _validate_clock(value)


class AppConfig(BaseModel):
    """Application configuration."""
    tenant_id: str = "default"
    business_name: str = ""
    timezone: str = "Europe/Lisbon"
    slot_step_minutes: int = 30
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    services: List[ServiceConfig] = Field(default_factory=_default_services)
    time_blocks: List[TimeBlockConfig] = Field(default_factory=list)
    appointments: List[AppointmentConfig] = Field(default_factory=list)

    @field_validator("slot_step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Ensure the slot grid divides an hour evenly."""
        if value <= 0 or 60 % value:
            raise ValueError(f"slot_step_minutes must divide 60, got {value}")
        return value

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        """Ensure service ids are unique."""
        seen_ids: set[str] = set()
        for service in value:
            if service.id in seen_ids:
                raise ValueError(f"Duplicate service id detected: {service.id}")
            seen_ids.add(service.id)
        return value

    @model_validator(mode="after")
    def validate_seeded_appointments(self) -> "AppConfig":
        """Ensure seeded appointments reference known services and do not overlap."""
        known = {service.id for service in self.services}
        for appointment in self.appointments:
            if appointment.service_id not in known:
                raise ValueError(
                    f"Appointment for {appointment.client_name} references "
                    f"unknown service '{appointment.service_id}'"
                )

        seeded: List[Appointment] = []
        for appointment in self.get_appointments():
            clashes = find_conflicts(appointment, seeded)
            if clashes:
                raise ValueError(
                    f"Appointment for {appointment.client_name} on {appointment.date.to_date_string()} {appointment.time_range} "
                    f"overlaps the one for {clashes[0].client_name}"
                )
            seeded.append(appointment)
        return self

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Read a business setup from a YAML file.

        An empty file yields the default setup.

        Raises:
            FileNotFoundError: If the file is missing
            ValueError: If the YAML is malformed or fails validation
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path} (copy config.example.yaml to get started)"
            )

        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError(f"{config_path} must contain a mapping at the top level")

        return cls.model_validate(data)

    def find_service(self, service_id: str) -> ServiceConfig | None:
        """Find a service by its id."""
        for service in self.services:
            if service.id == service_id:
                return service
        return None

    def get_policy(self) -> WorkingHoursPolicy:
        return self.schedule.to_policy()

    def get_services(self) -> List[Service]:
        return [service.to_service() for service in self.services]

    def get_blackout_rules(self) -> List[BlackoutRule]:
        return [block.to_rule() for block in self.time_blocks]

    def get_appointments(self) -> List[Appointment]:
        """Build appointment values for the seeded bookings."""
        appointments: List[Appointment] = []
        for entry in self.appointments:
            duration = self.find_service(entry.service_id).duration
            start = parse_minutes(entry.start_time)
            appointments.append(
                Appointment(
                    date=to_date(entry.date),
                    start_time=start,
                    end_time=start + duration,
                    service_id=entry.service_id,
                    service_duration_minutes=duration,
                    client_name=entry.client_name,
                    client_phone=entry.client_phone,
                )
            )
        return appointments


def get_default_config_path() -> Path:
    """Default configuration file: config.yaml in the working directory."""
    return Path.cwd() / "config.yaml"
