"""
Core business logic for generating candidate booking slots.

Pure domain logic without any external dependencies (no storage, no I/O).
"""

from datetime import date
from typing import Iterable, List, Optional

from .blackout_expander import instances_on
from .models import BlackoutInstance, MinuteRange, SlotCandidate, WorkingHoursPolicy, to_date

SLOT_STEP_MINUTES = 30


class SlotGenerator:
    """
    Generates bookable slots for a date from the working hours policy.

    Algorithm:
    1. Return nothing on a closed day
    2. Walk the working window in fixed steps, stopping where a slot of the
       requested duration would run past closing time
    3. Drop candidates touching the break or a blackout of that date
    """

    def __init__(self, policy: WorkingHoursPolicy, step_minutes: int = SLOT_STEP_MINUTES):
        if step_minutes <= 0:
            raise ValueError("step_minutes must be greater than zero")
        self.policy = policy
        self.step_minutes = step_minutes

    def generate_slots(
        self,
        day: date,
        duration_minutes: int,
        blackout_instances: Iterable[BlackoutInstance] = (),
    ) -> List[SlotCandidate]:
        """
        Generate candidate slots for one date.

        Args:
            day: Date to generate slots for
            duration_minutes: Length of the requested service
            blackout_instances: Expanded blackouts; instances on other dates are ignored

        Returns:
            SlotCandidate objects in ascending start order
        """
        if duration_minutes <= 0:
            raise ValueError(f"Duration must be positive, got {duration_minutes}")

        day = to_date(day)
        window = self.policy.working_window(day)

        if window is None:
            return []

        blocked = self._blocked_ranges(day, blackout_instances)
        slots: List[SlotCandidate] = []

        for start in range(window.start, window.end - duration_minutes + 1, self.step_minutes):
            candidate = MinuteRange(start, start + duration_minutes)
            if any(candidate.overlaps(blocked_range) for blocked_range in blocked):
                continue
            slots.append(SlotCandidate(date=day, start_time=candidate.start, end_time=candidate.end))

        return slots

    def _blocked_ranges(
        self,
        day: date,
        blackout_instances: Iterable[BlackoutInstance],
    ) -> List[MinuteRange]:
        """Collect the break and the day's blackouts as ranges to avoid."""
        blocked: List[MinuteRange] = []

        break_window: Optional[MinuteRange] = self.policy.break_window()
        if break_window is not None:
            blocked.append(break_window)

        blocked.extend(inst.time_range for inst in instances_on(blackout_instances, day))
        return blocked


def generate_slots(
    day: date,
    duration_minutes: int,
    policy: WorkingHoursPolicy,
    blackout_instances: Iterable[BlackoutInstance] = (),
    step_minutes: int = SLOT_STEP_MINUTES,
) -> List[SlotCandidate]:
    """Functional shortcut for ``SlotGenerator(policy).generate_slots(...)``."""
    return SlotGenerator(policy, step_minutes=step_minutes).generate_slots(
        day, duration_minutes, blackout_instances
    )
