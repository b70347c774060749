"""
Expansion of stored blackout rules into concrete dated occurrences.

Expansion is a pure function of the rule and the query window. The window only
clips what is visible: occurrences before it still count toward
``repeat_count``, so a rule's schedule never depends on who is asking.
"""

from datetime import date
from typing import Iterable, List

from pendulum import Date

from .models import BlackoutInstance, BlackoutRule, Recurrence, to_date


def occurrence_date(rule: BlackoutRule, index: int) -> Date:
    """
    Date of the ``index``-th occurrence of a rule (0 is the anchor).

    Monthly occurrences are computed from the anchor rather than from the
    previous occurrence, so a rule anchored on the 31st lands on the 31st
    again after a short month instead of sticking to the clamped day.
    """
    anchor = rule.anchor_date
    if rule.recurrence is Recurrence.DAILY:
        return anchor.add(days=index)
    if rule.recurrence is Recurrence.WEEKLY:
        return anchor.add(weeks=index)
    if rule.recurrence is Recurrence.MONTHLY:
        # pendulum clamps to the last day of shorter months
        return anchor.add(months=index)
    return anchor


def occurrence_count(rule: BlackoutRule) -> int:
    """Total number of occurrences a rule produces, ignoring any window."""
    if rule.recurrence is Recurrence.NONE:
        return 1
    return rule.repeat_count


def expand(rule: BlackoutRule, window_start: date, window_end: date) -> List[BlackoutInstance]:
    """
    Expand a rule into the occurrences that fall inside a date window.

    Args:
        rule: Blackout rule to expand
        window_start: First visible date (inclusive)
        window_end: Last visible date (inclusive)

    Returns:
        Occurrences ordered by date
    """
    window_start = to_date(window_start)
    window_end = to_date(window_end)

    instances: List[BlackoutInstance] = []

    for index in range(occurrence_count(rule)):
        current = occurrence_date(rule, index)
        if current > window_end:
            break
        if current < window_start:
            continue
        instances.append(
            BlackoutInstance(
                date=current,
                start_time=rule.start_time,
                end_time=rule.end_time,
                title=rule.title,
            )
        )

    return instances


def expand_all(
    rules: Iterable[BlackoutRule],
    window_start: date,
    window_end: date,
) -> List[BlackoutInstance]:
    """Expand several rules and order the result by date and start time."""
    instances: List[BlackoutInstance] = []
    for rule in rules:
        instances.extend(expand(rule, window_start, window_end))
    return sorted(instances, key=lambda inst: (inst.date, inst.start_time))


def instances_on(instances: Iterable[BlackoutInstance], day: date) -> List[BlackoutInstance]:
    """Select the instances that fall on a single date."""
    day = to_date(day)
    return [inst for inst in instances if inst.date == day]
