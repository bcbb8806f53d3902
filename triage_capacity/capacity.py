"""Demand-to-capacity translation for the Triage Slot Planner.

Urgency decides *when* a slot is needed, not when the request arrived:

- RED:    the same opening (a weekend request lands on the next open day)
- AMBER:  the next calendar day; when that day is closed the patient must be
          seen at the same opening instead, and the demand counts as RED
- YELLOW: the 3rd opening after submission
- GREEN:  the 5th opening after submission
"""

import math
from typing import Dict, Iterable, Optional, Tuple
from triage_capacity.config import WEEKDAYS, URGENCY_TIERS, LEAD_OPEN_DAYS
from triage_capacity.models import (
    Request, OperatingCalendar, CapacityProfile, DEFAULT_CALENDAR, weekday_index
)
from triage_capacity.demand import count_weeks
from triage_capacity.logger import get_logger

logger = get_logger(__name__)


def is_open_day(day: int, calendar: OperatingCalendar = DEFAULT_CALENDAR) -> bool:
    return calendar.is_open(day)


def nth_open_day_after(day: int, n: int,
                       calendar: OperatingCalendar = DEFAULT_CALENDAR) -> int:
    """Walk forward from day counting only open days until n have been counted.

    n == 0 means "as soon as the practice is open": day itself when open,
    otherwise the next open day.
    """
    if day not in range(len(WEEKDAYS)):
        raise ValueError(f"Weekday index out of range: {day!r}")
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")

    if n == 0:
        current = day
        while not calendar.is_open(current):
            current = (current + 1) % 7
        return current

    current = day
    counted = 0
    while counted < n:
        current = (current + 1) % 7
        if calendar.is_open(current):
            counted += 1
    return current


def capacity_target(day: int, tier: str,
                    calendar: OperatingCalendar = DEFAULT_CALENDAR) -> Tuple[int, str]:
    """Return (open day index, effective tier) where capacity is needed."""
    if tier == "AMBER":
        next_calendar_day = (day + 1) % 7
        if calendar.is_open(next_calendar_day):
            return next_calendar_day, "AMBER"
        # 24h guarantee collapses onto a closed day
        return nth_open_day_after(day, 0, calendar), "RED"

    if tier not in LEAD_OPEN_DAYS:
        raise ValueError(f"Unknown urgency tier: {tier!r}")
    return nth_open_day_after(day, LEAD_OPEN_DAYS[tier], calendar), tier


def empty_profile(calendar: OperatingCalendar = DEFAULT_CALENDAR) -> Dict[str, Dict[str, int]]:
    return {
        day: {**{tier: 0 for tier in URGENCY_TIERS}, 'total': 0}
        for day in calendar.open_day_names
    }


def accumulate_capacity(requests: Iterable[Request],
                        accept_weekend_requests: bool = False,
                        calendar: OperatingCalendar = DEFAULT_CALENDAR) -> Dict[str, Dict[str, int]]:
    """Raw (not averaged) count of capacity needed per open day and tier."""
    counts = empty_profile(calendar)
    skipped = {'non_medical': 0, 'no_urgency': 0, 'unknown_day': 0, 'closed_day': 0}

    for r in requests:
        if not r.is_medical:
            skipped['non_medical'] += 1
            continue
        if r.urgency not in URGENCY_TIERS:
            skipped['no_urgency'] += 1
            continue
        day_name = r.weekday
        if day_name is None:
            skipped['unknown_day'] += 1
            continue

        day = weekday_index(day_name)
        if not accept_weekend_requests and not calendar.is_open(day):
            skipped['closed_day'] += 1
            continue

        target, tier = capacity_target(day, r.urgency, calendar)
        target_name = WEEKDAYS[target]
        counts[target_name][tier] += 1
        counts[target_name]['total'] += 1

    logger.debug("Capacity translation skipped %s", skipped)
    return counts


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def average_profile(counts: Dict[str, Dict[str, int]], num_weeks: int) -> CapacityProfile:
    """Divide raw counts by the number of observed weeks, rounding half up."""
    weeks = max(1, int(num_weeks or 1))
    return {
        day: {key: _round_half_up(value / weeks) for key, value in cells.items()}
        for day, cells in counts.items()
    }


def translate_capacity(requests: Iterable[Request],
                       accept_weekend_requests: bool = False,
                       num_weeks: Optional[int] = None,
                       calendar: OperatingCalendar = DEFAULT_CALENDAR) -> CapacityProfile:
    """Average weekly capacity needed per open day and urgency tier."""
    requests = list(requests)
    if num_weeks is None:
        num_weeks = count_weeks(requests)

    counts = accumulate_capacity(requests, accept_weekend_requests, calendar)
    profile = average_profile(counts, num_weeks)
    logger.info(
        "Translated %d requests over %d week(s) into %d slots/week (weekend intake: %s)",
        sum(c['total'] for c in counts.values()), max(1, num_weeks),
        sum(c['total'] for c in profile.values()), accept_weekend_requests
    )
    return profile
