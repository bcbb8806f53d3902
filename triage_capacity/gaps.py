"""Slot gap analysis and capacity recommendations for the Triage Slot Planner."""

from typing import Dict, List, Mapping
import numpy as np
from triage_capacity.config import URGENCY_TIERS, DEFAULT_SLOT_CAPACITY, RECOMMENDATION_BUFFER_PCT
from triage_capacity.models import (
    GapRow, OperatingCalendar, CapacityProfile, SlotCapacityConfig, DEFAULT_CALENDAR, match_weekday
)
from triage_capacity.logger import get_logger

logger = get_logger(__name__)


def gap_status(gap: int) -> str:
    if gap > 0:
        return 'shortfall'
    if gap < 0:
        return 'surplus'
    return 'met'


def _slot_count(value) -> int:
    return max(0, int(value))


def default_slot_capacity(calendar: OperatingCalendar = DEFAULT_CALENDAR) -> SlotCapacityConfig:
    return {day: dict(DEFAULT_SLOT_CAPACITY) for day in calendar.open_day_names}


def clamp_capacity_config(config: Mapping,
                          calendar: OperatingCalendar = DEFAULT_CALENDAR) -> SlotCapacityConfig:
    """Return a fresh config restricted to open days with every cell clamped to >= 0."""
    if not isinstance(config, Mapping):
        raise ValueError(f"Slot capacity must be a mapping of day -> tier -> slots, got {type(config).__name__}")

    clamped = {}
    negatives = 0
    for day in calendar.open_day_names:
        cells = config.get(day)
        if not isinstance(cells, Mapping):
            raise ValueError(f"Slot capacity is missing an entry for {day}")
        clamped[day] = {}
        for tier in URGENCY_TIERS:
            if tier not in cells:
                raise ValueError(f"Slot capacity for {day} is missing tier {tier}")
            try:
                value = int(cells[tier])
            except (TypeError, ValueError):
                # blank or non-numeric cell
                value = 0
            if value < 0:
                negatives += 1
            clamped[day][tier] = _slot_count(value)

    if negatives:
        logger.warning("Clamped %d negative slot capacity value(s) to 0", negatives)
    return clamped


def set_slot_capacity(config: SlotCapacityConfig, day: str, tier: str, value) -> SlotCapacityConfig:
    """Return a copy of config with one cell replaced; non-numeric input counts as 0."""
    canonical = match_weekday(day)
    if canonical is None or tier not in URGENCY_TIERS:
        raise ValueError(f"Unknown slot capacity cell: {day!r}/{tier!r}")
    try:
        slots = _slot_count(value)
    except (TypeError, ValueError):
        slots = 0
    updated = {d: dict(cells) for d, cells in config.items()}
    updated.setdefault(canonical, {t: 0 for t in URGENCY_TIERS})[tier] = slots
    return updated


def _with_total(cells: Mapping) -> Dict[str, int]:
    row = {tier: int(cells.get(tier, 0)) for tier in URGENCY_TIERS}
    row['total'] = sum(row.values())
    return row


def compute_gaps(profile: CapacityProfile, config: Mapping,
                 calendar: OperatingCalendar = DEFAULT_CALENDAR) -> List[GapRow]:
    """Needed minus configured capacity for every open day; positive means shortfall."""
    capacity_config = clamp_capacity_config(config, calendar)
    rows = []
    for day in calendar.open_day_names:
        needed = _with_total(profile.get(day, {}))
        capacity = _with_total(capacity_config[day])
        gap = {key: needed[key] - capacity[key] for key in needed}
        rows.append(GapRow(
            day=day,
            needed=needed,
            capacity=capacity,
            gap=gap,
            status={key: gap_status(value) for key, value in gap.items()}
        ))
    return rows


def recommend_capacity(profile: CapacityProfile,
                       calendar: OperatingCalendar = DEFAULT_CALENDAR,
                       buffer_pct: int = RECOMMENDATION_BUFFER_PCT) -> SlotCapacityConfig:
    """Observed average demand plus a flat buffer, rounded up per cell.

    This is a simple margin over the weekly average, not a statistically
    derived safety stock.
    """
    factor = 1 + buffer_pct / 100
    recommended = {}
    for day in calendar.open_day_names:
        cells = profile.get(day, {})
        needed = np.array([cells.get(tier, 0) for tier in URGENCY_TIERS], dtype=float)
        # round first so 10 * 1.1 does not ceil to 12
        slots = np.ceil(np.round(needed * factor, 6)).astype(int)
        recommended[day] = {tier: int(n) for tier, n in zip(URGENCY_TIERS, slots)}
    return recommended


def summarize_gaps(rows: List[GapRow]) -> Dict:
    """Weekly shortfall and surplus totals per tier."""
    summary = {}
    for key in list(URGENCY_TIERS) + ['total']:
        gaps = np.array([row.gap[key] for row in rows], dtype=int)
        summary[key] = {
            'shortfall': int(gaps[gaps > 0].sum()),
            'surplus': int(-gaps[gaps < 0].sum()),
        }
    return {
        'by_tier': summary,
        'days_with_shortfall': [
            row.day for row in rows if any(row.gap[t] > 0 for t in URGENCY_TIERS)
        ],
    }
