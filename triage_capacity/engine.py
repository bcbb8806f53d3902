"""One-call slot analysis for the Triage Slot Planner.

The host owns the mutable inputs (uploaded requests, weekend toggle, slot
capacity table) and calls run_slot_analysis() again whenever any of them
changes. Every call builds a fresh result; nothing is patched in place.
"""

from dataclasses import asdict, is_dataclass
from datetime import date
from typing import Dict, Iterable, Mapping, Optional
import numpy as np
from triage_capacity.models import Request, OperatingCalendar, DEFAULT_CALENDAR
from triage_capacity.demand import analyze_requests
from triage_capacity.capacity import accumulate_capacity, average_profile
from triage_capacity.gaps import (
    compute_gaps, recommend_capacity, summarize_gaps, default_slot_capacity, clamp_capacity_config
)
from triage_capacity.consistency import analyze_consistency


def to_serializable(obj):
    """Convert results into JSON-safe builtins (dates become ISO strings)."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return to_serializable(asdict(obj))
    if isinstance(obj, Mapping):
        return {str(k): to_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = sorted(obj) if isinstance(obj, (set, frozenset)) else obj
        return [to_serializable(v) for v in items]
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    return obj


def run_slot_analysis(requests: Iterable[Request],
                      slot_capacity: Optional[Mapping] = None,
                      accept_weekend_requests: bool = False,
                      calendar: OperatingCalendar = DEFAULT_CALENDAR) -> Dict:
    """Demand, capacity needed, gaps, recommendation and consistency in one pass."""
    requests = list(requests)
    if slot_capacity is None:
        slot_capacity = default_slot_capacity(calendar)
    slot_capacity = clamp_capacity_config(slot_capacity, calendar)

    demand = analyze_requests(requests)
    num_weeks = demand['num_weeks']

    raw = accumulate_capacity(requests, accept_weekend_requests, calendar)
    profile = average_profile(raw, num_weeks)
    gap_rows = compute_gaps(profile, slot_capacity, calendar)

    result = {
        'settings': {
            'accept_weekend_requests': accept_weekend_requests,
            'open_days': calendar.open_day_names,
            'num_weeks': num_weeks,
        },
        'demand': demand,
        'capacity_needed_raw': raw,
        'capacity_needed': profile,
        'slot_capacity': slot_capacity,
        'gaps': gap_rows,
        'gap_summary': summarize_gaps(gap_rows),
        'recommended_capacity': recommend_capacity(profile, calendar),
        'consistency': analyze_consistency(requests),
    }
    return to_serializable(result)
