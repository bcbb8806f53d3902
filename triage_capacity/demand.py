"""Demand aggregation for the Triage Slot Planner."""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence
import numpy as np
import pandas as pd
from triage_capacity.config import (
    WEEKDAYS, URGENCY_TIERS, UNSET, PARETO_TOP_N, ROLLING_WINDOW_DAYS,
    MIN_PATHWAY_OBSERVATIONS, RESOLUTION_OUTLIER_MINS, APPOINTMENT_STATUS_KEYWORDS
)
from triage_capacity.models import Request
from triage_capacity.logger import get_logger

logger = get_logger(__name__)

HOURS = list(range(24))

FRAME_COLUMNS = [
    'tenant', 'request_date', 'weekday', 'request_hour', 'request_type', 'pathway',
    'symptom', 'urgency', 'automated', 'slot_type', 'appointment_status',
    'is_adult', 'is_medical', 'time_to_processed_mins'
]


def requests_to_frame(requests: Iterable[Request]) -> pd.DataFrame:
    """Flatten requests into a DataFrame with derived weekday and symptom columns."""
    records = [
        {
            'tenant': r.tenant,
            'request_date': r.request_date,
            'weekday': r.weekday,
            'request_hour': r.request_hour,
            'request_type': r.request_type,
            'pathway': r.pathway or UNSET,
            'symptom': r.symptom,
            'urgency': r.urgency if r.urgency in URGENCY_TIERS else None,
            'automated': bool(r.automated),
            'slot_type': r.slot_type or UNSET,
            'appointment_status': r.appointment_status or UNSET,
            'is_adult': r.is_adult,
            'is_medical': r.is_medical,
            'time_to_processed_mins': r.time_to_processed_mins,
        }
        for r in requests
    ]
    frame = pd.DataFrame.from_records(records, columns=FRAME_COLUMNS)
    frame = frame.astype({'automated': bool, 'is_adult': bool, 'is_medical': bool})
    frame['request_hour'] = frame['request_hour'].astype('Int64')
    return frame


def week_start(d: date) -> date:
    """Monday of the ISO week containing d."""
    return d - timedelta(days=d.weekday())


def count_weeks(requests: Iterable[Request]) -> int:
    """Distinct ISO weeks observed; never less than 1."""
    weeks = {week_start(r.request_date) for r in requests if r.request_date is not None}
    return len(weeks) or 1


def rolling_average(daily_counts: Dict[date, int],
                    window: int = ROLLING_WINDOW_DAYS) -> List[Dict]:
    """Trailing mean over the most recent `window` observed dates.

    Dates absent from the data are skipped rather than counted as zero.
    """
    series = pd.Series(daily_counts, dtype=float).sort_index()
    rolled = series.rolling(window).mean().dropna()
    return [{'date': d, 'value': round(float(v), 1)} for d, v in rolled.items()]


def pareto_analysis(counts: Dict[str, int], top_n: int = PARETO_TOP_N) -> List[Dict]:
    """Rank categories by volume with a cumulative percentage curve."""
    total = sum(counts.values())
    if total == 0:
        return []
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]
    cumulative = np.cumsum([count for _, count in ranked])
    return [
        {
            'symptom': symptom,
            'count': count,
            'percentage': count / total * 100,
            'cumulative': float(running) / total * 100,
        }
        for (symptom, count), running in zip(ranked, cumulative)
    ]


def _counts(series: pd.Series, index: Sequence) -> Dict:
    counts = series.dropna().value_counts()
    return {key: int(counts.get(key, 0)) for key in index}


def _ranked_counts(series: pd.Series) -> Dict[str, int]:
    counts = series.dropna().value_counts()
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
    return {key: int(value) for key, value in ranked}


def _cross_counts(frame: pd.DataFrame, row: str, col: str,
                  rows: Sequence, cols: Sequence) -> Dict:
    grid = {r: {c: 0 for c in cols} for r in rows}
    frame = frame.dropna(subset=[row, col])
    if frame.empty:
        return grid
    table = pd.crosstab(frame[row], frame[col])
    for r in rows:
        if r not in table.index:
            continue
        for c in cols:
            if c in table.columns:
                grid[r][c] = int(table.at[r, c])
    return grid


def _ratio(part: int, whole: int) -> Optional[float]:
    return part / whole * 100 if whole > 0 else None


def _month_label(d: date) -> str:
    return d.strftime('%B %Y')


def _resolution_stats(frame: pd.DataFrame) -> Dict[str, Optional[float]]:
    times = pd.to_numeric(frame['time_to_processed_mins'], errors='coerce').dropna()
    times = times[(times >= 0) & (times < RESOLUTION_OUTLIER_MINS)].to_numpy()
    if len(times) == 0:
        return {'avg_resolution_mins': None, 'median_resolution_mins': None}
    ordered = np.sort(times)
    return {
        'avg_resolution_mins': int(np.floor(np.mean(times) + 0.5)),
        'median_resolution_mins': float(ordered[len(ordered) // 2]),
    }


def _pathway_automation(medical: pd.DataFrame) -> List[Dict]:
    rows = []
    for pathway, group in medical.groupby('pathway', sort=True):
        total = len(group)
        automated = int(group['automated'].sum())
        by_urgency = []
        for tier in URGENCY_TIERS:
            tier_group = group[group['urgency'] == tier]
            if tier_group.empty:
                continue
            tier_automated = int(tier_group['automated'].sum())
            by_urgency.append({
                'urgency': tier,
                'total': len(tier_group),
                'automated': tier_automated,
                'not_automated': len(tier_group) - tier_automated,
                'not_automated_pct': _ratio(len(tier_group) - tier_automated, len(tier_group)),
            })
        rows.append({
            'pathway': pathway,
            'total': total,
            'automated': automated,
            'not_automated': total - automated,
            'automated_pct': _ratio(automated, total),
            'not_automated_pct': _ratio(total - automated, total),
            'by_urgency': by_urgency,
        })
    rows.sort(key=lambda p: (-p['not_automated'], p['pathway']))
    return rows


def _is_booked(status: str) -> bool:
    lowered = str(status).lower()
    return any(keyword in lowered for keyword in APPOINTMENT_STATUS_KEYWORDS)


def _pathway_opportunities(medical: pd.DataFrame) -> List[Dict]:
    """Appointment rate of adult, non-automated requests per pathway."""
    manual = medical[medical['is_adult'] & ~medical['automated']]
    rows = []
    for pathway, group in manual.groupby('pathway', sort=True):
        if len(group) < MIN_PATHWAY_OBSERVATIONS:
            continue
        statuses = group.loc[group['appointment_status'] != UNSET, 'appointment_status']
        booked = int(statuses.map(_is_booked).sum())
        rows.append({
            'pathway': pathway,
            'total': len(group),
            'with_appointment': booked,
            'appointment_rate': _ratio(booked, len(group)),
            'statuses': _ranked_counts(statuses),
        })
    rows.sort(key=lambda p: (-(p['appointment_rate'] or 0), p['pathway']))
    return rows


def _weekly_average(count: int, num_weeks: int) -> int:
    return int(np.floor(count / max(1, num_weeks) + 0.5))


def _demand_by_day_urgency(medical: pd.DataFrame, num_weeks: int) -> Dict[str, Dict[str, int]]:
    """Average weekly medical submissions per submission day, by urgency."""
    counts = _cross_counts(medical, 'weekday', 'urgency', WEEKDAYS, URGENCY_TIERS)
    day_totals = _counts(medical['weekday'], WEEKDAYS)
    averages = {}
    for day in WEEKDAYS:
        row = {tier: _weekly_average(counts[day][tier], num_weeks) for tier in URGENCY_TIERS}
        row['total'] = _weekly_average(day_totals[day], num_weeks)
        averages[day] = row
    return averages


def _by_request_type(frame: pd.DataFrame, request_types: Sequence[str]) -> Dict[str, Dict]:
    breakdown = {}
    for request_type in request_types:
        group = frame[frame['request_type'] == request_type]
        breakdown[request_type] = {
            'total': len(group),
            'by_day': _counts(group['weekday'], WEEKDAYS),
            'by_hour': _counts(group['request_hour'], HOURS),
            'slot_types': _ranked_counts(group['slot_type']),
        }
    return breakdown


def analyze_requests(requests: Iterable[Request]) -> Dict:
    """Compute descriptive demand metrics over the full request collection."""
    requests = list(requests)
    frame = requests_to_frame(requests)
    medical = frame[frame['is_medical']]
    adult_medical = medical[medical['is_adult']]

    dates = sorted(d for d in frame['request_date'] if d is not None and not pd.isna(d))
    months = [_month_label(d) for d in sorted({date(d.year, d.month, 1) for d in dates})]
    num_weeks = count_weeks(requests)

    daily_counts = {}
    for d in dates:
        daily_counts[d] = daily_counts.get(d, 0) + 1

    symptom_counts = _ranked_counts(medical['symptom'])

    by_month_symptom = {m: {} for m in months}
    for d, symptom in zip(medical['request_date'], medical['symptom']):
        if d is None or pd.isna(d):
            continue
        bucket = by_month_symptom[_month_label(d)]
        bucket[symptom] = bucket.get(symptom, 0) + 1

    urgency_counts = _counts(medical['urgency'], URGENCY_TIERS)

    urgency_by_symptom = {}
    for symptom, group in medical.groupby('symptom', sort=True):
        entry = _counts(group['urgency'], URGENCY_TIERS)
        entry['total'] = len(group)
        urgency_by_symptom[symptom] = entry

    automation_by_urgency = {}
    for tier in URGENCY_TIERS:
        tier_rows = medical[medical['urgency'] == tier]
        automated = int(tier_rows['automated'].sum())
        automation_by_urgency[tier] = {
            'total': len(tier_rows),
            'automated': automated,
            'percentage': _ratio(automated, len(tier_rows)),
        }

    request_types = list(dict.fromkeys(t for t in frame['request_type'] if t))

    result = {
        'total_submissions': len(frame),
        'medical_submissions': len(medical),
        'adult_medical_submissions': len(adult_medical),
        'tenants': list(dict.fromkeys(t for t in frame['tenant'] if t)),
        'months': months,
        'date_range': {'min': dates[0], 'max': dates[-1]} if dates else None,
        'num_weeks': num_weeks,
        'by_day_of_week': _counts(frame['weekday'], WEEKDAYS),
        'by_hour': _counts(frame['request_hour'], HOURS),
        'heatmap': _cross_counts(frame, 'weekday', 'request_hour', WEEKDAYS, HOURS),
        'rolling_7_day': rolling_average(daily_counts),
        'symptom_counts': symptom_counts,
        'pareto': pareto_analysis(symptom_counts),
        'by_month_symptom': by_month_symptom,
        'urgency_counts': urgency_counts,
        'total_urgency': sum(urgency_counts.values()),
        'urgency_by_day': _cross_counts(medical, 'weekday', 'urgency', WEEKDAYS, URGENCY_TIERS),
        'demand_by_day_urgency': _demand_by_day_urgency(medical, num_weeks),
        'urgency_by_hour': _cross_counts(medical, 'request_hour', 'urgency', HOURS, URGENCY_TIERS),
        'urgency_by_symptom': urgency_by_symptom,
        'automation_by_urgency': automation_by_urgency,
        'pathway_automation': _pathway_automation(medical),
        'pathway_opportunities': _pathway_opportunities(medical),
        'slot_type_counts': _ranked_counts(frame['slot_type']),
        'request_types': request_types,
        'by_request_type': _by_request_type(frame, request_types),
        **_resolution_stats(medical),
    }

    logger.info(
        "Analysed %d submissions (%d medical) across %d week(s)",
        result['total_submissions'], result['medical_submissions'], num_weeks
    )
    return result
