"""Consistency of manual triage decisions for the Triage Slot Planner.

Looks at what clinicians actually book for requests they triage by hand,
how consistently they do it for a given pathway and urgency, and where the
slot type they chose implies a different urgency than the one recommended.

Urgency is inferred from slot type *names* by substring matching. This is a
best-effort heuristic: an unrecognised name yields no mismatch, so the
analysis under-reports rather than inventing disagreements.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from triage_capacity.config import URGENCY_TIERS, UNSET, SLOT_URGENCY_RULES, MIN_CONSISTENCY_OBSERVATIONS
from triage_capacity.models import (
    Request, SlotShare, ConsistencyRecord, MismatchRecord, severity_rank
)
from triage_capacity.logger import get_logger

logger = get_logger(__name__)

SlotUrgencyRules = Sequence[Tuple[str, str]]


def manual_triage_requests(requests: Iterable[Request]) -> List[Request]:
    """Medical, non-automated requests that were given a slot type."""
    return [r for r in requests if r.is_medical and not r.automated and r.has_slot_type]


def _slot_shares(slot_counts: Dict[str, int], total: int, with_pct: bool = True) -> List[SlotShare]:
    ranked = sorted(slot_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [
        SlotShare(
            slot_type=slot_type,
            count=count,
            percentage=(count / total * 100 if total > 0 else None) if with_pct else None
        )
        for slot_type, count in ranked
    ]


def infer_slot_urgency(slot_type: Optional[str],
                       rules: SlotUrgencyRules = SLOT_URGENCY_RULES) -> Optional[str]:
    """Urgency tier implied by a slot type name, or None when nothing matches."""
    if not slot_type:
        return None
    lowered = slot_type.lower()
    for substring, tier in rules:
        if substring.lower() in lowered:
            return tier
    return None


def mismatch_direction(recommended: str, assigned: str) -> str:
    """'upgraded' when the assigned tier is more severe than recommended."""
    return 'upgraded' if severity_rank(assigned) < severity_rank(recommended) else 'downgraded'


def urgency_slot_distribution(requests: Iterable[Request]) -> Dict[str, Dict]:
    """For each tier, which slot types clinicians assigned and how often."""
    buckets = {tier: {} for tier in URGENCY_TIERS}
    for r in manual_triage_requests(requests):
        if r.urgency not in buckets:
            continue
        slots = buckets[r.urgency]
        slots[r.slot_type] = slots.get(r.slot_type, 0) + 1

    distribution = {}
    for tier, slots in buckets.items():
        total = sum(slots.values())
        distribution[tier] = {'total': total, 'slot_types': _slot_shares(slots, total)}
    return distribution


def pathway_consistency(requests: Iterable[Request],
                        min_observations: int = MIN_CONSISTENCY_OBSERVATIONS,
                        rules: SlotUrgencyRules = SLOT_URGENCY_RULES) -> List[ConsistencyRecord]:
    """Slot type spread per (pathway, urgency), most inconsistent first."""
    groups: Dict[Tuple[str, str], Dict[str, int]] = {}
    for r in manual_triage_requests(requests):
        if r.urgency not in URGENCY_TIERS or not r.pathway:
            continue
        slots = groups.setdefault((r.pathway, r.urgency), {})
        slots[r.slot_type] = slots.get(r.slot_type, 0) + 1

    records = []
    for (pathway, urgency), slots in groups.items():
        total = sum(slots.values())
        if total < min_observations:
            continue
        shares = _slot_shares(slots, total)
        top = shares[0]
        has_variation = len(shares) > 1
        implied = infer_slot_urgency(top.slot_type, rules)
        records.append(ConsistencyRecord(
            pathway=pathway,
            urgency=urgency,
            total=total,
            slot_types=shares,
            top_slot_type=top.slot_type,
            top_slot_type_pct=top.percentage,
            has_variation=has_variation,
            variation_score=100 - top.percentage if has_variation else 0.0,
            mismatch=mismatch_direction(urgency, implied) if implied and implied != urgency else None
        ))

    records.sort(key=lambda c: (-c.variation_score, -c.total, c.pathway, severity_rank(c.urgency)))
    return records


def detect_mismatches(requests: Iterable[Request],
                      rules: SlotUrgencyRules = SLOT_URGENCY_RULES) -> List[MismatchRecord]:
    """Group requests whose slot type implies a different urgency than recommended."""
    groups: Dict[Tuple[str, str, str], Dict[str, int]] = {}
    for r in manual_triage_requests(requests):
        if r.urgency not in URGENCY_TIERS:
            continue
        assigned = infer_slot_urgency(r.slot_type, rules)
        if assigned is None or assigned == r.urgency:
            continue
        slots = groups.setdefault((r.pathway or UNSET, r.urgency, assigned), {})
        slots[r.slot_type] = slots.get(r.slot_type, 0) + 1

    mismatches = [
        MismatchRecord(
            pathway=pathway,
            recommended_urgency=recommended,
            assigned_urgency=assigned,
            count=sum(slots.values()),
            slot_types=_slot_shares(slots, 0, with_pct=False),
            direction=mismatch_direction(recommended, assigned)
        )
        for (pathway, recommended, assigned), slots in groups.items()
    ]
    mismatches.sort(key=lambda m: (-m.count, m.pathway, severity_rank(m.recommended_urgency),
                                   severity_rank(m.assigned_urgency)))
    return mismatches


def analyze_consistency(requests: Iterable[Request],
                        rules: SlotUrgencyRules = SLOT_URGENCY_RULES,
                        min_observations: int = MIN_CONSISTENCY_OBSERVATIONS) -> Dict:
    """Full non-automated inbox report."""
    manual = manual_triage_requests(requests)
    mismatches = detect_mismatches(manual, rules)
    report = {
        'total_non_automated': len(manual),
        'urgency_to_slot_type': urgency_slot_distribution(manual),
        'pathway_consistency': pathway_consistency(manual, min_observations, rules),
        'mismatches': mismatches,
        'mismatch_count': sum(m.count for m in mismatches),
    }
    logger.info(
        "Reviewed %d manually triaged requests: %d urgency mismatch(es)",
        report['total_non_automated'], report['mismatch_count']
    )
    return report
