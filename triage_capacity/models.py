"""Data models for the Triage Slot Planner."""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
from triage_capacity.config import (
    WEEKDAYS, DEFAULT_OPEN_DAYS, URGENCY_TIERS, MEDICAL_REQUEST_TYPE, UNSET, ADULT_AGE
)

# day -> tier -> slots
SlotCapacityConfig = Dict[str, Dict[str, int]]
CapacityProfile = Dict[str, Dict[str, int]]


def match_weekday(text: Optional[str]) -> Optional[str]:
    """Return the canonical weekday name contained in text, if any."""
    if not text:
        return None
    lowered = str(text).lower()
    for day in WEEKDAYS:
        if day.lower() in lowered:
            return day
    return None


def weekday_index(day: str) -> int:
    return WEEKDAYS.index(day)


def severity_rank(tier: str) -> int:
    """0 for RED through 3 for GREEN."""
    if tier not in URGENCY_TIERS:
        raise ValueError(f"Unknown urgency tier: {tier!r}")
    return URGENCY_TIERS.index(tier)


def symptom_from_pathway(pathway: str) -> str:
    """'Triage.Back_Pain' -> 'Back Pain'."""
    if "." in pathway:
        return pathway.split(".")[-1].replace("_", " ")
    return pathway


@dataclass(frozen=True)
class Request:
    tenant: str
    request_date: Optional[date]
    request_day: str
    request_hour: Optional[int]
    request_type: str
    pathway: str
    urgency: Optional[str]
    automated: bool
    slot_type: str = UNSET
    appointment_status: str = UNSET
    patient_age: int = 0
    time_to_processed_mins: Optional[float] = None

    @property
    def is_adult(self) -> bool:
        return self.patient_age >= ADULT_AGE

    @property
    def is_medical(self) -> bool:
        return self.request_type == MEDICAL_REQUEST_TYPE

    @property
    def weekday(self) -> Optional[str]:
        return match_weekday(self.request_day)

    @property
    def symptom(self) -> str:
        return symptom_from_pathway(self.pathway or UNSET)

    @property
    def has_slot_type(self) -> bool:
        return bool(self.slot_type) and self.slot_type != UNSET


@dataclass(frozen=True)
class OperatingCalendar:
    """The set of weekday indices (Monday=0) on which the practice offers appointments."""
    open_days: FrozenSet[int] = frozenset(DEFAULT_OPEN_DAYS)

    def __post_init__(self):
        days = frozenset(self.open_days)
        if not days:
            raise ValueError("An operating calendar needs at least one open day")
        if any(d not in range(len(WEEKDAYS)) for d in days):
            raise ValueError(f"Open days must be weekday indices 0-6, got {sorted(days)}")
        object.__setattr__(self, "open_days", days)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "OperatingCalendar":
        indices = []
        for name in names:
            day = match_weekday(name)
            if day is None:
                raise ValueError(f"Unknown weekday: {name!r}")
            indices.append(weekday_index(day))
        return cls(frozenset(indices))

    def is_open(self, day: int) -> bool:
        return day in self.open_days

    @property
    def open_day_names(self) -> List[str]:
        return [WEEKDAYS[d] for d in sorted(self.open_days)]

    @property
    def closed_day_names(self) -> List[str]:
        return [d for i, d in enumerate(WEEKDAYS) if i not in self.open_days]


DEFAULT_CALENDAR = OperatingCalendar()


@dataclass
class GapRow:
    day: str
    needed: Dict[str, int]
    capacity: Dict[str, int]
    gap: Dict[str, int]
    status: Dict[str, str] = field(default_factory=dict)


@dataclass
class SlotShare:
    slot_type: str
    count: int
    percentage: Optional[float] = None


@dataclass
class ConsistencyRecord:
    pathway: str
    urgency: str
    total: int
    slot_types: List[SlotShare]
    top_slot_type: Optional[str]
    top_slot_type_pct: float
    has_variation: bool
    variation_score: float
    mismatch: Optional[str] = None

    @property
    def symptom(self) -> str:
        return symptom_from_pathway(self.pathway)


@dataclass
class MismatchRecord:
    pathway: str
    recommended_urgency: str
    assigned_urgency: str
    count: int
    slot_types: List[SlotShare]
    direction: str

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.pathway, self.recommended_urgency, self.assigned_urgency)
