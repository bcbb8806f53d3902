"""Loading and validation of triage exports for the Triage Slot Planner."""

import math
import numbers
import re
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union
import pandas as pd
from triage_capacity.config import EXPECTED_HEADERS, HEADER_MATCH_THRESHOLD, URGENCY_TIERS, UNSET
from triage_capacity.models import Request
from triage_capacity.logger import get_logger

logger = get_logger(__name__)

EXCEL_EPOCH = date(1899, 12, 30)

# column key -> header substring
COLUMNS = {
    'tenant': 'tenant',
    'request_date': 'request date',
    'request_day': 'request day',
    'request_time': 'request time',
    'request_type': 'request type',
    'pathway': 'pathway',
    'urgency': 'urgency',
    'automated': 'automated',
    'slot_type': 'slot type',
    'appointment_status': 'appointment status',
    'patient_age': 'patient age',
    'time_to_processed': 'created - processed',
}


def validate_headers(headers: Iterable, threshold: float = HEADER_MATCH_THRESHOLD) -> bool:
    """True when enough of the expected headers appear, matched loosely by substring."""
    normalized = [str(h).strip().lower() for h in headers if h is not None and str(h).strip()]
    expected = [h.lower() for h in EXPECTED_HEADERS]
    matched = sum(
        1 for e in expected
        if any(e in h or h in e for h in normalized)
    )
    return matched / len(expected) >= threshold


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT or value is pd.NA or (isinstance(value, str) and not value.strip())


NUMERIC = re.compile(r'^\s*\d+(\.\d+)?\s*$')
ISO_DATE = re.compile(r'^\d{4}-\d{1,2}-\d{1,2}')


def _numeric_text(value):
    # CSV exports carry Excel serials as text
    if isinstance(value, str) and NUMERIC.match(value):
        return float(value)
    return value


def excel_value_to_date(value) -> Optional[date]:
    """Excel serial numbers, datetimes and date strings to a date."""
    value = _numeric_text(value)
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return EXCEL_EPOCH + timedelta(days=math.floor(value))
    text = str(value).strip()
    if ISO_DATE.match(text):
        parsed = pd.to_datetime(text, format='ISO8601', errors='coerce')
    else:
        # UK exports write dd/mm/yyyy
        parsed = pd.to_datetime(text, errors='coerce', dayfirst=True)
    return None if pd.isna(parsed) else parsed.date()


def excel_value_to_hour(value) -> Optional[int]:
    """Excel day fractions, times and 'HH:MM' strings to an hour of day."""
    value = _numeric_text(value)
    if _is_blank(value):
        return None
    if isinstance(value, (datetime, time)):
        return value.hour
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return int(math.floor((value % 1) * 24))
    match = re.match(r'\s*(\d{1,2}):\d{2}', str(value))
    if match and int(match.group(1)) < 24:
        return int(match.group(1))
    return None


def parse_duration_minutes(value) -> Optional[int]:
    """'1 hour(s) 12 minute(s)' -> 72."""
    if _is_blank(value) or str(value).strip() == UNSET:
        return None
    text = str(value)
    hours = re.search(r'(\d+)\s*hour', text)
    minutes = re.search(r'(\d+)\s*minute', text)
    if not hours and not minutes:
        return None
    return (int(hours.group(1)) if hours else 0) * 60 + (int(minutes.group(1)) if minutes else 0)


def _text(value, default: str = '') -> str:
    return default if _is_blank(value) else str(value).strip()


def _age(value) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _automated(value) -> bool:
    if isinstance(value, bool):
        return value
    return _text(value).lower() == 'true'


def _urgency(value) -> Optional[str]:
    tier = _text(value, UNSET).upper()
    return tier if tier in URGENCY_TIERS else None


def _find_columns(headers: List) -> dict:
    lowered = [str(h).lower() for h in headers]
    found = {}
    for key, needle in COLUMNS.items():
        found[key] = next((headers[i] for i, h in enumerate(lowered) if needle in h), None)
    return found


def parse_triage_rows(frame: pd.DataFrame) -> List[Request]:
    """Normalize a raw export DataFrame into Request records."""
    cols = _find_columns(list(frame.columns))
    missing = [key for key, col in cols.items() if col is None]
    if missing:
        logger.warning("Triage export has no column for: %s", ", ".join(missing))

    def cell(row, key):
        col = cols[key]
        return None if col is None else row[col]

    requests = []
    for _, row in frame.iterrows():
        if all(_is_blank(v) for v in row.tolist()):
            continue
        requests.append(Request(
            tenant=_text(cell(row, 'tenant')),
            request_date=excel_value_to_date(cell(row, 'request_date')),
            request_day=re.sub(r'\s+', '', _text(cell(row, 'request_day'))),
            request_hour=excel_value_to_hour(cell(row, 'request_time')),
            request_type=_text(cell(row, 'request_type')),
            pathway=_text(cell(row, 'pathway'), UNSET),
            urgency=_urgency(cell(row, 'urgency')),
            automated=_automated(cell(row, 'automated')),
            slot_type=_text(cell(row, 'slot_type'), UNSET),
            appointment_status=_text(cell(row, 'appointment_status'), UNSET),
            patient_age=_age(cell(row, 'patient_age')),
            time_to_processed_mins=parse_duration_minutes(cell(row, 'time_to_processed'))
        ))
    return requests


def read_export(source: Union[str, Path, object], filename: Optional[str] = None) -> pd.DataFrame:
    """Read the first sheet of an Excel export, or a CSV export."""
    name = filename or getattr(source, 'name', None) or str(source)
    if Path(name).suffix.lower() == '.csv':
        return pd.read_csv(source)
    return pd.read_excel(source, sheet_name=0, engine='openpyxl')


def load_triage_export(source: Union[str, Path, object], filename: Optional[str] = None) -> List[Request]:
    """Read, validate and normalize a triage export."""
    frame = read_export(source, filename)
    if frame.empty:
        raise ValueError("File contains no data rows")
    if not validate_headers(frame.columns):
        logger.warning("Rejected export with headers: %s", list(frame.columns))
        raise ValueError(
            "File format does not match the Smart Triage extract. "
            "Please ensure you are uploading the correct file."
        )
    requests = parse_triage_rows(frame)
    logger.info("Loaded %d triage requests from %s", len(requests), filename or getattr(source, 'name', source))
    return requests


def validate_requests(requests: List[Request]) -> Tuple[bool, str]:
    """Check that a parsed export can drive the slot analysis."""
    errors = []

    if not requests:
        errors.append("No requests found in uploaded file")
    else:
        medical = [r for r in requests if r.is_medical]
        if not medical:
            errors.append("No Medical requests found; urgency and slot analysis need them")
        elif not any(r.urgency for r in medical):
            errors.append("No Medical requests carry an urgency")
        if not any(r.weekday for r in requests):
            errors.append("No request day values could be matched to a weekday")

    if errors:
        return False, "\n".join(errors)
    dated = [r.request_date for r in requests if r.request_date]
    span = f" from {min(dated):%d %b %Y} to {max(dated):%d %b %Y}" if dated else ""
    return True, f"✅ Loaded {len(requests)} requests{span}"
