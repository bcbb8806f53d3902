from datetime import date, timedelta

import pytest

from triage_capacity.models import Request

# A Monday
WEEK_START = date(2025, 12, 1)


def make_request(day="Monday", urgency="RED", request_type="Medical", request_date="auto",
                 hour=9, pathway="Triage.Headache", automated=True, slot_type="-",
                 appointment_status="-", patient_age=40, tenant="Rushcliffe", minutes=None):
    """Build a Request; the date defaults to `day` in the week of WEEK_START."""
    if request_date == "auto":
        days = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
        request_date = WEEK_START + timedelta(days=days.index(day)) if day in days else None
    return Request(
        tenant=tenant,
        request_date=request_date,
        request_day=day,
        request_hour=hour,
        request_type=request_type,
        pathway=pathway,
        urgency=urgency,
        automated=automated,
        slot_type=slot_type,
        appointment_status=appointment_status,
        patient_age=patient_age,
        time_to_processed_mins=minutes
    )


def many(n, **kwargs):
    return [make_request(**kwargs) for _ in range(n)]


@pytest.fixture
def scenario_requests():
    """5 RED Monday, 3 AMBER Friday, 2 YELLOW Monday, all in one week."""
    return (
        many(5, day="Monday", urgency="RED")
        + many(3, day="Friday", urgency="AMBER")
        + many(2, day="Monday", urgency="YELLOW")
    )
