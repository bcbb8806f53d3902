"""Configuration constants for the Triage Slot Planner."""

import os

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DEFAULT_OPEN_DAYS = (0, 1, 2, 3, 4)

# Severity order, most urgent first
URGENCY_TIERS = ("RED", "AMBER", "YELLOW", "GREEN")

# Openings after submission at which capacity is needed.
# AMBER is resolved against the next calendar day instead.
LEAD_OPEN_DAYS = {
    "RED": 0,
    "YELLOW": 3,
    "GREEN": 5
}

MEDICAL_REQUEST_TYPE = "Medical"
UNSET = "-"
ADULT_AGE = 18

RECOMMENDATION_BUFFER_PCT = 10
MIN_CONSISTENCY_OBSERVATIONS = 3
MIN_PATHWAY_OBSERVATIONS = 5
PARETO_TOP_N = 15
ROLLING_WINDOW_DAYS = 7
HEADER_MATCH_THRESHOLD = 0.8
RESOLUTION_OUTLIER_MINS = 10000

DEFAULT_SLOT_CAPACITY = {
    "GREEN": 10,
    "YELLOW": 8,
    "AMBER": 6,
    "RED": 4
}

# Ordered (substring, tier) pairs matched against slot type names.
# First match wins.
SLOT_URGENCY_RULES = [
    ("red", "RED"),
    ("same day", "RED"),
    ("same-day", "RED"),
    ("amber", "AMBER"),
    ("next day", "AMBER"),
    ("next-day", "AMBER"),
    ("yellow", "YELLOW"),
    ("green", "GREEN"),
    ("routine", "GREEN"),
]

APPOINTMENT_STATUS_KEYWORDS = ("booking", "scheduled", "confirmed")

EXPECTED_HEADERS = [
    'Tenant', 'Request date', 'Request year', 'Request month-year', 'Request month',
    'Request day', 'Request time', 'Request type', 'Admin type', 'Pathway',
    'Urgency', 'Automated', 'Guideline used', 'Slot type', 'Appointment date',
    'Appointment day', 'Appointment status', 'Patient age', 'A&E override',
    'Age between created - invited', 'Age between created - booking',
    'Age between created - scheduled', 'Age between created - processed',
    'Patient selected preferred practitioner'
]

LOG_LEVEL = os.environ.get("TRIAGE_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
