from datetime import timedelta

import pytest

from conftest import make_request, many, WEEK_START
from triage_capacity.config import WEEKDAYS, URGENCY_TIERS
from triage_capacity.models import OperatingCalendar
from triage_capacity.capacity import (
    is_open_day, nth_open_day_after, capacity_target, accumulate_capacity,
    average_profile, translate_capacity, empty_profile
)

MON, TUE, WED, THU, FRI, SAT, SUN = range(7)


def cells_with_demand(profile):
    return {
        (day, tier): value
        for day, cells in profile.items()
        for tier, value in cells.items()
        if tier != 'total' and value
    }


class TestOpenDays:
    def test_weekdays_open_weekend_closed(self):
        assert all(is_open_day(d) for d in (MON, TUE, WED, THU, FRI))
        assert not is_open_day(SAT)
        assert not is_open_day(SUN)

    @pytest.mark.parametrize("day, n, expected", [
        (MON, 0, MON),
        (FRI, 0, FRI),
        (SAT, 0, MON),
        (SUN, 0, MON),
        (MON, 1, TUE),
        (FRI, 1, MON),
        (SAT, 1, MON),
        (MON, 3, THU),
        (SUN, 3, WED),
        (FRI, 5, FRI),
        (WED, 5, WED),
    ])
    def test_nth_open_day_after(self, day, n, expected):
        assert nth_open_day_after(day, n) == expected

    def test_nth_open_day_rejects_bad_input(self):
        with pytest.raises(ValueError):
            nth_open_day_after(7, 1)
        with pytest.raises(ValueError):
            nth_open_day_after(MON, -1)


class TestCapacityTarget:
    def test_red_same_opening(self):
        assert capacity_target(MON, "RED") == (MON, "RED")
        assert capacity_target(SAT, "RED") == (MON, "RED")

    def test_amber_next_calendar_day(self):
        assert capacity_target(MON, "AMBER") == (TUE, "AMBER")
        assert capacity_target(THU, "AMBER") == (FRI, "AMBER")
        assert capacity_target(SUN, "AMBER") == (MON, "AMBER")

    def test_amber_collapses_to_red_before_closed_day(self):
        assert capacity_target(FRI, "AMBER") == (FRI, "RED")
        assert capacity_target(SAT, "AMBER") == (MON, "RED")

    def test_yellow_and_green_lead_times(self):
        assert capacity_target(MON, "YELLOW") == (THU, "YELLOW")
        assert capacity_target(FRI, "GREEN") == (FRI, "GREEN")
        assert capacity_target(TUE, "GREEN") == (TUE, "GREEN")

    def test_unknown_tier_raises(self):
        with pytest.raises(ValueError):
            capacity_target(MON, "BLUE")

    def test_six_day_calendar_keeps_friday_amber(self):
        calendar = OperatingCalendar.from_names(WEEKDAYS[:6])
        assert capacity_target(FRI, "AMBER", calendar) == (SAT, "AMBER")
        assert capacity_target(SAT, "AMBER", calendar) == (SAT, "RED")
        assert capacity_target(THU, "YELLOW", calendar) == (MON, "YELLOW")


class TestTranslation:
    def test_end_to_end_scenario(self, scenario_requests):
        profile = translate_capacity(scenario_requests, accept_weekend_requests=False)

        assert cells_with_demand(profile) == {
            ("Monday", "RED"): 5,
            ("Friday", "RED"): 3,
            ("Thursday", "YELLOW"): 2,
        }
        assert profile["Friday"]["AMBER"] == 0
        assert profile["Monday"]["AMBER"] == 0
        assert list(profile) == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

    def test_deterministic(self, scenario_requests):
        first = translate_capacity(scenario_requests, accept_weekend_requests=True)
        second = translate_capacity(list(scenario_requests), accept_weekend_requests=True)
        assert first == second

    def test_weekend_requests_excluded_when_not_accepted(self):
        weekend = many(4, day="Saturday", urgency="RED") + many(2, day="Sunday", urgency="GREEN")
        raw = accumulate_capacity(weekend, accept_weekend_requests=False)
        assert sum(cells['total'] for cells in raw.values()) == 0

    def test_weekend_red_lands_on_monday_when_accepted(self):
        raw = accumulate_capacity([make_request(day="Saturday", urgency="RED")],
                                  accept_weekend_requests=True)
        assert cells_with_demand(raw) == {("Monday", "RED"): 1}

    def test_tier_conservation_with_weekends_accepted(self):
        requests = [
            make_request(day=day, urgency=tier)
            for day in WEEKDAYS for tier in URGENCY_TIERS
        ]
        requests.append(make_request(day="Tuesday", urgency=None))
        requests.append(make_request(day="Tuesday", urgency="RED", request_type="Admin"))

        raw = accumulate_capacity(requests, accept_weekend_requests=True)

        counted = sum(cells[t] for cells in raw.values() for t in URGENCY_TIERS)
        assert counted == len(WEEKDAYS) * len(URGENCY_TIERS)
        assert sum(cells['total'] for cells in raw.values()) == counted

    def test_null_urgency_and_unknown_day_skipped(self):
        requests = [
            make_request(day="Monday", urgency=None),
            make_request(day="Funday", urgency="RED"),
            make_request(day=" monday ", urgency="RED"),
        ]
        raw = accumulate_capacity(requests)
        assert cells_with_demand(raw) == {("Monday", "RED"): 1}

    def test_averages_over_observed_weeks(self):
        week_one = many(3, day="Monday", urgency="RED")
        week_two = many(2, day="Monday", urgency="RED",
                        request_date=WEEK_START + timedelta(days=7))
        profile = translate_capacity(week_one + week_two)
        # 5 / 2 weeks rounds half up
        assert profile["Monday"]["RED"] == 3

    def test_explicit_num_weeks(self, scenario_requests):
        profile = translate_capacity(scenario_requests, num_weeks=5)
        assert profile["Monday"]["RED"] == 1
        assert profile["Thursday"]["YELLOW"] == 0

    def test_empty_input_gives_zero_profile(self):
        profile = translate_capacity([])
        assert profile == empty_profile()
        assert all(v == 0 for cells in profile.values() for v in cells.values())

    def test_average_profile_never_divides_by_zero(self):
        raw = empty_profile()
        raw["Monday"]["RED"] = 4
        assert average_profile(raw, 0)["Monday"]["RED"] == 4

    def test_six_day_calendar_profile_has_saturday(self):
        calendar = OperatingCalendar.from_names(WEEKDAYS[:6])
        profile = translate_capacity([make_request(day="Friday", urgency="AMBER")], calendar=calendar)
        assert cells_with_demand(profile) == {("Saturday", "AMBER"): 1}
