import pytest

from conftest import make_request, many
from triage_capacity.consistency import (
    manual_triage_requests, infer_slot_urgency, mismatch_direction, urgency_slot_distribution,
    pathway_consistency, detect_mismatches, analyze_consistency
)


def manual(n, slot_type, urgency="AMBER", pathway="Triage.Headache", **kwargs):
    return many(n, urgency=urgency, pathway=pathway, automated=False, slot_type=slot_type, **kwargs)


class TestSelection:
    def test_only_manual_medical_with_slot_type(self):
        requests = [
            make_request(automated=False, slot_type="GP Same Day"),
            make_request(automated=True, slot_type="GP Same Day"),
            make_request(automated=False, slot_type="-"),
            make_request(automated=False, slot_type=""),
            make_request(automated=False, slot_type="GP Same Day", request_type="Admin"),
        ]
        assert len(manual_triage_requests(requests)) == 1


class TestInferSlotUrgency:
    @pytest.mark.parametrize("slot_type, expected", [
        ("RED - Duty Doctor", "RED"),
        ("GP Same Day", "RED"),
        ("same-day nurse", "RED"),
        ("Amber clinic", "AMBER"),
        ("Next Day Telephone", "AMBER"),
        ("Yellow 72h", "YELLOW"),
        ("GREEN", "GREEN"),
        ("Routine Review", "GREEN"),
        ("Pharmacist", None),
        ("", None),
        (None, None),
    ])
    def test_default_rules(self, slot_type, expected):
        assert infer_slot_urgency(slot_type) == expected

    def test_rules_are_data(self):
        rules = [("urgent", "RED"), ("pharm", "GREEN")]
        assert infer_slot_urgency("Urgent Care", rules) == "RED"
        assert infer_slot_urgency("Pharmacist", rules) == "GREEN"
        assert infer_slot_urgency("Routine", rules) is None

    def test_direction_by_severity(self):
        assert mismatch_direction("AMBER", "RED") == 'upgraded'
        assert mismatch_direction("AMBER", "GREEN") == 'downgraded'
        assert mismatch_direction("GREEN", "YELLOW") == 'upgraded'


class TestDistribution:
    def test_urgency_to_slot_type(self):
        requests = manual(3, "Next Day GP") + manual(1, "GP Same Day") + manual(2, "Routine", urgency="GREEN")
        distribution = urgency_slot_distribution(requests)

        amber = distribution["AMBER"]
        assert amber['total'] == 4
        assert [(s.slot_type, s.count, s.percentage) for s in amber['slot_types']] == [
            ("Next Day GP", 3, 75.0), ("GP Same Day", 1, 25.0)
        ]
        assert distribution["RED"] == {'total': 0, 'slot_types': []}
        assert distribution["GREEN"]['total'] == 2


class TestPathwayConsistency:
    def test_fully_consistent_group_scores_zero(self):
        records = pathway_consistency(manual(4, "Next Day GP"))
        assert len(records) == 1
        record = records[0]
        assert record.variation_score == 0
        assert record.has_variation is False
        assert record.top_slot_type_pct == 100
        assert record.mismatch is None

    def test_even_split_scores_fifty(self):
        records = pathway_consistency(manual(2, "Next Day GP") + manual(2, "Physio"))
        assert records[0].variation_score == 50
        assert records[0].has_variation is True

    def test_groups_below_noise_floor_dropped(self):
        assert pathway_consistency(manual(2, "Next Day GP")) == []

    def test_ranked_by_variation_then_volume(self):
        requests = (
            manual(5, "Next Day GP", pathway="Triage.Cough")
            + manual(3, "Next Day GP", pathway="Triage.Rash") + manual(3, "Physio", pathway="Triage.Rash")
            + manual(2, "Next Day GP", pathway="Triage.Ear") + manual(1, "Physio", pathway="Triage.Ear")
            + manual(4, "Next Day GP", pathway="Triage.Back") + manual(2, "Physio", pathway="Triage.Back")
        )
        records = pathway_consistency(requests)
        assert [r.pathway for r in records] == ["Triage.Rash", "Triage.Back", "Triage.Ear", "Triage.Cough"]
        assert records[1].variation_score == pytest.approx(100 / 3)
        assert records[1].total > records[2].total

    def test_top_slot_type_flags_mismatch(self):
        records = pathway_consistency(manual(3, "GP Same Day"))
        assert records[0].mismatch == 'upgraded'
        assert records[0].symptom == "Headache"


class TestMismatches:
    def test_aggregated_and_sorted(self):
        requests = (
            manual(3, "GP Same Day") + manual(1, "RED Duty")
            + manual(2, "Routine", pathway="Triage.Rash")
            + manual(4, "Next Day GP")
            + manual(5, "Pharmacist")
            + manual(2, "GP Same Day", urgency=None)
        )
        mismatches = detect_mismatches(requests)

        assert [(m.pathway, m.recommended_urgency, m.assigned_urgency, m.count, m.direction)
                for m in mismatches] == [
            ("Triage.Headache", "AMBER", "RED", 4, 'upgraded'),
            ("Triage.Rash", "AMBER", "GREEN", 2, 'downgraded'),
        ]
        assert [(s.slot_type, s.count) for s in mismatches[0].slot_types] == [
            ("GP Same Day", 3), ("RED Duty", 1)
        ]

    def test_missing_pathway_grouped_as_unset(self):
        requests = manual(2, "GP Same Day", pathway=None) + manual(2, "Routine", pathway="Triage.Rash")
        mismatches = detect_mismatches(requests)
        assert [(m.pathway, m.count) for m in mismatches] == [("-", 2), ("Triage.Rash", 2)]

    def test_report(self):
        requests = manual(3, "GP Same Day") + manual(2, "Next Day GP") + many(4, automated=True)
        report = analyze_consistency(requests)
        assert report['total_non_automated'] == 5
        assert report['mismatch_count'] == 3
        assert len(report['pathway_consistency']) == 1
        assert report['pathway_consistency'][0].variation_score == pytest.approx(40)

    def test_empty_input(self):
        report = analyze_consistency([])
        assert report['total_non_automated'] == 0
        assert report['pathway_consistency'] == []
        assert report['mismatches'] == []
        assert report['mismatch_count'] == 0
        assert all(v['total'] == 0 for v in report['urgency_to_slot_type'].values())
