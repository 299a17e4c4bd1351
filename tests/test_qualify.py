"""
Qualification scorer tests - deterministic points, thresholds and disqualifiers.
"""
import pytest

from caseintake.agents.qualify import score_lead
from caseintake.schemas.qualification import (
    LeadSnapshot,
    QualificationRules,
    SnapshotContact,
    SnapshotIntake,
)


def _snapshot(**overrides) -> LeadSnapshot:
    data = {
        "contact": SnapshotContact(phone="+15125559876"),
        "practice_area": True,
        "intake": SnapshotIntake(complete=True, answers={
            "incident_date": "2026-09-30", "incident_location": "I-35", "injuries": "whiplash",
        }),
        "calls": 2,
    }
    data.update(overrides)
    return LeadSnapshot(**data)


class TestScoreLead:
    def test_strong_lead_accepted(self):
        result = score_lead(_snapshot())
        # phone 40 + practice area 15 + complete intake 15 + two calls 10
        assert result.score == 80
        assert result.disposition == "accept"
        assert result.reasons[0] == "Score 80/100: accept"
        assert result.missing_fields == []

    def test_empty_lead_declined(self):
        result = score_lead(LeadSnapshot())
        assert result.score == 0
        assert result.disposition == "decline"
        assert result.score_factors == []

    def test_review_band(self):
        result = score_lead(_snapshot(intake=None, calls=1))
        # phone 40 + practice area 15 + one call 5
        assert result.score == 60
        assert result.disposition == "review"

    def test_partial_intake_points(self):
        result = score_lead(_snapshot(intake=SnapshotIntake(complete=False, answers={"injuries": "yes"}), calls=0))
        assert result.score == 40 + 15 + 10
        assert "incident_date" in result.missing_fields

    def test_empty_partial_intake_scores_nothing(self):
        result = score_lead(_snapshot(intake=SnapshotIntake(complete=False), calls=0))
        assert result.score == 55

    def test_email_points(self):
        result = score_lead(LeadSnapshot(contact=SnapshotContact(email="jane@example.com")))
        assert result.score == 15

    def test_disqualifier_flag_forces_decline(self):
        result = score_lead(_snapshot(flags=["pre_existing_attorney"]))
        assert result.score == 80
        assert result.disposition == "decline"
        assert result.disqualifiers == ["pre_existing_attorney"]
        assert "Disqualifier: pre_existing_attorney" in result.reasons

    def test_disqualifier_answer_must_be_truthy(self):
        answers = {"no_injury": "no", "incident_date": "x", "incident_location": "y", "injuries": "z"}
        result = score_lead(_snapshot(intake=SnapshotIntake(complete=True, answers=answers)))
        assert result.disposition == "accept"

        answers["no_injury"] = "yes"
        result = score_lead(_snapshot(intake=SnapshotIntake(complete=True, answers=answers)))
        assert result.disposition == "decline"

    def test_custom_thresholds(self):
        rules = QualificationRules(min_score_for_accept=90, min_score_for_review=80)
        assert score_lead(_snapshot(), rules).disposition == "review"

    def test_rules_from_camel_case(self):
        rules = QualificationRules.model_validate({"minScoreForAccept": 50, "requiredFields": ["police_report"]})
        result = score_lead(_snapshot(calls=0), rules)
        assert result.disposition == "accept"
        assert result.missing_fields == ["police_report"]

    def test_rules_read_scoring_weights_key(self):
        weights = {"injury_severity": 0.0, "liability_clarity": 0.0, "damages_potential": 0.0, "urgency": 1.0}
        rules = QualificationRules.model_validate({"min_score_for_accept": 70, "scoring_weights": weights})
        assert rules.weights["urgency"] == 1.0

        result = score_lead(LeadSnapshot(intake=SnapshotIntake(answers={"urgency": "severe"})), rules)
        strength = next(f for f in result.score_factors if f.name == "case_strength")
        assert strength.weight == 15

    def test_rules_dump_round_trips_through_alias(self):
        stored = QualificationRules().model_dump(by_alias=True)
        assert "scoring_weights" in stored
        assert QualificationRules.model_validate(stored) == QualificationRules()

    def test_case_strength_weights(self):
        answers = {"injury_severity": "severe", "liability_clarity": 10, "damages_potential": "high", "urgency": "low"}
        result = score_lead(LeadSnapshot(intake=SnapshotIntake(complete=False, answers=answers)))
        strength = next(f for f in result.score_factors if f.name == "case_strength")
        # (0.3*1.0 + 0.25*1.0 + 0.25*0.75 + 0.2*0.25) / 1.0 * 15 = 11.8
        assert strength.weight == 12

    def test_unreadable_strength_values_ignored(self):
        answers = {"injury_severity": True, "liability_clarity": "unclear"}
        result = score_lead(LeadSnapshot(intake=SnapshotIntake(answers=answers)))
        assert all(f.name != "case_strength" for f in result.score_factors)

    def test_score_clamped_to_100(self):
        answers = {"injury_severity": 10, "liability_clarity": 10, "damages_potential": 10, "urgency": 10}
        snapshot = _snapshot(
            contact=SnapshotContact(phone="+15125559876", email="jane@example.com"),
            intake=SnapshotIntake(complete=True, answers=answers),
        )
        # 40 + 15 + 15 + 15 + 10 + 15 = 110, clamped
        assert score_lead(snapshot).score == 100

    @pytest.mark.parametrize("calls,points", [(0, 0), (1, 5), (2, 10), (7, 10)])
    def test_engagement(self, calls, points):
        assert score_lead(LeadSnapshot(calls=calls)).score == points

    def test_deterministic(self):
        snapshot = _snapshot()
        assert score_lead(snapshot) == score_lead(snapshot)

    def test_snapshot_accepts_camel_case(self):
        snapshot = LeadSnapshot.model_validate({"practiceArea": True, "calls": 1})
        assert snapshot.practice_area is True


# Default policy suites shipped with the firm dashboard, demo data and smoke tests
DEFAULT_SUITE_CASES = [
    ("complete lead with phone and email", {
        "contact": {"phone": "+15551234567", "email": "test@example.com"}, "practiceArea": True,
        "intake": {"complete": True, "answers": {"incidentDate": "2024-01-15", "incidentLocation": "Highway 101"}},
        "calls": 2,
    }, "accept", 70),
    ("minimal info", {
        "contact": {"phone": "+15551234567"}, "practiceArea": False, "intake": {"complete": False}, "calls": 0,
    }, "review", None),
    ("no contact info", {
        "contact": {}, "practiceArea": False, "intake": {"complete": False}, "calls": 0,
    }, "decline", None),
    ("partial intake with practice area", {
        "contact": {"email": "partial@test.com"}, "practiceArea": True,
        "intake": {"complete": False, "answers": {"incidentDate": "2024-01-15"}}, "calls": 1,
    }, "review", None),
    ("complete intake without calls", {
        "contact": {"phone": "+15559876543", "email": "complete@test.com"}, "practiceArea": True,
        "intake": {"complete": True, "answers": {"incidentDate": "2024-02-01", "incidentLocation": "Main Street"}},
        "calls": 0,
    }, "accept", None),
    ("high engagement with partial info", {
        "contact": {"phone": "+15551112222"}, "practiceArea": True,
        "intake": {"complete": False, "answers": {}}, "calls": 3,
    }, "review", None),
    ("partial info with one call", {
        "contact": {"phone": "+15551234567"}, "practiceArea": True,
        "intake": {"complete": False, "answers": {}}, "calls": 1,
    }, "review", None),
    ("complete intake with empty answers", {
        "contact": {"phone": "+15551234567"}, "practiceArea": True,
        "intake": {"complete": True, "answers": {}}, "calls": 1,
    }, "accept", None),
]


@pytest.mark.parametrize(
    "snapshot,expected,min_score",
    [case[1:] for case in DEFAULT_SUITE_CASES],
    ids=[case[0] for case in DEFAULT_SUITE_CASES],
)
def test_default_suite_cases(snapshot, expected, min_score):
    result = score_lead(LeadSnapshot.model_validate(snapshot))
    assert result.disposition == expected
    if min_score is not None:
        assert result.score >= min_score
