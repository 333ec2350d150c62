"""
Tests for IntegrityScorer
"""

import pytest

from proctorwatch.proctor.events import EventKind, ViolationEvent
from proctorwatch.proctor.scoring import IntegrityScorer


@pytest.fixture
def scorer():
    return IntegrityScorer()


def events(*kinds):
    return [ViolationEvent(kind=k) for k in kinds]


class TestIntegrityScorer:
    """Tests for scoring a violation log"""

    def test_clean_session_scores_100(self, scorer):
        assert scorer.score([]) == 100

    def test_mixed_violations(self, scorer):
        """10 + 5 + 2 deducted"""
        log = events(EventKind.PHONE_DETECTED, EventKind.BOOK_DETECTED, EventKind.LOOKING_AWAY)
        assert scorer.score(log) == 83

    def test_score_floors_at_zero(self, scorer):
        log = events(*[EventKind.MULTIPLE_FACES_DETECTED] * 10)
        assert scorer.score(log) == 0

    def test_extra_device_has_no_penalty(self, scorer):
        log = events(*[EventKind.EXTRA_DEVICE_DETECTED] * 7)
        assert scorer.score(log) == 100

    def test_unknown_kind_scores_zero(self, scorer):
        """Labels from newer logs are tolerated"""
        assert scorer.score(["FOO"]) == 100
        assert scorer.score(["TAB_SWITCHED", "PHONE_DETECTED"]) == 90

    def test_legacy_labels(self, scorer):
        log = ["NO_FACE_DETECTED (10s)", "LOOKING_AWAY (5s)"]
        assert scorer.score(log) == 93

    def test_stored_records(self, scorer):
        log = [
            {"kind": "NO_FACE_DETECTED", "occurred_at": "2024-01-01T10:00:00+00:00"},
            {"eventType": "BOOK_DETECTED", "timestamp": "2024-01-01T10:00:05+00:00"},
        ]
        assert scorer.score(log) == 90

    def test_score_is_recomputed_each_call(self, scorer):
        log = events(EventKind.NO_FACE_DETECTED)
        assert scorer.score(log) == 95
        assert scorer.score(log) == 95

        log.extend(events(EventKind.NO_FACE_DETECTED))
        assert scorer.score(log) == 90

    def test_penalty_for(self, scorer):
        assert scorer.penalty_for(ViolationEvent(kind=EventKind.MULTIPLE_FACES_DETECTED)) == 15
        assert scorer.penalty_for("LOOKING_AWAY") == 2
        assert scorer.penalty_for(EventKind.EXTRA_DEVICE_DETECTED) == 0

    def test_custom_penalties(self):
        scorer = IntegrityScorer(penalties={"PHONE_DETECTED": 50, "EXTRA_DEVICE_DETECTED": 1})

        assert scorer.score(events(EventKind.PHONE_DETECTED)) == 50
        assert scorer.score(events(EventKind.EXTRA_DEVICE_DETECTED)) == 99
        assert scorer.score(events(EventKind.BOOK_DETECTED)) == 95


class TestScoreBreakdown:
    """Tests for the detailed breakdown"""

    def test_breakdown(self, scorer):
        log = events(
            EventKind.PHONE_DETECTED,
            EventKind.PHONE_DETECTED,
            EventKind.LOOKING_AWAY,
            EventKind.EXTRA_DEVICE_DETECTED
        )

        breakdown = scorer.compute_breakdown(log)

        assert breakdown["integrity_score"] == 78
        assert breakdown["total_penalty"] == 22
        assert breakdown["penalties"]["PHONE_DETECTED"] == {
            "count": 2,
            "penalty_each": 10,
            "penalty": 20
        }
        assert breakdown["penalties"]["EXTRA_DEVICE_DETECTED"]["penalty"] == 0

    def test_breakdown_keeps_raw_score_below_zero(self, scorer):
        breakdown = scorer.compute_breakdown(events(*[EventKind.MULTIPLE_FACES_DETECTED] * 8))

        assert breakdown["integrity_score"] == 0
        assert breakdown["raw_score"] == -20

    def test_breakdown_matches_score(self, scorer):
        log = events(EventKind.BOOK_DETECTED, EventKind.NO_FACE_DETECTED, EventKind.MULTIPLE_FACES_DETECTED)
        assert scorer.compute_breakdown(log)["integrity_score"] == scorer.score(log)


class TestGrades:
    """Tests for grade and band conversion"""

    @pytest.mark.parametrize("score,grade", [
        (100, "A"), (90, "A"), (89, "B"), (80, "B"),
        (75, "C"), (60, "D"), (59, "F"), (0, "F"),
    ])
    def test_grade(self, scorer, score, grade):
        assert scorer.get_grade(score) == grade

    @pytest.mark.parametrize("score,band", [
        (100, "good"), (80, "good"), (79, "warning"),
        (50, "warning"), (49, "critical"), (0, "critical"),
    ])
    def test_band(self, scorer, score, band):
        assert scorer.get_band(score) == band
