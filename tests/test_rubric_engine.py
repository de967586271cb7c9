"""
Test: Rubric engine: clamping, totals, percentage, readiness and reset.
"""
import pytest

from portfolio_backend.errors import BadRequest
from portfolio_backend.rubric_config import DEFAULT_CRITERIA, DEFAULT_TOTAL
from portfolio_backend.services.rubric_engine import (
    score_evaluation, reset_evaluation, all_scored, is_passing, grade_band,
    clamp_score, evaluation_from_payload, summarize, normalize_criterion,
)


def _criteria(*max_scores):
    return [{"id": str(i), "name": f"C{i}", "maxScore": m} for i, m in enumerate(max_scores, start=1)]


class TestTotals:
    def test_reference_scenario(self):
        evaluation = score_evaluation(_criteria(20, 15, 25, 10, 15, 15), [20, 15, 20, 10, 12, 13])
        assert evaluation["max_total_score"] == 100
        assert evaluation["total_score"] == 90
        assert evaluation["percentage"] == 90

    def test_max_total_ignores_scores(self):
        criteria = _criteria(7, 3, 12.5)
        for scores in ([None, None, None], [7, 3, 12.5], [-4, 100, 1]):
            assert score_evaluation(criteria, scores)["max_total_score"] == 22.5

    def test_unset_scores_count_as_zero(self):
        evaluation = score_evaluation(_criteria(10, 10), [5, None])
        assert evaluation["total_score"] == 5
        assert evaluation["percentage"] == 25
        assert evaluation["criteria"][1]["score"] is None

    def test_percentage_rounds_half_up(self):
        # 9 / 20 = 45%, 1 / 8 = 12.5% -> 13
        assert score_evaluation(_criteria(20), [9])["percentage"] == 45
        assert score_evaluation(_criteria(8), [1])["percentage"] == 13

    def test_empty_criteria_gives_zero_percentage(self):
        evaluation = score_evaluation([])
        assert evaluation["max_total_score"] == 0
        assert evaluation["percentage"] == 0

    def test_scores_by_criterion_id(self):
        evaluation = score_evaluation(_criteria(10, 10), {"2": 10})
        assert [c["score"] for c in evaluation["criteria"]] == [None, 10]

    def test_scores_from_criteria_themselves(self):
        criteria = [{"id": "a", "name": "A", "max_score": 4, "score": 3}]
        assert score_evaluation(criteria)["total_score"] == 3

    def test_default_rubric_sums_to_100(self):
        assert DEFAULT_TOTAL == 100
        assert score_evaluation(DEFAULT_CRITERIA)["max_total_score"] == 100


class TestClamping:
    def test_above_max_is_clamped(self):
        evaluation = score_evaluation(_criteria(10), [14])
        assert evaluation["criteria"][0]["score"] == 10
        assert evaluation["percentage"] == 100

    def test_negative_is_clamped_to_zero(self):
        assert score_evaluation(_criteria(10), [-3])["criteria"][0]["score"] == 0

    def test_total_stays_within_bounds(self):
        evaluation = score_evaluation(_criteria(5, 5, 5), [99, -99, 2])
        assert 0 <= evaluation["total_score"] <= evaluation["max_total_score"]
        assert evaluation["total_score"] == 7

    def test_numeric_strings_accepted(self):
        assert clamp_score("7.5", 5) == 5

    def test_non_numeric_score_rejected(self):
        with pytest.raises(BadRequest):
            clamp_score("abc", 5)


class TestCriterionValidation:
    def test_zero_max_score_rejected(self):
        with pytest.raises(BadRequest):
            normalize_criterion({"name": "X", "maxScore": 0})

    def test_missing_max_score_rejected(self):
        with pytest.raises(BadRequest):
            normalize_criterion({"name": "X"})

    def test_input_is_not_mutated(self):
        criteria = _criteria(10)
        score_evaluation(criteria, [30])
        assert "score" not in criteria[0]


class TestReadiness:
    def test_all_scored_requires_every_score(self):
        assert not all_scored(score_evaluation(_criteria(10, 10), [10]))
        assert all_scored(score_evaluation(_criteria(10, 10), [10, 0]))

    def test_passing_threshold(self):
        assert is_passing(70)
        assert not is_passing(69)

    def test_summary_hides_passing_until_all_scored(self):
        draft = summarize(score_evaluation(_criteria(10, 10), [10]))
        assert draft["all_scored"] is False
        assert draft["passing"] is None
        final = summarize(score_evaluation(_criteria(10, 10), [10, 5]))
        assert final["passing"] is True

    def test_grade_bands(self):
        assert grade_band(95) == "excellent"
        assert grade_band(70) == "good"
        assert grade_band(40) == "needs_improvement"


class TestReset:
    def test_reset_keeps_criteria_and_max(self):
        evaluation = score_evaluation(_criteria(20, 30), [20, 25])
        reset = reset_evaluation(evaluation)
        assert reset["total_score"] == 0
        assert reset["percentage"] == 0
        assert reset["max_total_score"] == 50
        assert [c["name"] for c in reset["criteria"]] == ["C1", "C2"]
        assert all(c["score"] is None for c in reset["criteria"])

    def test_reset_does_not_touch_original(self):
        evaluation = score_evaluation(_criteria(20), [20])
        reset_evaluation(evaluation)
        assert evaluation["criteria"][0]["score"] == 20


class TestPayload:
    def test_client_totals_are_recomputed(self):
        payload = {
            "criteria": [{"id": "1", "name": "A", "maxScore": 10, "score": 8}],
            "totalScore": 1000,
            "percentage": 5,
        }
        evaluation = evaluation_from_payload(payload)
        assert evaluation["total_score"] == 8
        assert evaluation["percentage"] == 80

    def test_payload_without_criteria_rejected(self):
        with pytest.raises(BadRequest):
            evaluation_from_payload({"criteria": []})
