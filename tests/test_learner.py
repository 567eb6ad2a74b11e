import pytest

from config.settings import WEIGHT_MAX, WEIGHT_MIN
from config.tables import CAUTION_NOTE
from conftest import SCENARIO_CALM, SCENARIO_SEVERE
from risk_model.errors import ValidationError
from risk_model.learner import AdaptiveWeightLearner, calculate_accuracy, project_weights
from risk_model.normalizer import normalize
from risk_model.scorer import score


@pytest.fixture
def learner(weights, clock):
    return AdaptiveWeightLearner(weights, clock=clock)


def _predict(learner, raw):
    assessment = score(normalize(raw), learner.weights, learner)
    return learner.record_prediction(assessment)


def test_accuracy_formula():
    assert calculate_accuracy("HIGH", "HIGH", True, 1.0) == pytest.approx(1.0)
    assert calculate_accuracy("LOW", "LOW", False, 0.0) == pytest.approx(0.9)
    assert calculate_accuracy("LOW", "HIGH", False, 1.0) == pytest.approx(0.4)
    assert calculate_accuracy("MEDIUM", "HIGH", True, 0.5) == pytest.approx(0.35)
    assert calculate_accuracy("LOW", "CRITICAL", True, 2.0) == pytest.approx(0.1)


def test_adaptation_fires_exactly_every_fifth_outcome(learner):
    adapted_at = []
    for i in range(1, 13):
        prediction = _predict(learner, SCENARIO_CALM)
        result = learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})
        assert result["success"]
        if result["adapted"]:
            adapted_at.append(i)
            assert "new_weights" in result
    assert adapted_at == [5, 10]
    assert len(learner.adaptation_history) == 2


def test_weights_stay_normalized_and_bounded_after_adaptation(learner):
    for _ in range(20):
        prediction = _predict(learner, SCENARIO_SEVERE)
        learner.record_outcome(prediction.id, {"actual_risk_level": "LOW", "incident_occurred": False})
        total = sum(learner.weights.weights.values())
        assert total == pytest.approx(1.0, abs=1e-9)
        for w in learner.weights.weights.values():
            assert WEIGHT_MIN - 1e-12 <= w <= WEIGHT_MAX + 1e-12


def test_false_positives_raise_both_thresholds(learner):
    for _ in range(5):
        prediction = _predict(learner, SCENARIO_SEVERE)
        assert prediction.assessment.risk_level == "HIGH"
        learner.record_outcome(prediction.id, {"actual_risk_level": "LOW", "incident_occurred": False})
    assert learner.weights.low_to_medium == pytest.approx(2.6)
    assert learner.weights.medium_to_high == pytest.approx(4.2)


def test_no_false_positives_lower_thresholds(learner):
    for _ in range(5):
        prediction = _predict(learner, SCENARIO_CALM)
        learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})
    assert learner.weights.low_to_medium == pytest.approx(2.45)
    assert learner.weights.medium_to_high == pytest.approx(3.9)


def test_thresholds_keep_minimum_gap(learner):
    for _ in range(200):
        prediction = _predict(learner, SCENARIO_CALM)
        learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})
    low, high = learner.weights.low_to_medium, learner.weights.medium_to_high
    assert high - low >= 0.5 - 1e-9
    assert low >= 1.0


def test_weights_shift_toward_factors_that_were_right(learner):
    before = dict(learner.weights.weights)
    for _ in range(5):
        prediction = _predict(learner, SCENARIO_SEVERE)
        learner.record_outcome(prediction.id, {"actual_risk_level": "HIGH", "incident_occurred": True})
    after = learner.weights.weights
    # weather/crowd/time/visibility all signalled risk and were right; temperature/location were wrong
    assert after["location"] < before["location"]
    assert after["temperature"] < before["temperature"]
    assert after["weather"] > before["weather"]


def test_unknown_prediction_is_a_failed_result(learner):
    result = learner.record_outcome("nope", {"actual_risk_level": "LOW"})
    assert result["success"] is False
    assert "error" in result
    assert learner.outcome_count == 0


def test_outcome_recorded_only_once(learner):
    prediction = _predict(learner, SCENARIO_CALM)
    assert learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})["success"]
    assert learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})["success"] is False
    assert learner.outcome_count == 1


@pytest.mark.parametrize("outcome", [
    {"actual_risk_level": "EXTREME"},
    {},
    {"actual_risk_level": "LOW", "environmental_accuracy": "very"},
])
def test_invalid_outcome_raises(learner, outcome):
    prediction = _predict(learner, SCENARIO_CALM)
    with pytest.raises(ValidationError):
        learner.record_outcome(prediction.id, outcome)


def test_environmental_accuracy_is_clamped(learner):
    prediction = _predict(learner, SCENARIO_CALM)
    result = learner.record_outcome(prediction.id, {"actual_risk_level": "LOW", "environmental_accuracy": 7})
    assert result["accuracy"] == pytest.approx(1.0)


def test_confidence_default_until_three_outcomes(learner):
    assert learner.prediction_confidence() == 0.7
    for _ in range(2):
        prediction = _predict(learner, SCENARIO_CALM)
        learner.record_outcome(prediction.id, {"actual_risk_level": "HIGH", "incident_occurred": True})
    assert learner.prediction_confidence() == 0.7
    prediction = _predict(learner, SCENARIO_CALM)
    learner.record_outcome(prediction.id, {"actual_risk_level": "HIGH", "incident_occurred": True})
    assert 0.3 <= learner.prediction_confidence() <= 0.95
    assert learner.prediction_confidence() != 0.7


def test_confidence_feeds_next_assessment(learner):
    for _ in range(3):
        prediction = _predict(learner, SCENARIO_CALM)
        learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})
    assessment = score(normalize(SCENARIO_CALM), learner.weights, learner)
    assert assessment.confidence == pytest.approx(learner.prediction_confidence())
    assert assessment.confidence <= 0.95


def test_caution_note_when_false_positives_dominate(learner):
    prediction = _predict(learner, SCENARIO_SEVERE)
    learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})
    assert learner.advisory_notes() == [CAUTION_NOTE]
    assessment = score(normalize(SCENARIO_CALM), learner.weights, learner)
    assert assessment.recommendations[-1] == CAUTION_NOTE


def test_old_outcomes_count_less(learner, clock):
    # Five stale right answers for location, then five fresh wrong ones
    for _ in range(5):
        prediction = _predict(learner, {**SCENARIO_CALM, "location": "construction site"})
        learner.record_outcome(prediction.id, {"actual_risk_level": "HIGH"})
    clock.advance_days(60)
    for _ in range(5):
        prediction = _predict(learner, {**SCENARIO_CALM, "location": "construction site"})
        learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})
    performance = learner.factor_performance()
    assert 0.0 < performance["location"] < 0.5


def test_prediction_history_is_bounded(learner):
    for _ in range(130):
        _predict(learner, SCENARIO_CALM)
    assert len(learner.predictions) == 100


def test_project_weights_holds_bounds():
    projected = project_weights({"a": 0.9, "b": 0.01, "c": 0.01, "d": 0.01, "e": 0.01, "f": 0.01})
    assert sum(projected.values()) == pytest.approx(1.0)
    assert projected["a"] == pytest.approx(0.5)
    assert all(0.05 <= w <= 0.5 for w in projected.values())


def test_stats_snapshot(learner):
    prediction = _predict(learner, SCENARIO_SEVERE)
    learner.record_outcome(prediction.id, {"actual_risk_level": "LOW"})
    stats = learner.stats()
    assert stats["outcome_count"] == 1
    assert stats["metrics"]["false_positives"] == 1
    assert stats["metrics"]["total"] == 1
    assert set(stats["weights"]["weights"]) == set(learner.weights.weights)
