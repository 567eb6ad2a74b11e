from datetime import datetime

import pytest

from config.tables import ANOMALY_ADVICE
from conftest import SCENARIO_CALM, SCENARIO_SEVERE
from risk_model.anomaly import AnomalyDetector, classify_z, determine_severity, extract_metrics
from risk_model.normalizer import normalize
from risk_model.scorer import score


@pytest.fixture
def detector(clock):
    return AnomalyDetector(clock=clock)


def _observe(detector, raw, weights, timestamp=None):
    conditions = normalize(raw)
    return detector.detect(conditions, score(conditions, weights), timestamp=timestamp)


def _metrics(result):
    return {a["metric"] for a in result["anomalies"]}


def test_z_score_classification():
    assert classify_z(4.5) == "CRITICAL"
    assert classify_z(3.6) == "HIGH"
    assert classify_z(2.6) == "MEDIUM"
    assert classify_z(2.5) == "LOW"


def test_overall_severity_levels():
    assert determine_severity(0, [])["level"] == "NORMAL"
    assert determine_severity(2.0, [{"severity": "LOW"}])["level"] == "LOW"
    assert determine_severity(4.0, [{"severity": "MEDIUM"}])["level"] == "MEDIUM"
    assert determine_severity(4.0, [{"severity": "HIGH"}, {"severity": "HIGH"}])["level"] == "HIGH"
    assert determine_severity(1.0, [{"severity": "CRITICAL"}])["level"] == "CRITICAL"
    assert determine_severity(9.0, [])["level"] == "CRITICAL"


def test_metrics_from_conditions():
    calm = extract_metrics(normalize(SCENARIO_CALM))
    assert calm == {"weather_intensity": 0, "crowd_density": 1.5, "visibility": 0.9, "temperature": 20.0}
    labelled = extract_metrics(normalize({"weather": "fog", "visibility": "poor"}))
    assert labelled["visibility"] == 0.4
    assert labelled["temperature"] == 20.0


def test_no_deviation_checks_before_enough_points(detector, weights):
    result = _observe(detector, SCENARIO_SEVERE, weights)
    assert not [a for a in result["anomalies"] if a["type"] == "environmental"]
    assert result["severity"]["level"] == "NORMAL"


def test_sudden_storm_after_calm_is_critical(detector, weights):
    for _ in range(4):
        assert _observe(detector, SCENARIO_CALM, weights)["anomalies"] == []
    result = _observe(detector, SCENARIO_SEVERE, weights)

    weather = next(a for a in result["anomalies"] if a["metric"] == "weather_intensity")
    assert weather["severity"] == "CRITICAL"
    assert weather["z_score"] > 4
    assert weather["value"] > weather["expected_range"][1]
    assert {"visibility", "environmental_instability", "rapid_risk_increase"} <= _metrics(result)
    assert result["severity"]["level"] == "CRITICAL"
    assert result["overall_score"] == pytest.approx(10.0)
    assert result["recommendations"][:2] == ANOMALY_ADVICE["critical"]
    assert ANOMALY_ADVICE["weather_intensity"] in result["recommendations"]
    assert ANOMALY_ADVICE["visibility"] in result["recommendations"]
    assert ANOMALY_ADVICE["many"] in result["recommendations"]
    assert len(result["recommendations"]) == len(set(result["recommendations"]))


def test_baselines_learn_from_normal_points_only(detector, weights):
    _observe(detector, SCENARIO_CALM, weights)
    assert detector.baselines["crowd_density"]["mean"] == pytest.approx(1.95)
    for _ in range(3):
        _observe(detector, SCENARIO_CALM, weights)
    frozen = {m: dict(s) for m, s in detector.baselines.items()}
    result = _observe(detector, SCENARIO_SEVERE, weights)
    assert result["severity"]["level"] == "CRITICAL"
    assert detector.baselines == frozen


def test_shrunken_baseline_keeps_a_deviation_floor(detector, weights):
    for _ in range(30):
        _observe(detector, SCENARIO_CALM, weights)
    assert detector.baselines["temperature"]["std"] < 2.5
    result = _observe(detector, {**SCENARIO_CALM, "temperature": 24}, weights)
    assert "temperature" not in _metrics(result)


def test_clear_visibility_in_a_storm_is_flagged(detector, weights):
    result = _observe(detector, {**SCENARIO_SEVERE, "visibility": 0.95}, weights)
    mismatch = next(a for a in result["anomalies"] if a["metric"] == "weather_visibility_mismatch")
    assert mismatch["severity"] == "MEDIUM"
    assert mismatch["type"] == "correlation"


def test_weekend_early_crowd(detector, weights):
    saturday_dawn = datetime(2026, 3, 7, 6, 0).timestamp()
    wednesday_dawn = datetime(2026, 3, 4, 6, 0).timestamp()
    crowded = {**SCENARIO_CALM, "crowd_density": "overcrowded"}
    assert "unusual_crowd_timing" in _metrics(_observe(detector, crowded, weights, saturday_dawn))
    assert "unusual_crowd_timing" not in _metrics(_observe(detector, crowded, weights, wednesday_dawn))


def test_only_rising_risk_counts_as_rapid(detector, weights):
    _observe(detector, SCENARIO_SEVERE, weights)
    falling = _observe(detector, SCENARIO_CALM, weights)
    assert "rapid_risk_increase" not in _metrics(falling)
    assert falling["metrics"]["risk_velocity"] < 0
    rising = _observe(detector, SCENARIO_SEVERE, weights)
    assert "rapid_risk_increase" in _metrics(rising)


def test_data_quality_and_status(detector, weights):
    result = _observe(detector, SCENARIO_SEVERE, weights)
    assert result["data_quality"] == {"score": 0.9, "issues": ["Missing temperature"]}
    _observe(detector, SCENARIO_CALM, weights)
    status = detector.status()
    assert status["data_points"] == 2
    assert status["last_update"] == detector.history[-1]["timestamp"]
    assert set(status["baselines"]) == {"weather_intensity", "crowd_density", "visibility", "temperature"}
