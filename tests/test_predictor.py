from datetime import datetime

import pytest

from conftest import SCENARIO_CALM
from risk_model import predictor
from risk_model.errors import ValidationError

NOON = datetime(2026, 3, 1, 12, 0)


def test_six_hours_every_thirty_minutes():
    result = predictor.simulate(SCENARIO_CALM, hours_ahead=6, interval_minutes=30, start_time=NOON, seed=7)
    points = result["predictions"]
    assert len(points) == 13
    assert result["simulation_parameters"]["total_predictions"] == 13
    confidences = [p["confidence"] for p in points]
    assert all(a > b for a, b in zip(confidences, confidences[1:]))
    assert confidences[0] == 0.95
    assert points[-1]["hours_from_start"] == 6


def test_same_seed_same_run():
    trends = {"weather_trend": {"volatility": 2.0}}
    a = predictor.simulate(SCENARIO_CALM, trends, 12, 60, start_time=NOON, seed=42)
    b = predictor.simulate(SCENARIO_CALM, trends, 12, 60, start_time=NOON, seed=42)
    assert a["predictions"] == b["predictions"]


@pytest.mark.parametrize("hours,interval", [(0, 30), (49, 30), (-1, 30), (6, 0), (6, 241)])
def test_out_of_range_horizon_raises(hours, interval):
    with pytest.raises(ValidationError):
        predictor.simulate(SCENARIO_CALM, hours_ahead=hours, interval_minutes=interval)


def test_unusable_conditions_raise():
    with pytest.raises(ValidationError):
        predictor.simulate({"weather": "clear"}, hours_ahead=2, interval_minutes=30)


def test_time_of_day_follows_simulated_clock():
    start = datetime(2026, 3, 1, 19, 0)
    result = predictor.simulate(SCENARIO_CALM, hours_ahead=6, interval_minutes=60, start_time=start, seed=1)
    buckets = [p["conditions"]["time_of_day"] for p in result["predictions"]]
    assert buckets == ["evening", "night", "night", "night", "night", "late_night", "late_night"]


def test_deteriorating_weather_walks_toward_storms():
    trends = {"weather_trend": {"direction": "deteriorating", "rate": 1.0, "volatility": 0}}
    result = predictor.simulate(SCENARIO_CALM, trends, 3, 60, start_time=NOON, seed=3)
    weather = [p["conditions"]["weather"] for p in result["predictions"]]
    assert weather == ["clear", "cloudy", "rainy", "stormy"]
    assert result["trend_analysis"]["trend_direction"] == "increasing"
    assert "Risk levels are expected to increase - prepare for escalating conditions" in result["recommendations"]


def test_increasing_crowd():
    trends = {"crowd_trend": {"direction": "increasing", "base_growth_rate": 0.5}}
    result = predictor.simulate(SCENARIO_CALM, trends, 4, 120, start_time=NOON, seed=3)
    crowd = [p["conditions"]["crowd_density"] for p in result["predictions"]]
    assert crowd == ["light", "moderate", "heavy"]


def test_cyclical_crowd_peaks():
    trends = {"crowd_trend": {"direction": "cyclical", "peak_times": [13]}}
    result = predictor.simulate({**SCENARIO_CALM, "crowd_density": "moderate"}, trends, 4, 120, start_time=NOON, seed=3)
    crowd = [p["conditions"]["crowd_density"] for p in result["predictions"]]
    # 12:00 near peak → up one; 14:00 near peak; 16:00 off peak → round(2 - 0.5) = 2
    assert crowd == ["heavy", "heavy", "moderate"]


@pytest.mark.parametrize("trends", [
    {"weather_trend": {"rate": "fast"}},
    {"weather_trend": {"volatility": None}},
    {"weather_trend": {"direction": "sideways"}},
    {"weather_trend": "deteriorating"},
    {"crowd_trend": {"peak_times": 18}},
    {"crowd_trend": {"peak_times": ["noon"]}},
    {"crowd_trend": {"base_growth_rate": True}},
    {"temperature_trend": {"daily_variation": "10"}},
    {"temperature_trend": {"direction": "cyclical"}},
    {"visibility_trend": {"time_dependent": "yes"}},
    {"visibility_trend": {"fog_factor": 0.5}},
    {"wind_trend": {"rate": 1}},
    ["weather_trend"],
])
def test_malformed_trends_raise(trends):
    with pytest.raises(ValidationError):
        predictor.simulate(SCENARIO_CALM, trends, 2, 30, start_time=NOON, seed=1)


def test_partial_trend_keeps_defaults():
    merged = predictor.merge_trends({"weather_trend": {"rate": 0.5}, "crowd_trend": None})
    assert merged["weather_trend"] == {"direction": "stable", "rate": 0.5, "volatility": 0.2}
    assert merged["crowd_trend"]["peak_times"] == [9, 13, 18]


@pytest.mark.parametrize("seed", range(20))
def test_deteriorating_walk_never_improves(seed):
    trends = {"weather_trend": {"direction": "deteriorating", "rate": 0.0, "volatility": 1.9}}
    result = predictor.simulate({**SCENARIO_CALM, "weather": "rainy"}, trends, 3, 60, start_time=NOON, seed=seed)
    assert [p["conditions"]["weather"] for p in result["predictions"]] == ["rainy"] * 4


def test_temperature_daily_cycle_and_visibility():
    result = predictor.simulate(SCENARIO_CALM, hours_ahead=1, interval_minutes=60, start_time=NOON, seed=3)
    first = result["predictions"][0]["conditions"]
    assert first["temperature"] == 25.0            # 20 + sin(π/2) × 10 / 2
    assert first["visibility"] == 0.8              # clear, afternoon


def test_analyze_trend_reports_changes_and_volatility():
    points = [
        {"time": "2026-03-01T12:00:00", "risk_score": 1.0, "risk_level": "LOW"},
        {"time": "2026-03-01T13:00:00", "risk_score": 5.0, "risk_level": "HIGH"},
        {"time": "2026-03-01T14:00:00", "risk_score": 1.0, "risk_level": "LOW"},
    ]
    analysis = predictor.analyze_trend(points)
    assert analysis["trend_direction"] == "stable"
    assert analysis["peak_risk"]["level"] == "HIGH"
    assert len(analysis["risk_changes"]) == 2
    assert analysis["volatility"] == pytest.approx(1.886, abs=1e-3)
    recs = predictor.time_based_recommendations(analysis)
    assert "Peak risk expected at 13:00" in recs
    assert "Conditions are highly variable - monitor frequently" in recs


def test_what_if_template_escalates():
    result = predictor.what_if(SCENARIO_CALM, predictor.template("severe_weather"))
    assert result["baseline"]["risk_level"] == "LOW"
    assert result["scenario"]["risk_level"] == "MEDIUM"
    assert result["escalated"] is True
    assert result["score_delta"] > 0
    assert result["risk_direction"] == "increased"
    assert result["scenario_conditions"]["weather"] == "thunderstorm"


def test_what_if_no_change():
    result = predictor.what_if(SCENARIO_CALM, {"weather": "clear"})
    assert result["score_delta"] == 0
    assert result["level_change"] is False
    assert result["risk_direction"] == "unchanged"


@pytest.mark.parametrize("modifications", [
    {"altitude": 3000},
    {"weather": "lava"},
    {"visibility": 1.5},
    {"temperature": "hot"},
    "weather=rain",
])
def test_what_if_rejects_invalid_parameters(modifications):
    with pytest.raises(ValidationError):
        predictor.what_if(SCENARIO_CALM, modifications)


def test_unknown_template():
    with pytest.raises(ValidationError):
        predictor.template("meteor_strike")


def test_compare_scenarios_ranks_by_score():
    result = predictor.compare_scenarios(SCENARIO_CALM, {
        "storm": "severe_weather",
        "festival": "crowded_event",
        "walk_home": "night_emergency",
        "drizzle": {"weather": "light_rain"},
    })
    scores = [s["scenario"]["risk_score"] for s in result["scenarios"]]
    assert scores == sorted(scores, reverse=True)
    assert [s["rank"] for s in result["scenarios"]] == [1, 2, 3, 4]
    assert result["highest_risk"] == result["scenarios"][0]["name"]
    assert result["lowest_risk"] == "drizzle"


def test_compare_requires_scenarios():
    with pytest.raises(ValidationError):
        predictor.compare_scenarios(SCENARIO_CALM, {})
