"""
LifeGuard — Risk Predictor
Forward projection of risk over the next hours from environmental trends,
plus what-if scenario analysis against a baseline.

Not a forecast model: conditions evolve by simple rules (weather random
walk, crowd peaks, daily temperature cycle) and every step is scored with
the same scorer as live assessments. Randomness comes from a seeded
random.Random so a run can be replayed.
"""
import math
import random
from datetime import datetime, timedelta

from config.settings import (
    MAX_HOURS_AHEAD, MAX_INTERVAL_MINUTES, RISK_LEVELS, SIM_CONFIDENCE_BASE,
    SIM_CONFIDENCE_DECAY, SIM_CONFIDENCE_FLOOR, SIM_VOLATILE_STDEV,
)
from config.tables import (
    CROWD_SCORES, DEFAULT_TRENDS, PARAMETER_DEFINITIONS, SCENARIO_TEMPLATES,
    SIM_CROWD_LEVELS, SIM_WEATHER_STATES, TIME_LIGHT_FACTORS, TREND_DIRECTIONS,
    WEATHER_SCORES, WEATHER_VISIBILITY_IMPACT,
)
from risk_model.errors import ValidationError
from risk_model.models import ConditionVector, WeightSet
from risk_model.normalizer import is_number, normalize, time_bucket
from risk_model.scorer import score


def _nearest_index(category, states, table):
    """Index of the simulation state whose severity is closest to `category`."""
    if category in states:
        return states.index(category)
    target = table.get(category, 0)
    return min(range(len(states)), key=lambda i: (abs(table[states[i]] - target), i))


def _validate_trend(name, block):
    if not isinstance(block, dict):
        raise ValidationError(f"{name} must be a mapping")
    defaults = DEFAULT_TRENDS[name]
    for field, value in block.items():
        if field not in defaults:
            raise ValidationError(f"Unknown field for {name}: {field}")
        if field == "direction":
            if value not in TREND_DIRECTIONS[name]:
                raise ValidationError(
                    f"{name}.direction must be one of {', '.join(TREND_DIRECTIONS[name])}"
                )
        elif field == "peak_times":
            if not isinstance(value, list) or not all(is_number(h) for h in value):
                raise ValidationError(f"{name}.peak_times must be a list of hours")
        elif isinstance(defaults[field], bool):
            if not isinstance(value, bool):
                raise ValidationError(f"{name}.{field} must be true or false")
        elif not is_number(value):
            raise ValidationError(f"{name}.{field} must be a number")


def merge_trends(trend_params=None):
    """Defaults overlaid with caller trends. Raises ValidationError on malformed blocks."""
    trend_params = trend_params or {}
    if not isinstance(trend_params, dict):
        raise ValidationError("trends must be a mapping of trend name → parameters")
    for name, block in trend_params.items():
        if name not in DEFAULT_TRENDS:
            raise ValidationError(f"Unknown trend: {name}")
        if block is not None:
            _validate_trend(name, block)

    merged = {}
    for key, defaults in DEFAULT_TRENDS.items():
        merged[key] = {**defaults, **(trend_params.get(key) or {})}
    return merged


def simulation_confidence(hours_elapsed):
    return max(SIM_CONFIDENCE_FLOOR, SIM_CONFIDENCE_BASE - SIM_CONFIDENCE_DECAY * hours_elapsed)


def _simulate_weather(initial, trend, hours_elapsed, rng):
    start = _nearest_index(initial, SIM_WEATHER_STATES, WEATHER_SCORES)
    noise = (rng.random() - 0.5) * trend["volatility"]
    change = trend["rate"] * hours_elapsed

    # A directional walk never steps against its direction
    if trend["direction"] == "deteriorating":
        index = start + max(0, math.floor(change + noise))
    elif trend["direction"] == "improving":
        index = start - max(0, math.floor(change + noise))
    else:
        index = start + round(noise * 2)
    index = max(0, min(len(SIM_WEATHER_STATES) - 1, index))
    return initial if index == start else SIM_WEATHER_STATES[index]


def _simulate_crowd(initial, trend, hour, hours_elapsed):
    start = _nearest_index(initial, SIM_CROWD_LEVELS, CROWD_SCORES)
    direction = trend["direction"]
    if direction == "cyclical":
        near_peak = any(abs(hour - peak) <= 1 for peak in trend["peak_times"])
        modifier = 1 if near_peak else -0.5
    elif direction == "increasing":
        modifier = trend["base_growth_rate"] * hours_elapsed
    elif direction == "decreasing":
        modifier = -trend["base_growth_rate"] * hours_elapsed
    else:
        modifier = 0
    index = max(0, min(len(SIM_CROWD_LEVELS) - 1, round(start + modifier)))
    return initial if index == start else SIM_CROWD_LEVELS[index]


def _simulate_visibility(weather, time_of_day, trend):
    visibility = trend["base_visibility"] * WEATHER_VISIBILITY_IMPACT.get(weather, 0.8)
    if trend.get("time_dependent", True):
        visibility *= TIME_LIGHT_FACTORS.get(time_of_day, 0.8)
    return round(max(0.1, min(1.0, visibility)), 3)


def _simulate_temperature(base, trend, hour, hours_elapsed):
    cycle = math.sin((hour - 6) * math.pi / 12)        # peaks mid-afternoon
    temperature = base + cycle * trend["daily_variation"] / 2
    if trend["direction"] == "increasing":
        temperature += trend["rate"] * hours_elapsed
    elif trend["direction"] == "decreasing":
        temperature -= trend["rate"] * hours_elapsed
    return round(temperature, 1)


def conditions_at(initial, trends, hours_elapsed, when, rng):
    hour = when.hour
    time_of_day = time_bucket(hour)
    weather = _simulate_weather(initial.weather, trends["weather_trend"], hours_elapsed, rng)
    base_temp = (
        initial.temperature if is_number(initial.temperature)
        else trends["temperature_trend"]["base_temperature"]
    )
    return ConditionVector(
        weather=weather,
        time_of_day=time_of_day,
        crowd_density=_simulate_crowd(initial.crowd_density, trends["crowd_trend"], hour, hours_elapsed),
        visibility=_simulate_visibility(weather, time_of_day, trends["visibility_trend"]),
        temperature=_simulate_temperature(base_temp, trends["temperature_trend"], hour, hours_elapsed),
        location_descriptor=initial.location_descriptor,
        wind_speed=initial.wind_speed,
        humidity=initial.humidity,
    )


def analyze_trend(predictions):
    scores = [p["risk_score"] for p in predictions]
    first, last = scores[0], scores[-1]
    direction = "increasing" if last > first else "decreasing" if last < first else "stable"

    peak = predictions[scores.index(max(scores))]
    mean = sum(scores) / len(scores)
    volatility = math.sqrt(sum((s - mean) ** 2 for s in scores) / len(scores))

    changes = []
    for prev, cur in zip(predictions, predictions[1:]):
        if cur["risk_level"] != prev["risk_level"]:
            changes.append({"time": cur["time"], "from": prev["risk_level"], "to": cur["risk_level"]})

    return {
        "trend_direction": direction,
        "peak_risk": {"time": peak["time"], "level": peak["risk_level"], "score": peak["risk_score"]},
        "risk_changes": changes,
        "average_score": round(mean, 2),
        "volatility": round(volatility, 3),
    }


def time_based_recommendations(analysis):
    recs = []
    if analysis["trend_direction"] == "increasing":
        recs.append("Risk levels are expected to increase - prepare for escalating conditions")
        recs.append("Consider completing activities earlier than planned")
    elif analysis["trend_direction"] == "decreasing":
        recs.append("Conditions are expected to improve over time")
        recs.append("Consider delaying non-essential activities if currently high risk")

    if analysis["peak_risk"]["level"] in ("HIGH", "CRITICAL"):
        peak_time = datetime.fromisoformat(analysis["peak_risk"]["time"]).strftime("%H:%M")
        recs.append(f"Peak risk expected at {peak_time}")
        recs.append("Plan activities to avoid peak risk periods")

    if analysis["volatility"] > SIM_VOLATILE_STDEV:
        recs.append("Conditions are highly variable - monitor frequently")
        recs.append("Be prepared for rapid changes in risk levels")

    if len(analysis["risk_changes"]) > 3:
        recs.append("Multiple risk level changes expected - stay flexible with plans")
    return recs


def simulate(initial_conditions, trend_params=None, hours_ahead=6, interval_minutes=30,
             start_time=None, seed=None, weights=None):
    """
    Project risk from now to `hours_ahead`, one point every `interval_minutes`
    (both ends included).

    Raises ValidationError for out-of-range horizons or unusable conditions.
    """
    if not is_number(hours_ahead) or not 0 < hours_ahead <= MAX_HOURS_AHEAD:
        raise ValidationError(f"hours_ahead must be in (0, {MAX_HOURS_AHEAD}]")
    if not is_number(interval_minutes) or not 0 < interval_minutes <= MAX_INTERVAL_MINUTES:
        raise ValidationError(f"interval_minutes must be in (0, {MAX_INTERVAL_MINUTES}]")

    initial = initial_conditions if isinstance(initial_conditions, ConditionVector) else normalize(initial_conditions)
    trends = merge_trends(trend_params)
    weights = weights or WeightSet()
    rng = random.Random(seed)
    start = start_time or datetime.now()

    steps = int((hours_ahead * 60) // interval_minutes)
    predictions = []
    for i in range(steps + 1):
        minutes = i * interval_minutes
        hours_elapsed = minutes / 60
        when = start + timedelta(minutes=minutes)
        conditions = conditions_at(initial, trends, hours_elapsed, when, rng)
        assessment = score(conditions, weights, timestamp=when.timestamp())
        predictions.append({
            "time": when.isoformat(),
            "hours_from_start": round(hours_elapsed, 3),
            "conditions": conditions.to_dict(),
            "risk_score": assessment.risk_score,
            "risk_level": assessment.risk_level,
            "confidence": round(simulation_confidence(hours_elapsed), 3),
        })

    analysis = analyze_trend(predictions)
    return {
        "success": True,
        "simulation_parameters": {
            "start_time": start.isoformat(),
            "hours_ahead": hours_ahead,
            "interval_minutes": interval_minutes,
            "total_predictions": len(predictions),
            "seed": seed,
        },
        "initial_conditions": initial.to_dict(),
        "trends_used": trends,
        "predictions": predictions,
        "trend_analysis": analysis,
        "recommendations": time_based_recommendations(analysis),
    }


# ══════════════════════════════════════════════════════════════════════════════
# WHAT-IF
# ══════════════════════════════════════════════════════════════════════════════
_PARAM_TO_FIELD = {
    "weather": "weather",
    "visibility": "visibility",
    "crowd_density": "crowd_density",
    "time_of_day": "time_of_day",
    "location": "location_descriptor",
    "temperature": "temperature",
}


def validate_modifications(modifications):
    if not isinstance(modifications, dict):
        raise ValidationError("modifications must be a mapping of parameter → value")
    for name, value in modifications.items():
        definition = PARAMETER_DEFINITIONS.get(name)
        if definition is None:
            raise ValidationError(f"Unknown parameter: {name}")
        if definition["type"] == "categorical":
            if value not in definition["values"]:
                raise ValidationError(
                    f"Invalid value for {name}: {value!r}. Must be one of {', '.join(definition['values'])}"
                )
        else:
            if not is_number(value) or not definition["min"] <= value <= definition["max"]:
                raise ValidationError(
                    f"{name} must be a number in [{definition['min']}, {definition['max']}]"
                )


def template(name):
    if name not in SCENARIO_TEMPLATES:
        raise ValidationError(f"Unknown scenario template: {name}")
    return dict(SCENARIO_TEMPLATES[name]["parameters"])


def _baseline_vector(baseline):
    return baseline if isinstance(baseline, ConditionVector) else normalize(baseline)


def _apply(base, modifications):
    fields = base.to_dict()
    for name, value in modifications.items():
        fields[_PARAM_TO_FIELD[name]] = value
    return normalize(fields)


def _summary(assessment):
    return {
        "risk_score": assessment.risk_score,
        "risk_level": assessment.risk_level,
        "recommendations": list(assessment.recommendations),
    }


def what_if(baseline, modifications, weights=None):
    """Score a modified copy of the baseline and report how risk moves."""
    validate_modifications(modifications)
    weights = weights or WeightSet()
    base = _baseline_vector(baseline)
    base_assessment = score(base, weights)
    scenario = _apply(base, modifications)
    scenario_assessment = score(scenario, weights)

    delta = round(scenario_assessment.risk_score - base_assessment.risk_score, 1)
    level_shift = (
        RISK_LEVELS.index(scenario_assessment.risk_level) - RISK_LEVELS.index(base_assessment.risk_level)
    )
    return {
        "modifications": dict(modifications),
        "baseline": _summary(base_assessment),
        "scenario": _summary(scenario_assessment),
        "scenario_conditions": scenario.to_dict(),
        "score_delta": delta,
        "level_change": level_shift != 0,
        "escalated": level_shift > 0,
        "risk_direction": "increased" if delta > 0 else "decreased" if delta < 0 else "unchanged",
    }


def compare_scenarios(baseline, scenarios, weights=None):
    """
    Rank named scenarios by projected score. A scenario value may be a
    modifications mapping or the name of a template.
    """
    if not scenarios:
        raise ValidationError("At least one scenario is required")
    results = []
    for name, entry in scenarios.items():
        modifications = template(entry) if isinstance(entry, str) else entry
        result = what_if(baseline, modifications, weights)
        results.append({"name": name, **result})

    results.sort(key=lambda r: (-r["scenario"]["risk_score"], r["name"]))
    for rank, result in enumerate(results, start=1):
        result["rank"] = rank
    return {
        "baseline": results[0]["baseline"],
        "scenarios": results,
        "highest_risk": results[0]["name"],
        "lowest_risk": results[-1]["name"],
    }
