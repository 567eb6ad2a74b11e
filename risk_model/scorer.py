"""
LifeGuard — Risk Scorer
Computes the weighted Risk Score (0-10) from a ConditionVector and the
current WeightSet, maps it to a level and attaches recommendations.

WEIGHT JUSTIFICATION (defaults, adapted online by the learner):
  weather (0.25):     Primary hazard driver; storms and flooding dominate
                      incident reports.
  crowd (0.20):       Both extremes matter. Crush risk when overcrowded,
                      no help at hand when isolated.
  time (0.15):        Darkness reduces visibility and bystander presence.
  visibility (0.15):  Inverted reading. Low visibility = high risk.
  location (0.15):    Inherent hazard of the place (cliffs, water, sites).
  temperature (0.10): Exposure risk only at the extremes.
"""
import time

from config.settings import (
    CRITICAL_FACTOR_CEILING, CRITICAL_OVERRIDE_FACTORS, DEFAULT_CONFIDENCE,
    FACTORS, MIN_OUTCOMES_FOR_CONFIDENCE, SCORE_SCALE,
)
from config.tables import (
    CROWD_SCORES, FACTOR_ADVICE, LEVEL_ADVICE, LOCATION_SCORES, NEUTRAL_SCORES,
    TEMPERATURE_SCORES, TIME_SCORES, VISIBILITY_SCORES, WEATHER_SCORES,
)
from risk_model.models import FactorScore, RiskAssessment
from risk_model.normalizer import is_number, temperature_band


def _clamp_score(value):
    return max(0.0, min(SCORE_SCALE, float(value)))


def _lookup(table, category, factor):
    if category in table:
        return float(table[category])
    return float(NEUTRAL_SCORES[factor])


def factor_category(conditions, factor):
    """Category label a factor was scored from (None for raw numeric readings)."""
    if factor == "weather":
        return conditions.weather
    if factor == "time":
        return conditions.time_of_day
    if factor == "crowd":
        return conditions.crowd_density
    if factor == "visibility":
        return None if is_number(conditions.visibility) else conditions.visibility
    if factor == "temperature":
        if is_number(conditions.temperature):
            return temperature_band(conditions.temperature)
        return conditions.temperature
    if factor == "location":
        return conditions.location_descriptor
    return None


def compute_factor_scores(conditions):
    """
    Per-factor severity, 0-10.

    Returns:
        dict of factor → score
    """
    if is_number(conditions.visibility):
        visibility = _clamp_score((1.0 - conditions.visibility) * SCORE_SCALE)
    else:
        visibility = _lookup(VISIBILITY_SCORES, conditions.visibility, "visibility")

    if conditions.temperature is None:
        temperature = float(NEUTRAL_SCORES["temperature"])
    else:
        temperature = _lookup(
            TEMPERATURE_SCORES, factor_category(conditions, "temperature"), "temperature"
        )

    return {
        "weather": _lookup(WEATHER_SCORES, conditions.weather, "weather"),
        "time": _lookup(TIME_SCORES, conditions.time_of_day, "time"),
        "crowd": _lookup(CROWD_SCORES, conditions.crowd_density, "crowd"),
        "visibility": visibility,
        "temperature": temperature,
        "location": _lookup(LOCATION_SCORES, conditions.location_descriptor, "location"),
    }


def compute_risk_score(factor_scores, weights):
    """Risk Score = Σ score × weight, one decimal. Unweighted factors count 0."""
    total = sum(score * weights.get(factor, 0.0) for factor, score in factor_scores.items())
    return round(total, 1)


def determine_risk_level(risk_score, weights, factor_scores=None):
    """
    Adaptive thresholds split LOW / MEDIUM / HIGH. A single hazard factor at
    the fixed ceiling forces CRITICAL.

    Returns:
        (level, escalated)
    """
    if factor_scores:
        for factor in CRITICAL_OVERRIDE_FACTORS:
            if factor_scores.get(factor, 0.0) >= CRITICAL_FACTOR_CEILING:
                return "CRITICAL", True

    if risk_score < weights.low_to_medium:
        return "LOW", False
    if risk_score < weights.medium_to_high:
        return "MEDIUM", False
    return "HIGH", False


def generate_recommendations(risk_level, factor_scores, categories, notes=()):
    """Level advice, then factor rules in table order, then learner notes. No duplicates."""
    ordered = list(LEVEL_ADVICE.get(risk_level, []))

    for rule in FACTOR_ADVICE:
        factor = rule["factor"]
        if "category" in rule:
            fired = categories.get(factor) == rule["category"]
        else:
            fired = factor_scores.get(factor, 0.0) >= rule["min_score"]
        if fired:
            ordered.extend(rule["advice"])

    ordered.extend(notes)

    seen = set()
    unique = []
    for item in ordered:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def score(conditions, weights, learner=None, timestamp=None):
    """
    Full scoring pass for one condition snapshot.

    Returns:
        RiskAssessment
    """
    factor_scores = compute_factor_scores(conditions)
    risk_score = compute_risk_score(factor_scores, weights)
    risk_level, escalated = determine_risk_level(risk_score, weights, factor_scores)

    confidence = DEFAULT_CONFIDENCE
    notes = ()
    if learner is not None:
        if learner.outcome_count >= MIN_OUTCOMES_FOR_CONFIDENCE:
            confidence = learner.prediction_confidence()
        notes = learner.advisory_notes()

    categories = {f: factor_category(conditions, f) for f in FACTORS}
    recommendations = generate_recommendations(risk_level, factor_scores, categories, notes)

    return RiskAssessment(
        risk_score=risk_score,
        risk_level=risk_level,
        factor_scores=tuple(
            FactorScore(
                factor=f,
                score=factor_scores[f],
                weight=weights.get(f, 0.0),
                weighted=factor_scores[f] * weights.get(f, 0.0),
                category=categories[f],
            )
            for f in FACTORS
        ),
        confidence=confidence,
        recommendations=tuple(recommendations),
        timestamp=timestamp if timestamp is not None else time.time(),
        conditions=conditions,
        thresholds=weights.thresholds(),
        escalated=escalated,
    )
