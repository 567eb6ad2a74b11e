"""
LifeGuard — Breakdown Analyzer
Explains WHY a score is what it is: per-factor contribution, sub-factor
split, amplifying interactions and the path the score took to its level.
Pure function of its inputs; calling it twice gives the same result.
"""
from config.settings import FACTORS
from config.tables import (
    IMPACT_TIERS, INTERACTION_RULES, SUB_FACTORS, TIME_LIGHT_FACTORS,
    TIME_SCORES, WEATHER_SCORES, WEATHER_VISIBILITY_IMPACT, WIND_SATURATION_KPH,
)
from risk_model.scorer import compute_factor_scores, determine_risk_level


def impact_tier(percentage):
    for floor, label in IMPACT_TIERS:
        if percentage >= floor:
            return label
    return "MINIMAL"


def _sub_factor_values(factor, score, conditions):
    """Deterministic 0-10 readings for each sub-component of a factor."""
    if factor == "weather":
        if conditions.wind_speed is None:
            wind = score
        else:
            wind = min(10.0, max(0.0, conditions.wind_speed / WIND_SATURATION_KPH * 10))
        return {"intensity": score, "wind": wind}
    if factor == "time":
        light = TIME_LIGHT_FACTORS.get(conditions.time_of_day, 1.0)
        return {"hour_of_day": score, "lighting": (1.0 - light) * 10}
    if factor == "crowd":
        isolated = conditions.crowd_density == "isolated"
        return {"density": 0.0 if isolated else score, "isolation": score if isolated else 0.0}
    if factor == "visibility":
        impact = WEATHER_VISIBILITY_IMPACT.get(conditions.weather, 1.0)
        return {"current_conditions": score, "weather_obscuration": (1.0 - impact) * 10}
    if factor == "temperature":
        return {"exposure": score}
    return {"inherent_risk": score}


def _sub_factors(factor, score, conditions, factor_percentage):
    values = _sub_factor_values(factor, score, conditions)
    weighted = {name: values[name] * w for name, w in SUB_FACTORS[factor].items()}
    total = sum(weighted.values())

    detail = {}
    for name, w in SUB_FACTORS[factor].items():
        share = weighted[name] / total * 100 if total > 0 else 0.0
        detail[name] = {
            "value": round(values[name], 2),
            "weight": w,
            "share_of_factor": round(share, 1),
            "share_of_overall": round(share * factor_percentage / 100, 1),
        }

    dominant = None
    if total > 0:
        dominant = sorted(weighted, key=lambda n: (-weighted[n], n))[0]
    return detail, dominant


def detect_interactions(scores):
    found = []
    for rule in INTERACTION_RULES:
        (a, b), (above_a, above_b) = rule["factors"], rule["above"]
        if scores.get(a, 0.0) > above_a and scores.get(b, 0.0) > above_b:
            found.append({
                "factors": list(rule["factors"]),
                "strength": rule["strength"],
                "impact_multiplier": rule["impact_multiplier"],
                "description": rule["description"],
            })
    return found


def _decision_path(ranking, weighted, weights):
    path = []
    cumulative = 0.0
    for factor in ranking:
        if weighted[factor] <= 0:
            continue
        cumulative += weighted[factor]
        level, _ = determine_risk_level(round(cumulative, 1), weights)
        path.append({
            "step": len(path) + 1,
            "factor": factor,
            "contribution": round(weighted[factor], 3),
            "cumulative_score": round(cumulative, 2),
            "level": level,
        })
    return path


def _insights(ranking, percentages, interactions, total):
    insights = []
    if total <= 0:
        return [{"type": "calm", "message": "No factor is contributing to risk"}]

    top = ranking[0]
    if percentages[top] > 40:
        insights.append({
            "type": "dominant_factor",
            "message": f"{top.capitalize()} is the dominant risk factor ({percentages[top]}%)",
        })
    elif percentages[top] < 30:
        insights.append({
            "type": "balanced_risk",
            "message": "Risk is spread across multiple factors with no single driver",
        })

    for interaction in interactions:
        insights.append({
            "type": "amplifying_interaction",
            "message": f"{interaction['description']} (x{interaction['impact_multiplier']})",
        })

    minimal = [f for f in ranking if percentages[f] < 5]
    if minimal:
        insights.append({
            "type": "minimal_factors",
            "message": f"Minimal contribution from: {', '.join(minimal)}",
        })
    return insights


def _data_quality(conditions):
    checks = {
        "weather": conditions.weather in WEATHER_SCORES,
        "location": conditions.location_descriptor != "unknown",
        "time": conditions.time_of_day in TIME_SCORES,
    }
    present = sum(1 for ok in checks.values() if ok)
    return {
        "completeness": round(present / len(checks), 2),
        "missing": [name for name, ok in checks.items() if not ok],
        "sensor_data": conditions.wind_speed is not None or conditions.humidity is not None,
    }


def analyze(conditions, weights, assessment=None):
    """
    Full explainability report for one assessment.

    Returns:
        dict with factors, ranking, interactions, decision_path, insights,
        summary and data_quality
    """
    scores = assessment.scores() if assessment is not None else compute_factor_scores(conditions)
    weighted = {f: scores.get(f, 0.0) * weights.get(f, 0.0) for f in FACTORS}
    total = sum(weighted.values())
    percentages = {
        f: round(weighted[f] / total * 100, 1) if total > 0 else 0.0 for f in FACTORS
    }
    ranking = sorted(FACTORS, key=lambda f: (-percentages[f], f))

    if assessment is not None:
        risk_score, risk_level = assessment.risk_score, assessment.risk_level
    else:
        risk_score = round(total, 1)
        risk_level, _ = determine_risk_level(risk_score, weights, scores)

    factors = {}
    for factor in FACTORS:
        sub, dominant = _sub_factors(factor, scores.get(factor, 0.0), conditions, percentages[factor])
        factors[factor] = {
            "score": scores.get(factor, 0.0),
            "weight": round(weights.get(factor, 0.0), 4),
            "weighted": round(weighted[factor], 3),
            "percentage": percentages[factor],
            "rank": ranking.index(factor) + 1,
            "impact": impact_tier(percentages[factor]),
            "sub_factors": sub,
            "dominant_sub_factor": dominant,
        }

    interactions = detect_interactions(scores)
    multiplier = 1.0
    for interaction in interactions:
        multiplier *= interaction["impact_multiplier"]

    if total > 0:
        summary = (
            f"{risk_level} risk (score {risk_score}). Primary driver: "
            f"{ranking[0]} ({percentages[ranking[0]]}%)."
        )
        if interactions:
            summary += f" {len(interactions)} amplifying interaction(s) detected."
    else:
        summary = f"{risk_level} risk (score {risk_score}). No significant risk factors detected."

    return {
        "risk_score": risk_score,
        "risk_level": risk_level,
        "factors": factors,
        "ranking": ranking,
        "interactions": interactions,
        "interaction_multiplier": round(multiplier, 3),
        "decision_path": _decision_path(ranking, weighted, weights),
        "insights": _insights(ranking, percentages, interactions, total),
        "summary": summary,
        "data_quality": _data_quality(conditions),
    }
