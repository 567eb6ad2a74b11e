"""
LifeGuard — Anomaly Detector
Flags sudden deviations in the environmental signals behind each assessment.

Four metrics (weather intensity, crowd density, visibility, temperature) are
z-scored against exponentially-updated baselines. Pattern and correlation
checks add instability, weekend-night crowds, clear-sky-in-a-storm and
rapid score jumps. Baselines only learn from points that were not HIGH or
CRITICAL anomalies, so a hazard does not become the new normal.

Movement metrics need location fixes, which this engine never receives.
"""
import copy
import logging
import math
import time
from collections import deque
from datetime import datetime

from config.settings import (
    ANOMALY_BASELINE_ALPHA, ANOMALY_HISTORY_MAX, ANOMALY_MAX_SCORE, ANOMALY_MIN_POINTS,
    ANOMALY_STD_FLOOR, ANOMALY_WINDOW, ANOMALY_Z_THRESHOLD, INSTABILITY_THRESHOLD,
    RAPID_RISK_DELTA,
)
from config.tables import (
    ANOMALY_ADVICE, ANOMALY_BASELINES, ANOMALY_CROWD_INTENSITY, ANOMALY_DEFAULTS,
    ANOMALY_LEVEL_DESCRIPTIONS, ANOMALY_SEVERITY_WEIGHTS, ANOMALY_VISIBILITY_LEVELS,
    ANOMALY_WEATHER_INTENSITY, ANOMALY_Z_SEVERITY,
)
from risk_model.normalizer import is_number

logger = logging.getLogger(__name__)

ENVIRONMENTAL_METRICS = ("weather_intensity", "crowd_density", "visibility", "temperature")
STABILITY_WINDOW = 5


def classify_z(z_score):
    for bound, severity in ANOMALY_Z_SEVERITY:
        if z_score > bound:
            return severity
    return "LOW"


def overall_score(anomalies):
    """Severity-weighted sum of capped z-scores, capped at ANOMALY_MAX_SCORE."""
    total = 0.0
    for anomaly in anomalies:
        weight = ANOMALY_SEVERITY_WEIGHTS.get(anomaly["severity"], 1)
        total += weight * min(anomaly.get("z_score") or 2.0, 5.0)
    return min(total, ANOMALY_MAX_SCORE)


def determine_severity(score, anomalies):
    critical = sum(1 for a in anomalies if a["severity"] == "CRITICAL")
    high = sum(1 for a in anomalies if a["severity"] == "HIGH")
    if critical or score >= 8:
        level = "CRITICAL"
    elif high > 1 or score >= 6:
        level = "HIGH"
    elif score >= 3:
        level = "MEDIUM"
    elif score > 0:
        level = "LOW"
    else:
        level = "NORMAL"
    return {
        "level": level,
        "score": round(score, 3) if level != "NORMAL" else 0,
        "description": ANOMALY_LEVEL_DESCRIPTIONS[level],
    }


def extract_metrics(conditions):
    """ConditionVector → detector metrics."""
    visibility = conditions.visibility
    if is_number(visibility):
        visibility = max(0.0, min(1.0, float(visibility)))
    else:
        visibility = ANOMALY_VISIBILITY_LEVELS.get(visibility, ANOMALY_DEFAULTS["visibility"])
    temperature = conditions.temperature
    return {
        "weather_intensity": ANOMALY_WEATHER_INTENSITY.get(
            conditions.weather, ANOMALY_DEFAULTS["weather_intensity"]
        ),
        "crowd_density": ANOMALY_CROWD_INTENSITY.get(
            conditions.crowd_density, ANOMALY_DEFAULTS["crowd_density"]
        ),
        "visibility": visibility,
        "temperature": float(temperature) if is_number(temperature) else ANOMALY_DEFAULTS["temperature"],
    }


class AnomalyDetector:

    def __init__(self, clock=time.time):
        self._clock = clock
        self.baselines = copy.deepcopy(ANOMALY_BASELINES)
        self.history = deque(maxlen=ANOMALY_WINDOW * 2)
        self.results = deque(maxlen=ANOMALY_HISTORY_MAX)
        self.current = []
        self._last_risk_score = None

    # ── Detection ───────────────────────────────────────────────────────────

    def detect(self, conditions, assessment=None, timestamp=None):
        """
        Score one observation against the baselines.

        Returns:
            {timestamp, overall_score, severity, anomalies, recommendations,
             metrics, data_quality}
        """
        ts = timestamp if timestamp is not None else self._clock()
        metrics = extract_metrics(conditions)
        risk_score = assessment.risk_score if assessment is not None else None
        quality = self._data_quality(metrics, conditions)

        self.history.append({"timestamp": ts, **metrics})
        metrics["environmental_stability"] = self.stability()
        metrics["risk_velocity"] = (
            risk_score - self._last_risk_score
            if risk_score is not None and self._last_risk_score is not None else 0.0
        )

        anomalies = (
            self._environmental(metrics)
            + self._patterns(metrics, ts)
            + self._correlations(metrics)
        )
        score = overall_score(anomalies)
        severity = determine_severity(score, anomalies)

        if severity["level"] not in ("HIGH", "CRITICAL"):
            self._update_baselines(metrics)
        if risk_score is not None:
            self._last_risk_score = risk_score

        result = {
            "timestamp": ts,
            "overall_score": round(score, 3),
            "severity": severity,
            "anomalies": anomalies,
            "recommendations": self._recommendations(anomalies, severity),
            "metrics": {k: round(v, 3) for k, v in metrics.items()},
            "data_quality": quality,
        }
        self.results.append(result)
        self.current = anomalies
        if anomalies:
            logger.info(
                "Detected %d anomalies (overall %s, score %.2f)",
                len(anomalies), severity["level"], score,
            )
        return result

    def stability(self):
        """1 minus the mean step-to-step change over the last few points (1.0 = steady)."""
        recent = list(self.history)[-STABILITY_WINDOW:]
        if len(recent) < 2:
            return 1.0
        total = 0.0
        count = 0
        for prev, cur in zip(recent, recent[1:]):
            for metric in ("weather_intensity", "crowd_density", "visibility"):
                total += abs(cur[metric] - prev[metric])
                count += 1
        return max(0.0, 1.0 - total / count)

    def _std(self, metric):
        return max(self.baselines[metric]["std"], ANOMALY_BASELINES[metric]["std"] * ANOMALY_STD_FLOOR)

    def _environmental(self, metrics):
        if len(self.history) < ANOMALY_MIN_POINTS:
            return []
        anomalies = []
        for metric in ENVIRONMENTAL_METRICS:
            value = metrics[metric]
            baseline = self.baselines[metric]
            std = self._std(metric)
            z_score = abs(value - baseline["mean"]) / std
            if z_score > ANOMALY_Z_THRESHOLD:
                anomalies.append({
                    "type": "environmental",
                    "metric": metric,
                    "value": value,
                    "expected_range": [
                        round(baseline["mean"] - 2 * std, 3),
                        round(baseline["mean"] + 2 * std, 3),
                    ],
                    "z_score": round(z_score, 3),
                    "severity": classify_z(z_score),
                    "description": f"{metric} value {value} deviates significantly from baseline",
                })
        return anomalies

    def _patterns(self, metrics, ts):
        anomalies = []
        when = datetime.fromtimestamp(ts)
        if when.weekday() >= 5 and when.hour < 8 and metrics["crowd_density"] > 3:
            anomalies.append({
                "type": "pattern",
                "metric": "unusual_crowd_timing",
                "value": metrics["crowd_density"],
                "severity": "MEDIUM",
                "description": "Unexpected crowd density during weekend early hours",
            })
        if metrics["environmental_stability"] < INSTABILITY_THRESHOLD:
            anomalies.append({
                "type": "pattern",
                "metric": "environmental_instability",
                "value": round(metrics["environmental_stability"], 3),
                "severity": "HIGH",
                "description": "Environmental conditions are highly unstable",
            })
        return anomalies

    def _correlations(self, metrics):
        anomalies = []
        if metrics["weather_intensity"] >= 4 and metrics["visibility"] > 0.8:
            anomalies.append({
                "type": "correlation",
                "metric": "weather_visibility_mismatch",
                "value": {"weather": metrics["weather_intensity"], "visibility": metrics["visibility"]},
                "severity": "MEDIUM",
                "description": "High visibility during severe weather conditions is unusual",
            })
        if metrics["risk_velocity"] > RAPID_RISK_DELTA:
            anomalies.append({
                "type": "correlation",
                "metric": "rapid_risk_increase",
                "value": round(metrics["risk_velocity"], 3),
                "severity": "HIGH",
                "description": "Rapid increase in risk conditions detected",
            })
        return anomalies

    def _recommendations(self, anomalies, severity):
        recs = []
        if severity["level"] == "CRITICAL":
            recs.extend(ANOMALY_ADVICE["critical"])
        for anomaly in anomalies:
            metric = anomaly["metric"]
            if metric == "weather_intensity" and anomaly["value"] > anomaly["expected_range"][1]:
                recs.append(ANOMALY_ADVICE["weather_intensity"])
            elif metric == "visibility" and anomaly["value"] < anomaly["expected_range"][0]:
                recs.append(ANOMALY_ADVICE["visibility"])
            elif metric in ("environmental_instability", "rapid_risk_increase"):
                recs.append(ANOMALY_ADVICE[metric])
        if len(anomalies) > 3:
            recs.append(ANOMALY_ADVICE["many"])
        if not recs:
            recs.append(ANOMALY_ADVICE["default"])
        return list(dict.fromkeys(recs))

    # ── Baselines ───────────────────────────────────────────────────────────

    def _update_baselines(self, metrics):
        alpha = ANOMALY_BASELINE_ALPHA
        for metric in ENVIRONMENTAL_METRICS:
            value = metrics[metric]
            baseline = self.baselines[metric]
            baseline["mean"] = baseline["mean"] * (1 - alpha) + value * alpha
            variance = (value - baseline["mean"]) ** 2
            baseline["std"] = math.sqrt(baseline["std"] ** 2 * (1 - alpha) + variance * alpha)
            baseline["min"] = min(baseline["min"], value)
            baseline["max"] = max(baseline["max"], value)

    def _data_quality(self, metrics, conditions):
        quality = 1.0
        issues = []
        if conditions.temperature is None:
            quality -= 0.1
            issues.append("Missing temperature")
        for metric in ENVIRONMENTAL_METRICS:
            baseline = self.baselines[metric]
            if not baseline["min"] <= metrics[metric] <= baseline["max"]:
                quality -= 0.05
                issues.append(f"{metric} out of expected range")
        return {"score": round(max(0.0, quality), 3), "issues": issues}

    # ── Introspection ───────────────────────────────────────────────────────

    def status(self):
        return {
            "data_points": len(self.history),
            "results_with_anomalies": sum(1 for r in self.results if r["anomalies"]),
            "current_anomalies": len(self.current),
            "baselines": {
                metric: {k: round(v, 4) for k, v in stats.items()}
                for metric, stats in self.baselines.items()
            },
            "last_update": self.history[-1]["timestamp"] if self.history else None,
        }
