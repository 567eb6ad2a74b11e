"""
LifeGuard — Data Model
Condition snapshots, assessments, the adaptive weight set and the
prediction/outcome records the learner pairs up.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

from config.settings import DEFAULT_THRESHOLDS, DEFAULT_WEIGHTS, FACTORS


def _iso(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class ConditionVector:
    """Canonical environmental snapshot produced by the normalizer."""
    weather: str
    time_of_day: str
    crowd_density: str
    visibility: Union[float, str]
    temperature: Union[float, str, None]
    location_descriptor: str
    wind_speed: Optional[float] = None
    humidity: Optional[float] = None
    raw: Any = field(default=None, compare=False, repr=False)

    def to_dict(self):
        return {
            "weather": self.weather,
            "time_of_day": self.time_of_day,
            "crowd_density": self.crowd_density,
            "visibility": self.visibility,
            "temperature": self.temperature,
            "location_descriptor": self.location_descriptor,
            "wind_speed": self.wind_speed,
            "humidity": self.humidity,
        }


@dataclass(frozen=True)
class FactorScore:
    factor: str
    score: float              # 0-10 severity
    weight: float
    weighted: float           # score × weight
    category: Optional[str] = None

    def to_dict(self):
        return {
            "factor": self.factor,
            "score": self.score,
            "weight": round(self.weight, 4),
            "weighted": round(self.weighted, 4),
            "category": self.category,
        }


@dataclass(frozen=True)
class RiskAssessment:
    risk_score: float
    risk_level: str
    factor_scores: Tuple[FactorScore, ...]
    confidence: float
    recommendations: Tuple[str, ...]
    timestamp: float
    conditions: Optional[ConditionVector] = None
    thresholds: Dict[str, float] = field(default_factory=dict)
    escalated: bool = False

    def scores(self):
        """factor → severity score."""
        return {fs.factor: fs.score for fs in self.factor_scores}

    def factor(self, name):
        for fs in self.factor_scores:
            if fs.factor == name:
                return fs
        return None

    def to_dict(self):
        return {
            "risk_score": self.risk_score,
            "risk_level": self.risk_level,
            "factor_scores": {fs.factor: fs.to_dict() for fs in self.factor_scores},
            "confidence": round(self.confidence, 3),
            "recommendations": list(self.recommendations),
            "timestamp": _iso(self.timestamp),
            "conditions": self.conditions.to_dict() if self.conditions else None,
            "thresholds": dict(self.thresholds),
            "escalated": self.escalated,
        }


class WeightSet:
    """
    Factor weights (sum 1.0) plus the two adaptive level thresholds.
    One instance per engine; only the learner writes to it.
    """

    def __init__(self, weights=None, low_to_medium=None, medium_to_high=None):
        self.weights = dict(weights if weights is not None else DEFAULT_WEIGHTS)
        self.low_to_medium = (
            low_to_medium if low_to_medium is not None else DEFAULT_THRESHOLDS["low_to_medium"]
        )
        self.medium_to_high = (
            medium_to_high if medium_to_high is not None else DEFAULT_THRESHOLDS["medium_to_high"]
        )

    def get(self, factor, default=0.0):
        return self.weights.get(factor, default)

    def total(self):
        return sum(self.weights.values())

    def thresholds(self):
        return {"low_to_medium": self.low_to_medium, "medium_to_high": self.medium_to_high}

    def copy(self):
        return WeightSet(dict(self.weights), self.low_to_medium, self.medium_to_high)

    def to_dict(self):
        return {
            "weights": {f: round(self.weights[f], 4) for f in FACTORS if f in self.weights},
            "thresholds": {k: round(v, 3) for k, v in self.thresholds().items()},
        }

    def __repr__(self):
        return f"WeightSet({self.weights!r}, {self.low_to_medium}, {self.medium_to_high})"


@dataclass
class PredictionRecord:
    id: str
    assessment: RiskAssessment
    weights: WeightSet
    timestamp: float
    awaiting_outcome: bool = True

    def to_dict(self):
        return {
            "id": self.id,
            "risk_level": self.assessment.risk_level,
            "risk_score": self.assessment.risk_score,
            "weights": self.weights.to_dict(),
            "timestamp": _iso(self.timestamp),
            "awaiting_outcome": self.awaiting_outcome,
        }


@dataclass
class OutcomeRecord:
    prediction_id: str
    actual_risk_level: str
    incident_occurred: bool
    accuracy: float
    timestamp: float
    incident_severity: Optional[str] = None
    user_feedback: Optional[str] = None
    environmental_accuracy: float = 1.0

    def to_dict(self):
        return {
            "prediction_id": self.prediction_id,
            "actual_risk_level": self.actual_risk_level,
            "incident_occurred": self.incident_occurred,
            "incident_severity": self.incident_severity,
            "user_feedback": self.user_feedback,
            "environmental_accuracy": self.environmental_accuracy,
            "accuracy": round(self.accuracy, 3),
            "timestamp": _iso(self.timestamp),
        }
